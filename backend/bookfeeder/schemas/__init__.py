"""Pydantic summaries reported by the pipeline."""

from bookfeeder.schemas.summary import CrawlSummary, IngestCycleSummary, LedgerStats

__all__ = [
    "CrawlSummary",
    "IngestCycleSummary",
    "LedgerStats",
]
