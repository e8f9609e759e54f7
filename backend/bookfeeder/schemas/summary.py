"""Pass and cycle summaries."""

from pydantic import BaseModel, Field


class LedgerStats(BaseModel):
    """Ledger totals. duplicate_name_entries > 0 is diagnostic, not an error."""

    total_records: int = 0
    unique_hashes: int = 0
    duplicate_name_entries: int = 0
    malformed_lines: int = 0


class CrawlSummary(BaseModel):
    """Counters for one crawl pass."""

    found: int = Field(default=0, description="Files seen under the source root")
    processed: int = Field(default=0, description="New files backed up, staged and recorded")
    skipped_duplicate: int = Field(default=0, description="Content already in the ledger")
    skipped_invalid: int = Field(default=0, description="Unsupported extension")
    skipped_artifact: int = Field(default=0, description="Catalog-internal artifacts")
    errors: int = Field(default=0, description="Hash or transfer failures, retried next pass")


class IngestCycleSummary(BaseModel):
    """Counters for one ingest cycle over the staging directory."""

    staged: int = 0
    added: int = 0
    duplicates: int = 0
    rejected: int = 0
    failed: int = 0
    catalog_attempts: int = 0
    pauses: int = 0
    aborted: bool = False
