"""Bookfeeder - content-addressed book discovery and catalog ingestion."""

__version__ = "0.3.0"
