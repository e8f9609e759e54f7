"""Application configuration using pydantic-settings."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Formats accepted by the crawler (calibre's importable book, document and
# comic archive types).
DEFAULT_BOOK_FORMATS = [
    "epub", "pdf", "mobi", "azw", "azw3", "txt", "rtf", "doc", "docx",
    "html", "htm", "lit", "prc", "pdb", "fb2", "djvu", "djv", "chm",
    "tcr", "ps", "pml", "rb", "rtf2", "snb", "txtz", "zip",
    "cbz", "cb7", "cbr", "cbt",
]


def _split_formats(value: object) -> list[str]:
    """Accept a JSON list, a comma-separated string or a list of extensions."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            value = json.loads(stripped)
        else:
            value = stripped.split(",")
    formats = []
    for item in value:
        ext = str(item).strip().lower().lstrip(".")
        if ext and ext not in formats:
            formats.append(ext)
    return formats


class Settings(BaseSettings):
    """Pipeline settings loaded from BOOKFEEDER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKFEEDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Paths
    source_root: Path = Path("/mnt/nas/books")
    staging_dir: Path = Path("/mnt/nas/books/upload")
    backup_root: Path = Path("/mnt/nas/books/backup")
    ledger_path: Path = Path("/var/lib/calibre-feeder/processed_files.txt")
    lock_path: Path | None = None  # defaults to <ledger_path>.lock

    # Catalog (calibredb)
    library_path: Path = Path("/mnt/nas/books")
    calibredb_cmd: str = "calibredb"
    catalog_timeout: int = 300  # seconds per calibredb invocation

    # Crawler
    backup_enabled: bool = True  # False = link-only mode, originals stay in place
    book_formats: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_BOOK_FORMATS)
    )
    watch_debounce_ms: int = 5000

    # Ingestor
    ingest_formats: Annotated[list[str] | None, NoDecode] = None
    batch_size: int = Field(default=10, ge=1)
    batch_pause: float = Field(default=5.0, ge=0)  # seconds between batches
    poll_interval: float = Field(default=60.0, ge=0)  # seconds between cycles

    @field_validator("book_formats", "ingest_formats", mode="before")
    @classmethod
    def normalize_formats(cls, v):
        if v is None:
            return None
        formats = _split_formats(v)
        if not formats:
            raise ValueError("format list must name at least one extension")
        return formats

    @model_validator(mode="after")
    def check_ingest_formats(self) -> "Settings":
        """The ingestor may accept fewer formats than the crawler, never more."""
        if self.ingest_formats is None:
            self.ingest_formats = list(self.book_formats)
        extra = set(self.ingest_formats) - set(self.book_formats)
        if extra:
            raise ValueError(
                f"ingest_formats not covered by book_formats: {', '.join(sorted(extra))}"
            )
        if self.lock_path is None:
            self.lock_path = self.ledger_path.with_name(self.ledger_path.name + ".lock")
        return self


@lru_cache
def get_settings() -> Settings:
    """Settings for the current process, built once at entry."""
    return Settings()
