"""Transient file models used within a crawl pass or ingest cycle."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class CandidateFile:
    """A file observed during one crawl pass. Never persisted."""

    path: Path
    content_hash: str | None = field(default=None, repr=False)

    @property
    def extension(self) -> str:
        return self.path.suffix.lower().lstrip(".")

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class StagedFile:
    """A hardlink in the staging directory.

    backup_path is the hardlink's sibling in the backup root; it is unknown
    (None) when the file was staged in link-only mode or when the entry was
    read back from the staging directory.
    """

    path: Path
    backup_path: Path | None = None

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix.lower().lstrip(".")
