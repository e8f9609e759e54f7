"""Error types for the bookfeeder pipeline.

Per-file errors (everything under FileProcessingError and CatalogAddFailure)
are caught by the crawl and ingest loops, logged and counted. Only SetupError
aborts a run.
"""

from pathlib import Path


class BookFeederError(Exception):
    """Base exception for all bookfeeder errors."""

    pass


class SetupError(BookFeederError):
    """Missing source/staging/catalog directories or an uncreatable ledger."""

    pass


class FileProcessingError(BookFeederError):
    """An error confined to a single file."""

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class HashUnavailable(FileProcessingError):
    """File unreadable, empty or vanished while hashing."""

    def __init__(self, path: Path | str, reason: str = "cannot hash file"):
        super().__init__(path, reason)


class ClassificationRejected(FileProcessingError):
    """File extension is not in the supported set."""

    def __init__(self, path: Path | str, extension: str = ""):
        self.extension = extension
        super().__init__(path, f"unsupported format '{extension or '<none>'}'")


class TransferError(FileProcessingError):
    """Backup-and-link transfer failed; the original stays at its source location."""

    pass


class BackupWriteError(TransferError):
    """Cannot create the backup directory or move the file into it."""

    pass


class LinkConflict(TransferError):
    """A file with the same name is already staged."""

    def __init__(self, path: Path | str, staged_path: Path | str):
        self.staged_path = Path(staged_path)
        super().__init__(path, f"staging already holds '{self.staged_path.name}'")


class StagingLinkError(TransferError):
    """Hardlink into staging failed for a reason other than a name conflict."""

    pass


class CatalogError(BookFeederError):
    """Base for failures talking to the external catalog."""

    pass


class CatalogUnavailable(CatalogError, SetupError):
    """calibredb executable or library missing."""

    pass


class CatalogQueryError(CatalogError):
    """Listing catalog entries failed."""

    pass


class CatalogAddFailure(CatalogError):
    """The catalog reported failure adding a file."""

    def __init__(self, path: Path | str, detail: str = ""):
        self.path = Path(path)
        self.detail = detail
        message = f"catalog add failed: {self.path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
