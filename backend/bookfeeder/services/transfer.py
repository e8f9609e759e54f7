"""Backup-and-link transfer.

Moves an original into a structure-preserving backup root, then hardlinks the
backup copy into the flat staging directory under its original name. The
backup copy is authoritative from the moment the move succeeds; removing the
staged link never touches it.
"""

import errno
import logging
import os
import shutil
from pathlib import Path

from bookfeeder.errors import BackupWriteError, LinkConflict, StagingLinkError
from bookfeeder.models import StagedFile
from bookfeeder.utils import PathOutsideRootError, relative_to_root

logger = logging.getLogger(__name__)


class BackupLinkTransfer:
    """Relocates source files to backup and stages them as hardlinks."""

    def __init__(
        self,
        source_root: Path,
        backup_root: Path,
        staging_dir: Path,
        backup_enabled: bool = True,
    ):
        """
        Args:
            source_root: Root of the crawled tree; relative paths are taken from here
            backup_root: Mirror of the source tree holding the originals
            staging_dir: Flat directory consumed by the ingestor
            backup_enabled: False links straight from the source (link-only mode)
        """
        self.source_root = Path(source_root)
        self.backup_root = Path(backup_root)
        self.staging_dir = Path(staging_dir)
        self.backup_enabled = backup_enabled

    def backup_path_for(self, source_path: Path) -> Path:
        """Backup location mirroring source_path's position under source_root."""
        try:
            relative = relative_to_root(source_path, self.source_root)
        except PathOutsideRootError as e:
            raise BackupWriteError(source_path, str(e)) from e
        return self.backup_root / relative

    def transfer(self, source_path: Path) -> StagedFile:
        """Back up source_path and hardlink it into staging.

        On any failure the file is left at (or returned to) source_path.

        Raises:
            LinkConflict: staging already has a file with this name.
            BackupWriteError: backup directory or move failed.
            StagingLinkError: the hardlink could not be created.
        """
        source_path = Path(source_path)
        staged_path = self.staging_dir / source_path.name

        # Checked before moving so a conflict never strands a file in backup.
        if os.path.lexists(staged_path):
            raise LinkConflict(source_path, staged_path)

        if not self.backup_enabled:
            self._link(source_path, staged_path, source_path)
            logger.info(f"Created hardlink: {source_path.name}")
            return StagedFile(path=staged_path, backup_path=None)

        backup_path = self.backup_path_for(source_path)
        self._move_to_backup(source_path, backup_path)

        try:
            self._link(backup_path, staged_path, source_path)
        except (LinkConflict, StagingLinkError):
            self._restore(backup_path, source_path)
            raise

        logger.info(f"Created hardlink from backup: {source_path.name}")
        return StagedFile(path=staged_path, backup_path=backup_path)

    def _move_to_backup(self, source_path: Path, backup_path: Path) -> None:
        if os.path.lexists(backup_path):
            raise BackupWriteError(source_path, f"backup already holds {backup_path}")
        try:
            backup_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupWriteError(source_path, f"cannot create backup directory ({e})") from e
        try:
            shutil.move(str(source_path), str(backup_path))
        except OSError as e:
            raise BackupWriteError(source_path, f"cannot move to backup ({e})") from e
        logger.info(f"Moved to backup: {backup_path.relative_to(self.backup_root)}")

    def _link(self, target: Path, staged_path: Path, source_path: Path) -> None:
        try:
            os.link(target, staged_path)
        except FileExistsError as e:
            raise LinkConflict(source_path, staged_path) from e
        except OSError as e:
            detail = "staging and backup are on different filesystems" if e.errno == errno.EXDEV else str(e)
            raise StagingLinkError(source_path, f"cannot hardlink into staging ({detail})") from e

    def _restore(self, backup_path: Path, source_path: Path) -> None:
        """Put a backed-up file back at its source location after a link failure."""
        try:
            shutil.move(str(backup_path), str(source_path))
            logger.info(f"Restored to source after link failure: {source_path}")
        except OSError as e:
            logger.error(f"Could not restore {backup_path} to {source_path}: {e}")
