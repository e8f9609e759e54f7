"""Crawler - walks the source tree and stages new, valid, unseen content."""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator

from bookfeeder.errors import (
    ClassificationRejected,
    FileProcessingError,
    HashUnavailable,
    TransferError,
)
from bookfeeder.models import CandidateFile
from bookfeeder.schemas import CrawlSummary
from bookfeeder.services.classifier import Classifier
from bookfeeder.services.ledger import DedupTracker, calculate_file_hash
from bookfeeder.services.transfer import BackupLinkTransfer
from bookfeeder.utils import is_within

logger = logging.getLogger(__name__)


class Crawler:
    """Single sequential pass over the source tree.

    Each file is handled independently; an error on one file is logged,
    counted and never aborts the pass.
    """

    def __init__(
        self,
        source_root: Path,
        tracker: DedupTracker,
        classifier: Classifier,
        transfer: BackupLinkTransfer,
        excluded_dirs: Iterable[Path] = (),
    ):
        """
        Args:
            source_root: Default root to crawl
            tracker: Content-hash ledger
            classifier: Format allow-list and artifact rules
            transfer: Backup-and-link step
            excluded_dirs: Subtrees never crawled (staging, backup)
        """
        self.source_root = Path(source_root)
        self.tracker = tracker
        self.classifier = classifier
        self.transfer = transfer
        self.excluded_dirs = [Path(d).resolve() for d in excluded_dirs]

    def _is_excluded_dir(self, path: Path) -> bool:
        if self.classifier.artifacts.is_artifact_folder(path.name):
            return True
        return any(is_within(path, excluded) for excluded in self.excluded_dirs)

    def discover_files(self, root: Path) -> Iterator[Path]:
        """Yield regular files under root in a stable order, pruning excluded dirs."""
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames if not self._is_excluded_dir(current / d)
            )
            for name in sorted(filenames):
                path = current / name
                if path.is_symlink() or not path.is_file():
                    continue
                yield path

    def crawl(self, source_root: Path | None = None) -> CrawlSummary:
        """Run one crawl pass and return its counters."""
        root = Path(source_root) if source_root else self.source_root
        logger.info(f"Crawling books directory: {root}")
        self.tracker.reload()

        summary = CrawlSummary()
        for path in self.discover_files(root):
            summary.found += 1
            self._process(CandidateFile(path=path), summary, root)

        logger.info("Crawl summary:")
        logger.info(f"  Total files found: {summary.found}")
        logger.info(f"  New files processed: {summary.processed}")
        logger.info(f"  Files skipped (already processed): {summary.skipped_duplicate}")
        logger.info(f"  Files skipped (invalid format): {summary.skipped_invalid}")
        if summary.errors:
            logger.warning(f"  Files failed (will retry next pass): {summary.errors}")
        return summary

    def _process(self, candidate: CandidateFile, summary: CrawlSummary, root: Path) -> None:
        path = candidate.path

        if self.classifier.is_artifact(path, root):
            summary.skipped_artifact += 1
            return

        try:
            self.classifier.check(path)
        except ClassificationRejected:
            logger.warning(f"Skipping unsupported format: {candidate.filename}")
            summary.skipped_invalid += 1
            return

        try:
            candidate.content_hash = calculate_file_hash(path)
        except HashUnavailable as e:
            logger.warning(f"Could not calculate hash, leaving in place: {e}")
            summary.errors += 1
            return

        if self.tracker.is_processed(candidate.content_hash):
            logger.info(f"Already processed: {candidate.filename}")
            summary.skipped_duplicate += 1
            return

        try:
            staged = self.transfer.transfer(path)
        except TransferError as e:
            logger.error(f"Failed to process: {e}")
            summary.errors += 1
            return

        try:
            self.tracker.record_processed(
                candidate.content_hash,
                candidate.filename,
                path,
                datetime.now().replace(microsecond=0),
            )
        except (FileProcessingError, OSError) as e:
            # Already staged; without a record the backup copy is the only trace.
            logger.error(f"Staged but not recorded in ledger: {path} ({e})")
            summary.errors += 1
            return

        summary.processed += 1
        backup = staged.backup_path or "none, link-only mode"
        logger.info(f"Staged {staged.path} (backup: {backup})")
