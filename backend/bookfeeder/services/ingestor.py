"""Batch ingestor - feeds staged files into the catalog with backpressure."""

import asyncio
import logging
import os
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path

from bookfeeder.errors import CatalogAddFailure, CatalogQueryError
from bookfeeder.models import StagedFile
from bookfeeder.schemas import IngestCycleSummary
from bookfeeder.services.catalog import CatalogClient
from bookfeeder.services.classifier import Classifier

logger = logging.getLogger(__name__)


class IngestOutcome(str, Enum):
    """Result of handling one staged file."""
    ADDED = "added"            # catalog add succeeded, staged link removed
    DUPLICATE = "duplicate"    # name already in catalog formats, staged link removed
    REJECTED = "rejected"      # not an ingestible format, staged link removed
    FAILED = "failed"          # catalog add failed, staged link kept for retry
    MISSING = "missing"        # vanished before it could be handled


class BatchIngestor:
    """
    Continuous loop over the staging directory.

    Files are taken in filename order. After every batch_size files that reach
    the catalog, the cycle pauses for batch_pause seconds before continuing;
    cycles are separated by poll_interval seconds.
    """

    def __init__(
        self,
        staging_dir: Path,
        catalog: CatalogClient,
        classifier: Classifier,
        batch_size: int = 10,
        batch_pause: float = 5.0,
        poll_interval: float = 60.0,
    ):
        """
        Args:
            staging_dir: Flat directory of hardlinks to consume
            catalog: Catalog list/add implementation
            classifier: Formats the catalog can ingest
            batch_size: Files per batch before pausing
            batch_pause: Seconds to pause between batches
            poll_interval: Seconds to sleep between cycles
        """
        self.staging_dir = Path(staging_dir)
        self.catalog = catalog
        self.classifier = classifier
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.poll_interval = poll_interval
        self._stop_event: asyncio.Event | None = None

        # Statistics
        self.stats = {
            "cycles": 0,
            "added": 0,
            "duplicates": 0,
            "rejected": 0,
            "failed": 0,
            "started_at": None,
        }

    def list_staged(self) -> list[StagedFile]:
        """Regular files currently in staging, sorted by name."""
        try:
            entries = [e for e in os.scandir(self.staging_dir) if e.is_file(follow_symlinks=False)]
        except FileNotFoundError:
            logger.warning(f"Staging directory missing: {self.staging_dir}")
            return []
        return [StagedFile(path=Path(e.path)) for e in sorted(entries, key=lambda e: e.name)]

    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def _remove(self, staged: StagedFile) -> bool:
        """Delete the staged link. The backup copy is a separate link and survives."""
        try:
            staged.path.unlink()
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"Could not remove staged file {staged.filename}: {e}")
            return False

    async def process_file(self, staged: StagedFile, known_names: set[str]) -> IngestOutcome:
        """Dedup-by-name check, then add. known_names is updated on success."""
        if not staged.path.exists():
            logger.debug(f"Staged file vanished: {staged.filename}")
            return IngestOutcome.MISSING

        if staged.filename in known_names:
            logger.info(f"Skipping duplicate: {staged.filename}")
            self._remove(staged)
            return IngestOutcome.DUPLICATE

        logger.info(f"Adding: {staged.filename}")
        try:
            await self.catalog.add(staged.path)
        except CatalogAddFailure as e:
            logger.error(f"Failed to add: {staged.filename} ({e.detail or e})")
            return IngestOutcome.FAILED

        known_names.add(staged.filename)
        self._remove(staged)
        return IngestOutcome.ADDED

    async def run_cycle(self) -> IngestCycleSummary:
        """Drain the staging directory once, pausing between batches."""
        staged_files = self.list_staged()
        summary = IngestCycleSummary(staged=len(staged_files))
        if not staged_files:
            return summary

        logger.info(f"Processing {len(staged_files)} staged books in batches of {self.batch_size}...")
        known_names: set[str] | None = None
        in_batch = 0

        for staged in staged_files:
            if self._stopping():
                break

            if not self.classifier.is_supported(staged.filename):
                logger.warning(f"Skipping unsupported format: {staged.filename}")
                self._remove(staged)
                summary.rejected += 1
                continue

            if in_batch >= self.batch_size:
                logger.info(f"Processed {in_batch} books, pausing...")
                summary.pauses += 1
                await self._sleep(self.batch_pause)
                if self._stopping():
                    break
                in_batch = 0
                known_names = None

            if known_names is None:
                try:
                    known_names = await self.catalog.list_format_names()
                except CatalogQueryError as e:
                    logger.error(f"Catalog query failed, ending cycle: {e}")
                    summary.aborted = True
                    break

            in_batch += 1
            outcome = await self.process_file(staged, known_names)
            if outcome in (IngestOutcome.ADDED, IngestOutcome.FAILED):
                summary.catalog_attempts += 1
            if outcome == IngestOutcome.ADDED:
                summary.added += 1
            elif outcome == IngestOutcome.DUPLICATE:
                summary.duplicates += 1
            elif outcome == IngestOutcome.FAILED:
                summary.failed += 1

        self.stats["cycles"] += 1
        self.stats["added"] += summary.added
        self.stats["duplicates"] += summary.duplicates
        self.stats["rejected"] += summary.rejected
        self.stats["failed"] += summary.failed

        logger.info(
            f"Batch processing complete: {summary.added} added, {summary.duplicates} duplicates, "
            f"{summary.rejected} rejected, {summary.failed} failed"
        )
        return summary

    async def _sleep(self, seconds: float) -> None:
        """Sleep, returning early if a stop was requested."""
        if self._stop_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(
        self,
        stop_event: asyncio.Event | None = None,
        max_cycles: int | None = None,
    ) -> None:
        """
        Run the ingestor continuously.

        Args:
            stop_event: Event to signal the loop to stop between files
            max_cycles: Stop after this many cycles (None = run until stopped)
        """
        self._stop_event = stop_event or asyncio.Event()
        self.stats["started_at"] = datetime.now(UTC)
        logger.info(f"Ingest worker started (staging: {self.staging_dir}, batch size: {self.batch_size})")

        cycles = 0
        while not self._stopping():
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Ingest cycle error: {e}", exc_info=True)

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            await self._sleep(self.poll_interval)

        logger.info(
            f"Ingest worker stopped. Stats: added={self.stats['added']}, "
            f"duplicates={self.stats['duplicates']}, failed={self.stats['failed']}"
        )
