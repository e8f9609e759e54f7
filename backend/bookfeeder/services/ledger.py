"""Dedup tracker - append-only content-hash ledger.

The ledger is a plain text file with one `hash:filename:timestamp:path` line
per processed file. It is the only record of what has been staged; deleting
it causes everything still in the source tree to be reprocessed.
"""

import hashlib
import logging
import os
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Iterator

from bookfeeder.errors import HashUnavailable, SetupError
from bookfeeder.models import TrackedRecord
from bookfeeder.schemas import LedgerStats

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024
DIGEST_LENGTH = 64


def calculate_file_hash(file_path: Path) -> str:
    """Calculate the SHA-256 digest of a file's full contents.

    Raises:
        HashUnavailable: file is empty, unreadable or vanished.
    """
    sha256_hash = hashlib.sha256()
    try:
        if file_path.stat().st_size == 0:
            raise HashUnavailable(file_path, "empty file")
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                sha256_hash.update(chunk)
    except OSError as e:
        raise HashUnavailable(file_path, f"cannot read file ({e.strerror or e})") from e
    return sha256_hash.hexdigest()


def _first_field(line: str) -> str:
    return line.split(":", 1)[0].strip()


class DedupTracker:
    """Single source of truth for "has this content been seen before".

    Hashes are indexed in memory on first use; the file itself is only ever
    appended to.
    """

    def __init__(self, ledger_path: Path):
        self.ledger_path = Path(ledger_path)
        self._hashes: set[str] | None = None

    def initialize(self) -> None:
        """Create the ledger directory and file if absent."""
        try:
            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            if not self.ledger_path.exists():
                logger.info(f"Creating tracking file: {self.ledger_path}")
                self.ledger_path.touch()
        except OSError as e:
            raise SetupError(f"Cannot create ledger {self.ledger_path}: {e}") from e

    def _load_index(self) -> set[str]:
        if self._hashes is None:
            hashes = set()
            for line in self._read_lines():
                digest = _first_field(line)
                if digest:
                    hashes.add(digest)
            self._hashes = hashes
            logger.debug(f"Loaded {len(hashes)} hashes from {self.ledger_path}")
        return self._hashes

    def _read_lines(self) -> Iterator[str]:
        if not self.ledger_path.exists():
            return
        with open(self.ledger_path, encoding="utf-8", errors="replace") as f:
            for line in f:
                if line.strip():
                    yield line.rstrip("\n")

    def reload(self) -> None:
        """Drop the in-memory index so the next lookup rereads the file."""
        self._hashes = None

    def is_processed(self, content_hash: str) -> bool:
        """True iff a record with exactly this digest exists."""
        if not content_hash:
            return False
        return content_hash in self._load_index()

    def record_processed(
        self,
        content_hash: str,
        filename: str,
        path: Path | str,
        timestamp: datetime | None = None,
    ) -> TrackedRecord | None:
        """Append one record.

        Returns the written record, or None if the hash was already recorded
        (nothing is appended in that case).

        Raises:
            HashUnavailable: content_hash is missing or not a SHA-256 digest.
            OSError: the ledger could not be written.
        """
        if not content_hash or len(content_hash) != DIGEST_LENGTH:
            raise HashUnavailable(path, "no content hash to record")

        hashes = self._load_index()
        if content_hash in hashes:
            logger.warning(f"Hash already recorded, not appending: {filename} ({content_hash[:8]}...)")
            return None

        record = TrackedRecord(
            content_hash=content_hash,
            original_filename=filename,
            processed_at=timestamp or datetime.now().replace(microsecond=0),
            original_path=Path(path),
        )
        with open(self.ledger_path, "a", encoding="utf-8") as f:
            f.write(record.to_line() + "\n")
            f.flush()
            os.fsync(f.fileno())

        hashes.add(content_hash)
        logger.info(f"Marked as processed: {filename} (hash: {content_hash[:8]}...)")
        return record

    def records(self) -> Iterator[TrackedRecord]:
        """Iterate well-formed records in file order."""
        for line in self._read_lines():
            record = TrackedRecord.from_line(line)
            if record is None:
                logger.debug(f"Skipping malformed ledger line: {line[:80]}")
                continue
            yield record

    def find(self, content_hash: str) -> TrackedRecord | None:
        """First record whose digest matches exactly."""
        for record in self.records():
            if record.content_hash == content_hash:
                return record
        return None

    def duplicate_groups(self) -> dict[str, list[TrackedRecord]]:
        """Hashes that appear on more than one line, with their records."""
        groups: dict[str, list[TrackedRecord]] = {}
        for record in self.records():
            groups.setdefault(record.content_hash, []).append(record)
        return {h: recs for h, recs in groups.items() if len(recs) > 1}

    def stats(self) -> LedgerStats:
        """Count records, unique hashes and repeated-hash entries."""
        counts: Counter[str] = Counter()
        malformed = 0
        for line in self._read_lines():
            if TrackedRecord.from_line(line) is None:
                malformed += 1
            counts[_first_field(line)] += 1

        total = sum(counts.values())
        unique = len(counts)
        return LedgerStats(
            total_records=total,
            unique_hashes=unique,
            duplicate_name_entries=total - unique,
            malformed_lines=malformed,
        )
