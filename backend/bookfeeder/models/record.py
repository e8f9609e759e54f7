"""TrackedRecord - one ledger line per processed content hash."""

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# hash:filename:timestamp:path. Filenames and paths may contain colons, so the
# line is anchored on the fixed-width digest and the timestamp shape.
LINE_RE = re.compile(
    r"^(?P<hash>[0-9a-f]{64}):(?P<filename>.*?):"
    r"(?P<timestamp>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}):(?P<path>.*)$"
)


def _single_line(value: str) -> str:
    return value.replace("\r", " ").replace("\n", " ")


@dataclass(frozen=True)
class TrackedRecord:
    """A processed file's content hash plus informational provenance."""

    content_hash: str
    original_filename: str
    processed_at: datetime
    original_path: Path

    def to_line(self) -> str:
        """Serialize as a ledger line (without trailing newline)."""
        return ":".join([
            self.content_hash,
            _single_line(self.original_filename),
            self.processed_at.strftime(TIMESTAMP_FORMAT),
            _single_line(str(self.original_path)),
        ])

    @classmethod
    def from_line(cls, line: str) -> "TrackedRecord | None":
        """Parse a ledger line. Returns None if the line is malformed."""
        match = LINE_RE.match(line.rstrip("\n"))
        if not match:
            return None
        return cls(
            content_hash=match["hash"],
            original_filename=match["filename"],
            processed_at=datetime.strptime(match["timestamp"], TIMESTAMP_FORMAT),
            original_path=Path(match["path"]),
        )

    def __repr__(self) -> str:
        return f"<TrackedRecord(hash='{self.content_hash[:8]}...', file='{self.original_filename}')>"
