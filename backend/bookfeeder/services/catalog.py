"""Catalog seam - list/add against the external book catalog.

The pipeline only needs two capabilities from the catalog: "which file names
are already present in some entry's formats" and "add this file". The default
implementation shells out to calibre's `calibredb`.
"""

import asyncio
import json
import logging
import shutil
from pathlib import Path, PurePath
from typing import Protocol

from bookfeeder.errors import CatalogAddFailure, CatalogQueryError, CatalogUnavailable

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    """Interface the ingestor depends on."""

    async def list_format_names(self) -> set[str]:
        """File names of every format of every catalog entry."""
        ...

    async def add(self, file_path: Path) -> None:
        """Add a file, permitting duplicates. Raises CatalogAddFailure."""
        ...


class CalibreCatalog:
    """CatalogClient backed by the calibredb command line."""

    def __init__(
        self,
        library_path: Path,
        calibredb_cmd: str = "calibredb",
        timeout: float = 300,
    ):
        self.library_path = Path(library_path)
        self.calibredb_cmd = calibredb_cmd
        self.timeout = timeout

    def check_available(self) -> None:
        """Verify the executable and library exist.

        Raises:
            CatalogUnavailable: calibredb not on PATH, library or metadata.db missing.
        """
        if shutil.which(self.calibredb_cmd) is None:
            raise CatalogUnavailable(f"calibredb command not found: {self.calibredb_cmd}")
        if not self.library_path.is_dir():
            raise CatalogUnavailable(f"Calibre library directory does not exist: {self.library_path}")
        if not (self.library_path / "metadata.db").is_file():
            raise CatalogUnavailable(f"Calibre metadata.db not found in {self.library_path}")

    async def _run(self, command: str, *args: str) -> tuple[int, str, str]:
        """Run a calibredb subcommand; returns (returncode, stdout, stderr)."""
        proc = await asyncio.create_subprocess_exec(
            self.calibredb_cmd,
            command,
            f"--library-path={self.library_path}",
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def list_entries(self) -> list[dict]:
        """Raw `calibredb list --fields=formats --for-machine` entries."""
        try:
            code, out, err = await self._run("list", "--fields=formats", "--for-machine")
        except (OSError, asyncio.TimeoutError) as e:
            raise CatalogQueryError(f"calibredb list failed: {e}") from e
        if code != 0:
            raise CatalogQueryError(f"calibredb list exited {code}: {err.strip()[:500]}")
        try:
            entries = json.loads(out) if out.strip() else []
        except json.JSONDecodeError as e:
            raise CatalogQueryError(f"calibredb list returned invalid JSON: {e}") from e
        if not isinstance(entries, list):
            raise CatalogQueryError("calibredb list returned unexpected payload")
        return entries

    async def list_format_names(self) -> set[str]:
        names: set[str] = set()
        for entry in await self.list_entries():
            for fmt in entry.get("formats") or []:
                names.add(PurePath(fmt).name)
        return names

    async def add(self, file_path: Path) -> None:
        try:
            code, out, err = await self._run("add", "--duplicates", str(file_path))
        except (OSError, asyncio.TimeoutError) as e:
            raise CatalogAddFailure(file_path, str(e) or type(e).__name__) from e
        if code != 0:
            raise CatalogAddFailure(file_path, err.strip()[:500] or f"exit code {code}")
        logger.debug(f"calibredb add output: {out.strip()}")
