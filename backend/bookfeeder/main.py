"""Bookfeeder command-line entry point.

Provides the ``bookfeeder`` command. The crawler and the ingestor are
independent processes coupled only through the staging directory; a
supervisor (systemd, cron) runs ``bookfeeder crawl`` on a schedule and keeps
``bookfeeder ingest`` alive.

Usage:
    bookfeeder crawl
    bookfeeder ingest
    bookfeeder ingest --once
    bookfeeder watch
    bookfeeder stats
    bookfeeder stats --duplicates
    bookfeeder status

Exit codes: 0 on success (including passes with per-file failures), 1 when
setup fails (missing source/staging/catalog, uncreatable ledger).
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
from filelock import FileLock, Timeout

from bookfeeder import __version__
from bookfeeder.config import Settings, get_settings
from bookfeeder.errors import SetupError
from bookfeeder.schemas import CrawlSummary
from bookfeeder.services.catalog import CalibreCatalog, CatalogClient
from bookfeeder.services.classifier import Classifier
from bookfeeder.services.crawler import Crawler
from bookfeeder.services.ingestor import BatchIngestor
from bookfeeder.services.ledger import DedupTracker
from bookfeeder.services.transfer import BackupLinkTransfer
from bookfeeder.services.watcher import SourceWatcher

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _pipeline_dirs(settings: Settings) -> list[Path]:
    dirs = [settings.staging_dir]
    if settings.backup_enabled:
        dirs.append(settings.backup_root)
    return dirs


def build_crawler(settings: Settings) -> Crawler:
    transfer = BackupLinkTransfer(
        source_root=settings.source_root,
        backup_root=settings.backup_root,
        staging_dir=settings.staging_dir,
        backup_enabled=settings.backup_enabled,
    )
    return Crawler(
        source_root=settings.source_root,
        tracker=DedupTracker(settings.ledger_path),
        classifier=Classifier(settings.book_formats),
        transfer=transfer,
        excluded_dirs=_pipeline_dirs(settings),
    )


def build_ingestor(settings: Settings, catalog: CatalogClient) -> BatchIngestor:
    return BatchIngestor(
        staging_dir=settings.staging_dir,
        catalog=catalog,
        classifier=Classifier(settings.ingest_formats),
        batch_size=settings.batch_size,
        batch_pause=settings.batch_pause,
        poll_interval=settings.poll_interval,
    )


def prepare_crawl(settings: Settings) -> None:
    """Check the source root and create ledger, staging and backup directories.

    Raises:
        SetupError: source root missing or a directory cannot be created.
    """
    if not settings.source_root.is_dir():
        raise SetupError(f"Books directory does not exist: {settings.source_root}")

    DedupTracker(settings.ledger_path).initialize()

    for directory in [*_pipeline_dirs(settings), settings.lock_path.parent]:
        if directory.is_dir():
            continue
        try:
            logger.info(f"Creating directory: {directory}")
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Cannot create directory {directory}: {e}") from e


def crawl_once(settings: Settings) -> CrawlSummary | None:
    """One locked crawl pass. Returns None if another pass holds the lock.

    Raises:
        SetupError: see prepare_crawl.
    """
    prepare_crawl(settings)
    lock = FileLock(str(settings.lock_path))
    try:
        with lock.acquire(timeout=0):
            crawler = build_crawler(settings)
            summary = crawler.crawl()
            stats = crawler.tracker.stats()
            logger.info(
                f"Ledger: {stats.total_records} records, {stats.unique_hashes} unique hashes, "
                f"{stats.duplicate_name_entries} duplicate entries"
            )
            return summary
    except Timeout:
        logger.warning(f"Another crawl pass holds {settings.lock_path}; skipping this run")
        return None


def run_crawl_once(settings: Settings | None = None) -> int:
    """Supervisor entry point for one crawl pass. Returns a process exit code."""
    settings = settings or get_settings()
    try:
        crawl_once(settings)
    except SetupError as e:
        logger.error(str(e))
        return 1
    return 0


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            pass


async def _ingest(ingestor: BatchIngestor, once: bool) -> None:
    stop_event = asyncio.Event()
    _install_stop_handlers(stop_event)
    await ingestor.run(stop_event=stop_event, max_cycles=1 if once else None)


def run_ingest_loop(
    settings: Settings | None = None,
    once: bool = False,
    catalog: CatalogClient | None = None,
) -> int:
    """Supervisor entry point for the ingest loop. Returns a process exit code."""
    settings = settings or get_settings()
    try:
        if not settings.staging_dir.is_dir():
            raise SetupError(f"Staging directory does not exist: {settings.staging_dir}")
        if catalog is None:
            calibre = CalibreCatalog(
                library_path=settings.library_path,
                calibredb_cmd=settings.calibredb_cmd,
                timeout=settings.catalog_timeout,
            )
            calibre.check_available()
            catalog = calibre
    except SetupError as e:
        logger.error(str(e))
        return 1

    asyncio.run(_ingest(build_ingestor(settings, catalog), once))
    return 0


async def _watch(settings: Settings) -> None:
    stop_event = asyncio.Event()
    _install_stop_handlers(stop_event)

    async def on_change(paths: set[Path]) -> None:
        await asyncio.to_thread(crawl_once, settings)

    watcher = SourceWatcher(
        source_root=settings.source_root,
        classifier=Classifier(settings.book_formats),
        on_change=on_change,
        ignored_dirs=_pipeline_dirs(settings),
        debounce_ms=settings.watch_debounce_ms,
    )
    await watcher.watch(stop_event=stop_event)


def run_watch(settings: Settings | None = None) -> int:
    """Initial crawl pass, then a crawl per batch of source-tree changes."""
    settings = settings or get_settings()
    try:
        crawl_once(settings)
    except SetupError as e:
        logger.error(str(e))
        return 1
    asyncio.run(_watch(settings))
    return 0


# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="bookfeeder",
    help="Discover new books, dedupe them by content, and feed them to the catalog.",
    add_completion=False,
)


@app.callback()
def cli(
    ctx: typer.Context,
    env_file: Optional[Path] = typer.Option(
        None, "--env-file", help="Read settings from this file instead of .env"
    ),
):
    """Load settings and configure logging."""
    try:
        settings = Settings(_env_file=env_file) if env_file else Settings()
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(1)
    configure_logging(settings.log_level)
    ctx.obj = settings


def _echo_crawl_summary(summary: CrawlSummary) -> None:
    typer.echo("Crawl summary:")
    typer.echo(f"  Total files found:                  {summary.found}")
    typer.echo(f"  New files processed:                {summary.processed}")
    typer.echo(f"  Files skipped (already processed):  {summary.skipped_duplicate}")
    typer.echo(f"  Files skipped (invalid format):     {summary.skipped_invalid}")
    typer.echo(f"  Catalog artifacts ignored:          {summary.skipped_artifact}")
    typer.echo(f"  Files failed (retried next pass):   {summary.errors}")


@app.command()
def crawl(ctx: typer.Context):
    """Crawl the source tree once and stage new books.

    Examples:

        bookfeeder crawl
    """
    settings: Settings = ctx.obj
    try:
        summary = crawl_once(settings)
    except SetupError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if summary is None:
        typer.echo("Another crawl pass is running; nothing done.")
        return
    _echo_crawl_summary(summary)


@app.command()
def ingest(
    ctx: typer.Context,
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit"),
):
    """Add staged books to the catalog in rate-limited batches.

    Examples:

        bookfeeder ingest
        bookfeeder ingest --once
    """
    code = run_ingest_loop(ctx.obj, once=once)
    if code:
        raise typer.Exit(code)


@app.command()
def watch(ctx: typer.Context):
    """Crawl once, then crawl again whenever new books appear."""
    code = run_watch(ctx.obj)
    if code:
        raise typer.Exit(code)


def _echo_hash_lookup(tracker: DedupTracker, content_hash: str) -> None:
    record = tracker.find(content_hash)
    if record is None:
        typer.echo(f"Not processed: {content_hash}")
        raise typer.Exit(1)
    typer.echo(f"Processed: {record.original_filename}")
    typer.echo(f"  At:   {record.processed_at:%Y-%m-%d %H:%M:%S}")
    typer.echo(f"  From: {record.original_path}")


@app.command()
def stats(
    ctx: typer.Context,
    show_duplicates: bool = typer.Option(
        False, "--duplicates", "-d", help="List hashes recorded more than once"
    ),
    content_hash: Optional[str] = typer.Option(
        None, "--hash", help="Look up the ledger record for one content hash"
    ),
):
    """Show processing statistics from the ledger.

    Examples:

        bookfeeder stats
        bookfeeder stats --duplicates
        bookfeeder stats --hash <sha256>
    """
    settings: Settings = ctx.obj
    if not settings.ledger_path.exists():
        typer.echo("No tracking file found - no files processed yet")
        return

    tracker = DedupTracker(settings.ledger_path)
    if content_hash:
        _echo_hash_lookup(tracker, content_hash.strip().lower())
        return

    ledger_stats = tracker.stats()
    typer.echo("Processing Statistics:")
    typer.echo(f"  Total files processed: {ledger_stats.total_records}")
    typer.echo(f"  Unique file hashes:    {ledger_stats.unique_hashes}")
    typer.echo(f"  Duplicate entries:     {ledger_stats.duplicate_name_entries}")
    if ledger_stats.duplicate_name_entries > 0:
        typer.echo("  (Duplicates indicate files were moved/renamed but already processed)")
    if ledger_stats.malformed_lines:
        typer.echo(f"  Malformed lines:       {ledger_stats.malformed_lines}")

    if show_duplicates:
        for digest, records in tracker.duplicate_groups().items():
            typer.echo(f"  {digest[:12]}  {len(records)} entries:")
            for record in records:
                typer.echo(f"    {record.processed_at:%Y-%m-%d %H:%M:%S}  {record.original_path}")


@app.command()
def status(ctx: typer.Context):
    """Show configured paths and pipeline state."""
    settings: Settings = ctx.obj

    def state(path: Path) -> str:
        return "ok" if path.exists() else "MISSING"

    typer.echo(f"bookfeeder {__version__}")
    typer.echo(f"  Books directory:  {settings.source_root} [{state(settings.source_root)}]")
    typer.echo(f"  Upload directory: {settings.staging_dir} [{state(settings.staging_dir)}]")
    if settings.backup_enabled:
        typer.echo(f"  Backup directory: {settings.backup_root} [{state(settings.backup_root)}]")
    else:
        typer.echo("  Backup directory: disabled (link-only mode)")
    typer.echo(f"  Tracking file:    {settings.ledger_path} [{state(settings.ledger_path)}]")
    typer.echo(f"  Calibre library:  {settings.library_path} [{state(settings.library_path)}]")

    if settings.staging_dir.is_dir():
        staged = len([p for p in settings.staging_dir.iterdir() if p.is_file()])
        typer.echo(f"  Files waiting in upload: {staged}")
    if settings.ledger_path.exists():
        ledger_stats = DedupTracker(settings.ledger_path).stats()
        typer.echo(f"  Ledger records: {ledger_stats.total_records} ({ledger_stats.unique_hashes} unique)")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
