"""CLI entry point for the Google Drive -> R2 photo migration."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from contextlib import ExitStack
from datetime import datetime

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from photo_sync.clients.gdrive import GDriveClient
from photo_sync.clients.index_db import PhotoIndex
from photo_sync.clients.r2 import ObjectStore
from photo_sync.committer import MetadataCommitter
from photo_sync.config import SyncConfig
from photo_sync.dedup import ExistenceOracle
from photo_sync.errors import ConfigError
from photo_sync.exif import extract_metadata
from photo_sync.models import SyncResult
from photo_sync.sync_engine import SyncEngine
from photo_sync.transfer import TransferPool

LOG_DIR = "logs"
QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "googleapiclient", "exifread")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Migrate photos from a Google Drive customer/project/job/category "
                    "tree into an R2 bucket and the photo index."
    )
    parser.add_argument(
        "--root-folder",
        help="Drive folder ID to walk (default: $ROOT_FOLDER_ID)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Parallel uploads per job (default: $SYNC_CONCURRENCY or 5)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Check and download, but do not upload or write index rows",
    )
    parser.add_argument(
        "--temp-dir",
        help="Local scratch directory for downloads (removed after the run)",
    )
    parser.add_argument(
        "--table",
        help="Index table name (default: $PHOTO_TABLE or migratedphotos)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the index table if it does not exist",
    )
    parser.add_argument(
        "--backfill-orphans",
        action="store_true",
        help="Index photos that are in the bucket but have no index row",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output and progress bars",
    )
    return parser


def _setup_logging(
    verbose: bool,
    console: Console,
    log_filename: str,
) -> None:
    """Configure dual logging: rich console + plain-text log file."""
    log_level = logging.DEBUG if verbose else logging.INFO
    plain_format = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

    root = logging.getLogger()
    root.setLevel(log_level)

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(log_level)
    root.addHandler(rich_handler)

    file_handler = logging.FileHandler(log_filename, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(plain_format, datefmt="%H:%M:%S"))
    root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _apply_overrides(config: SyncConfig, args: argparse.Namespace) -> SyncConfig:
    if args.root_folder:
        config.root_folder_id = args.root_folder
    if args.concurrency is not None:
        config.concurrency = args.concurrency
    if args.dry_run:
        config.dry_run = True
    if args.temp_dir:
        config.temp_dir = args.temp_dir
    if args.table:
        config.table_name = args.table
    return config


def _print_summary(console: Console, result: SyncResult, elapsed: float, log_filename: str) -> None:
    """Print a per-job table and a totals panel at the end of a run."""
    jobs = Table(title="Jobs", show_lines=False)
    jobs.add_column("Job", style="cyan")
    for name in ("Attempted", "Skipped", "Transferred", "Committed", "Failed", "Orphaned"):
        jobs.add_column(name, justify="right")
    jobs.add_column("Status")

    for report in result.jobs.values():
        status_style = "red bold" if report.commit_failed else ("yellow" if report.failed else "green")
        jobs.add_row(
            report.job,
            str(report.attempted),
            str(report.skipped),
            str(report.transferred),
            str(report.committed),
            str(report.failed),
            str(report.orphaned),
            f"[{status_style}]{report.status}[/{status_style}]",
        )

    totals = Table(show_header=False, box=None, padding=(0, 2))
    totals.add_column("Metric", style="bold")
    totals.add_column("Value", justify="right")
    totals.add_row("Photos found", str(result.found))
    totals.add_row("Ineligible", str(result.ineligible))
    totals.add_row("Duplicate names", str(result.duplicates))
    totals.add_row("Skipped", str(result.total("skipped")))
    totals.add_row("Transferred", f"[green]{result.total('transferred')}[/green]")
    totals.add_row("Committed", f"[green]{result.total('committed')}[/green]")
    failed = result.total("failed")
    failed_style = "red bold" if failed else "green"
    totals.add_row("Failed", f"[{failed_style}]{failed}[/{failed_style}]")
    if result.listing_failures:
        totals.add_row("Unlisted folders", f"[red bold]{result.listing_failures}[/red bold]")
    totals.add_row("Elapsed", f"{elapsed:.1f}s")

    panel_style = "green" if result.all_ok else "red"
    title = "Sync Complete" if result.all_ok else "Sync Complete (with errors)"
    if result.dry_run:
        title += " [dry run]"
    console.print()
    if result.jobs:
        console.print(jobs)
    console.print(Panel(totals, title=title, border_style=panel_style, padding=(1, 2)))

    if result.failed_commits:
        console.print()
        console.print(Text("Stored in R2 but NOT indexed (commit rolled back):", style="red bold"))
        for report in result.failed_commits:
            console.print(f"  - {report.job}: {report.commit_error}", style="red")
        console.print("Re-run with --backfill-orphans to index them.", style="dim")

    console.print(f"\nFull log saved to: {log_filename}", style="dim")


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)

    # ── console setup ────────────────────────────────────────────────
    use_color = sys.stdout.isatty() and not args.no_color and not os.getenv("NO_COLOR")
    console = Console(force_terminal=use_color, no_color=not use_color)

    # ── logging setup ────────────────────────────────────────────────
    os.makedirs(LOG_DIR, exist_ok=True)
    log_filename = os.path.join(
        LOG_DIR, f"sync_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )
    _setup_logging(args.verbose, console, log_filename)
    logging.info("Log file: %s", log_filename)

    try:
        config = _apply_overrides(SyncConfig.from_env(), args)
        config.validate()
    except ConfigError as exc:
        logging.error("%s", exc)
        return 2

    console.print(Panel("Google Drive -> R2 photo sync", style="bold blue", padding=(0, 2)))
    logging.info("Root folder : %s", config.root_folder_id)
    logging.info("Bucket      : %s", config.bucket)
    logging.info("Index table : %s", config.table_name)
    logging.info("Concurrency : %d", config.concurrency)
    if config.dry_run:
        logging.info("Dry-run mode: nothing is uploaded or written to the index.")

    with ExitStack() as stack:
        # ── build clients ────────────────────────────────────────────
        try:
            drive = stack.enter_context(GDriveClient(
                config.google_client_id,
                config.google_client_secret,
                config.google_refresh_token,
                shared_drive_id=config.shared_drive_id,
            ))
            store = stack.enter_context(ObjectStore(
                config.bucket,
                endpoint_url=config.r2_endpoint,
                access_key_id=config.r2_access_key_id,
                secret_access_key=config.r2_secret_access_key,
                public_base_url=config.public_base_url,
            ))
            index = stack.enter_context(PhotoIndex(config.database_url, config.table_name))
        except Exception as exc:
            logging.error("Failed to initialize clients: %s", exc)
            return 1

        if args.init_db:
            index.create_schema()

        engine = SyncEngine(
            source=drive,
            oracle=ExistenceOracle(store, index),
            extractor=extract_metadata,
            pool=TransferPool(store, concurrency=config.concurrency, dry_run=config.dry_run),
            committer=MetadataCommitter(index, dry_run=config.dry_run),
            scratch_dir=config.temp_dir,
            backfill_orphans=args.backfill_orphans,
            console=console if use_color else None,
        )

        start = time.monotonic()
        result = engine.run(config.root_folder_id)
        elapsed = time.monotonic() - start

    logging.info("Photo sync complete.\n%s", result.summary())
    _print_summary(console, result, elapsed, log_filename)

    return 0 if result.all_ok else 1


if __name__ == "__main__":
    sys.exit(main())
