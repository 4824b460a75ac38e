"""Sync commands for the mediasync CLI.

Commands:
- sync: Reconcile the media folder with the server
- status: Show configuration and local sync state
- clear-cache: Drop cached hashes and sync records
"""

from __future__ import annotations

import contextlib
import logging
import sys
import threading
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from mediasync.client.cli.config import (
    get_config_file,
    get_media_folder,
    get_state_db_path,
    load_config,
    load_server_config,
    load_settings,
)
from mediasync.client.credentials import TOKEN_KEY
from mediasync.core.types import SyncPhase

if TYPE_CHECKING:
    from mediasync.client.state import FingerprintStore
    from mediasync.client.sync import BatchSyncResult, SyncEngine, SyncSnapshot

PHASE_LABELS = {
    SyncPhase.CALCULATING_HASHES: "Hashing",
    SyncPhase.CHECKING_SERVER: "Checking server",
    SyncPhase.UPLOADING: "Uploading",
}


class StatusLineAwareHandler(logging.Handler):
    """Logging handler that coordinates with the status line display.

    Clears the status line before printing log messages and restores it after.
    """

    def __init__(
        self,
        clear_func: Callable[[], None],
        update_func: Callable[[], None],
        lock: threading.Lock,
    ) -> None:
        super().__init__()
        self._clear_func = clear_func
        self._update_func = update_func
        self._lock = lock

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            with self._lock:
                self._clear_func()
                sys.stdout.write(msg + "\n")
                sys.stdout.flush()
                self._update_func()
        except Exception:
            self.handleError(record)


def require_config() -> dict[str, Any]:
    """Load the config or exit if the device is not configured."""
    config = load_config()
    if not config.get("server_url"):
        click.echo("Error: Not configured. Run 'mediasync configure' first.", err=True)
        sys.exit(1)
    if not config.get(TOKEN_KEY):
        click.echo(
            "Error: Not logged in. Run 'mediasync configure --token ...' first.",
            err=True,
        )
        sys.exit(1)
    return config


@contextlib.contextmanager
def open_engine(config: dict[str, Any]) -> Iterator[tuple[SyncEngine, FingerprintStore]]:
    """Wire a SyncEngine from the config file and close it afterwards."""
    from mediasync.client.api import HTTPClient
    from mediasync.client.credentials import ConfigFileCredentials
    from mediasync.client.geolocation import ExifGeolocationExtractor
    from mediasync.client.source import FileSystemSource
    from mediasync.client.state import FingerprintStore
    from mediasync.client.sync import ContentHasher, MediaUploader, SyncEngine

    settings = load_settings(config)
    source = FileSystemSource()
    store = FingerprintStore(get_state_db_path())
    client = HTTPClient(load_server_config(config))
    try:
        engine = SyncEngine(
            store=store,
            hasher=ContentHasher(source, settings.hash_buffer_size),
            client=client,
            uploader=MediaUploader(client, source, ExifGeolocationExtractor(source)),
            credentials=ConfigFileCredentials(get_config_file()),
            settings=settings,
        )
        yield engine, store
    finally:
        client.close()
        store.close()


def display_summary(result: BatchSyncResult) -> None:
    """Display sync results summary."""
    if result.failed:
        click.echo(click.style("\nFailed:", fg="red"))
        for identifier in result.failed:
            click.echo(f"  ✗ {identifier}")
        click.echo("Run 'mediasync sync --retry-failed' to try them again.")

    if result.skipped:
        click.echo(click.style("\nSkipped:", fg="yellow"))
        for identifier in result.skipped:
            click.echo(f"  - {identifier}")

    if result.was_cancelled:
        click.echo(click.style("\nSync cancelled.", fg="yellow"))

    if not result.needs_upload and not result.already_synced:
        click.echo("Everything is up to date.")
    else:
        click.echo(
            f"\nSync complete: {len(result.already_synced)} already on server, "
            f"{result.uploaded_count} uploaded, "
            f"{result.failed_count} failed, "
            f"{result.pending_count} pending"
        )


@click.command()
@click.option(
    "--upload/--no-upload",
    default=None,
    help="Upload missing items (default: the configured auto-upload setting).",
)
@click.option("--retry-failed", is_flag=True, help="Only retry items that failed last time.")
@click.option(
    "--folder",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Folder to sync instead of the configured one.",
)
@click.option("--no-progress", is_flag=True, help="Disable the status line.")
def sync(
    upload: bool | None,
    retry_failed: bool,
    folder: Path | None,
    no_progress: bool,
) -> None:
    """Reconcile the media folder with the server.

    Hashes new or changed items, asks the server which ones it already has
    and, with --upload, uploads the rest. Ctrl+C cancels the run; finished
    uploads are kept.
    """
    from mediasync.client.api import AuthExpiredError
    from mediasync.client.sync import MediaScanner, SyncError

    config = require_config()
    media_folder = folder.resolve() if folder else get_media_folder()
    if not media_folder.exists():
        click.echo(f"Error: Media folder {media_folder} does not exist.", err=True)
        sys.exit(1)

    last_status_len = 0
    progress_lock = threading.Lock()
    current: list[SyncSnapshot] = []

    def clear_status_line() -> None:
        """Clear the current status line."""
        nonlocal last_status_len
        if last_status_len > 0 and not no_progress:
            sys.stdout.write("\r" + " " * last_status_len + "\r")
            sys.stdout.flush()
            last_status_len = 0

    def update_status_line() -> None:
        """Redraw the status line from the latest snapshot."""
        nonlocal last_status_len
        if no_progress or not current:
            return
        snapshot = current[-1]
        label = PHASE_LABELS.get(snapshot.phase)
        if label is None:
            clear_status_line()
            return
        status = f"  {label}: {snapshot.progress:.0%}"
        if snapshot.phase == SyncPhase.UPLOADING:
            upload_state = snapshot.upload_progress
            status += f" ({upload_state.current}/{upload_state.total})"
        clear_part = " " * max(0, last_status_len - len(status))
        sys.stdout.write(f"\r{status}{clear_part}")
        sys.stdout.flush()
        last_status_len = len(status)

    def on_snapshot(snapshot: SyncSnapshot) -> None:
        with progress_lock:
            current[:] = [snapshot]
            update_status_line()

    click.echo(f"Syncing with {config['server_url']}...")
    click.echo(f"Media folder: {media_folder}\n")

    with open_engine(config) as (engine, store):
        items = MediaScanner(media_folder).scan()

        if retry_failed:
            wanted = set(store.get_last_failed())
            items = [item for item in items if item.identifier in wanted]
            if not items:
                click.echo("No failed uploads to retry.")
                return
            upload = True

        mediasync_logger = logging.getLogger("mediasync")
        saved_handlers = mediasync_logger.handlers[:]
        saved_propagate = mediasync_logger.propagate
        if not no_progress:
            status_handler = StatusLineAwareHandler(
                clear_func=clear_status_line,
                update_func=update_status_line,
                lock=progress_lock,
            )
            status_handler.setFormatter(logging.Formatter("%(message)s"))
            status_handler.setLevel(logging.WARNING)

            # Replace handlers so log lines do not interleave with the status line
            for handler in saved_handlers:
                mediasync_logger.removeHandler(handler)
            mediasync_logger.addHandler(status_handler)
            mediasync_logger.propagate = False

        unsubscribe = engine.status.subscribe(on_snapshot)
        outcome: dict[str, Any] = {}

        def run() -> None:
            try:
                outcome["result"] = engine.start_batch_sync(items, auto_upload=upload)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, name="mediasync-sync", daemon=True)
        worker.start()
        try:
            while worker.is_alive():
                worker.join(timeout=0.2)
        except KeyboardInterrupt:
            click.echo("\nCancelling...")
            engine.cancel()
            worker.join()
        finally:
            unsubscribe()
            with progress_lock:
                clear_status_line()
            if not no_progress:
                mediasync_logger.removeHandler(status_handler)
                for handler in saved_handlers:
                    mediasync_logger.addHandler(handler)
                mediasync_logger.propagate = saved_propagate

    error = outcome.get("error")
    if isinstance(error, AuthExpiredError):
        click.echo(
            "Error: Session expired. Run 'mediasync configure --token ...' to log in again.",
            err=True,
        )
        sys.exit(1)
    if isinstance(error, SyncError):
        click.echo(f"Error: {error}", err=True)
        sys.exit(1)
    if error is not None:
        raise error

    display_summary(outcome["result"])


def _format_timestamp(timestamp: float | None) -> str:
    if timestamp is None:
        return "never"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


@click.command()
def status() -> None:
    """Show configuration and local sync state."""
    from mediasync.client.state import FingerprintStore

    config = load_config()
    if not config.get("server_url"):
        click.echo("Not configured. Run 'mediasync configure' first.")
        return

    click.echo(f"Server:       {config['server_url']}")
    click.echo(f"Logged in:    {'yes' if config.get(TOKEN_KEY) else 'no'}")
    click.echo(f"Media folder: {get_media_folder()}")
    click.echo(f"Auto upload:  {'on' if load_settings(config).auto_upload else 'off'}")

    store = FingerprintStore(get_state_db_path())
    try:
        click.echo(f"Synced items: {store.synced_count()}")
        click.echo(f"Known hashes: {store.count_fingerprints()}")
        click.echo(f"Last sync:    {_format_timestamp(store.get_last_sync_at())}")
        failed = store.get_last_failed()
        if failed:
            click.echo(f"Failed last time: {len(failed)}")
    finally:
        store.close()


@click.command("clear-cache")
@click.confirmation_option(prompt="Forget all cached hashes and sync records?")
def clear_cache() -> None:
    """Drop cached hashes and sync records.

    The next sync re-hashes every item and asks the server again.
    """
    from mediasync.client.state import FingerprintStore

    store = FingerprintStore(get_state_db_path())
    try:
        store.clear()
        store.set_last_failed([])
    finally:
        store.close()
    click.echo("Local cache cleared.")
