"""Remote media commands for the mediasync CLI.

Commands:
- remote: List media stored on the server
- delete: Delete a media item from the server
"""

from __future__ import annotations

import sys

import click

from mediasync.client.cli.sync import open_engine, require_config


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


@click.command()
@click.option("--refresh", is_flag=True, help="Bypass the short-lived listing cache.")
def remote(refresh: bool) -> None:
    """List media stored on the server."""
    from mediasync.client.api import APIError, AuthExpiredError
    from mediasync.client.sync import SyncError

    config = require_config()
    with open_engine(config) as (engine, store):
        try:
            items = engine.list_remote_items(force_refresh=refresh)
        except AuthExpiredError:
            click.echo("Error: Session expired. Please log in again.", err=True)
            sys.exit(1)
        except (APIError, SyncError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        if not items:
            click.echo("No media on the server.")
            return

        for item in items:
            local = store.get_by_remote_id(item.id)
            marker = "*" if local is not None else " "
            taken = item.last_modified.strftime("%Y-%m-%d") if item.last_modified else "-"
            click.echo(
                f"{marker} {item.id}  {item.type:<5}  {taken}  "
                f"{_format_size(item.size):>9}  {item.original_name}"
            )
        click.echo(f"\n{len(items)} items (* = synced from this device)")


@click.command()
@click.argument("remote_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def delete(remote_id: str, yes: bool) -> None:
    """Delete a media item from the server."""
    from mediasync.client.api import APIError, AuthExpiredError
    from mediasync.client.sync import SyncError

    config = require_config()
    if not yes and not click.confirm(f"Delete {remote_id} from the server?"):
        sys.exit(0)

    with open_engine(config) as (engine, _store):
        try:
            engine.delete_remote_item(remote_id)
        except AuthExpiredError:
            click.echo("Error: Session expired. Please log in again.", err=True)
            sys.exit(1)
        except (APIError, SyncError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(f"Deleted {remote_id}.")
