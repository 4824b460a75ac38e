"""Command-line interface for mediasync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Connect this device to a media server
- logout: Forget the access token
- sync: Reconcile the media folder with the server
- status: Show configuration and local sync state
- clear-cache: Drop cached hashes and sync records
- remote: List media stored on the server
- delete: Delete a media item from the server
"""

from __future__ import annotations

import logging

import click

from mediasync.client.cli.auth import configure, logout
from mediasync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_media_folder,
    get_state_db_path,
    load_config,
    save_config,
)
from mediasync.client.cli.media import delete, remote
from mediasync.client.cli.sync import clear_cache, status, sync


@click.group()
@click.version_option(package_name="mediasync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """mediasync - Back up photos and videos to your media server."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Account commands
cli.add_command(configure)
cli.add_command(logout)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(clear_cache)

# Remote media commands
cli.add_command(remote)
cli.add_command(delete)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_media_folder",
    "get_state_db_path",
    "load_config",
    "save_config",
]
