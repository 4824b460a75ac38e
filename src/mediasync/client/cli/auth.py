"""Account commands for the mediasync CLI.

Commands:
- configure: Store the server URL, access token and media folder
- logout: Forget the access token
"""

from __future__ import annotations

from pathlib import Path

import click

from mediasync.client.cli.config import load_config, load_server_config, save_config
from mediasync.client.credentials import TOKEN_KEY


@click.command()
@click.option("--server", default=None, help="Server URL (e.g., https://media.example.com).")
@click.option("--token", default=None, help="Access token issued by the server.")
@click.option(
    "--folder",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Folder holding the photos and videos to sync.",
)
@click.option(
    "--auto-upload/--no-auto-upload",
    default=None,
    help="Upload missing items on every sync.",
)
def configure(
    server: str | None,
    token: str | None,
    folder: Path | None,
    auto_upload: bool | None,
) -> None:
    """Connect this device to a media server.

    Options that are not given keep their current value. The server URL
    and token are prompted for when none is configured yet.
    """
    from mediasync.client.api import HTTPClient

    config = load_config()

    if server:
        config["server_url"] = server.rstrip("/")
    elif not config.get("server_url"):
        config["server_url"] = click.prompt("Server URL").rstrip("/")

    if token:
        config[TOKEN_KEY] = token
    elif not config.get(TOKEN_KEY):
        config[TOKEN_KEY] = click.prompt("Access token", hide_input=True)

    if folder is not None:
        config["media_folder"] = str(folder.expanduser().resolve())
    if auto_upload is not None:
        config["auto_upload"] = auto_upload

    with HTTPClient(load_server_config(config)) as client:
        if not client.health_check():
            click.echo(
                f"Warning: server at {config['server_url']} is not reachable.",
                err=True,
            )

    save_config(config)
    click.echo(f"Configured server {config['server_url']}")
    if config.get("media_folder"):
        click.echo(f"Media folder: {config['media_folder']}")


@click.command()
def logout() -> None:
    """Forget the stored access token."""
    config = load_config()
    if config.pop(TOKEN_KEY, None) is None:
        click.echo("Not logged in.")
        return
    save_config(config)
    click.echo("Logged out.")
