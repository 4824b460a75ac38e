"""Configuration utilities for the mediasync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mediasync.core.config import ServerConfig, SyncSettings


def get_config_dir() -> Path:
    """Get the configuration directory for mediasync.

    Returns:
        Path to ~/.mediasync.
    """
    return Path.home() / ".mediasync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_db_path() -> Path:
    """Get the path to the fingerprint store database."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_media_folder() -> Path:
    """Get the media folder path.

    Returns:
        Path to the media folder (configured or default ~/Pictures).
    """
    config = load_config()
    if config.get("media_folder"):
        return Path(config["media_folder"]).expanduser().resolve()
    return Path.home() / "Pictures"


def load_server_config(config: dict[str, Any]) -> ServerConfig:
    """Build the server connection settings from the config file."""
    return ServerConfig(
        server_url=config["server_url"],
        timeout=float(config.get("timeout", 30.0)),
        verify_ssl=bool(config.get("verify_ssl", True)),
    )


def load_settings(config: dict[str, Any]) -> SyncSettings:
    """Build the engine settings from the config file.

    Keys missing from the file keep their defaults.
    """
    defaults = SyncSettings()
    return SyncSettings(
        auto_upload=bool(config.get("auto_upload", defaults.auto_upload)),
        max_upload_attempts=int(
            config.get("max_upload_attempts", defaults.max_upload_attempts)
        ),
        retry_base_delay=float(config.get("retry_base_delay", defaults.retry_base_delay)),
        list_cache_ttl=float(config.get("list_cache_ttl", defaults.list_cache_ttl)),
        hash_buffer_size=int(config.get("hash_buffer_size", defaults.hash_buffer_size)),
    )
