"""Bearer token access for the sync engine.

This module provides:
- CredentialProvider: Protocol consumed by the engine
- StaticCredentials: In-memory token (embedding, tests)
- ConfigFileCredentials: Token stored in the CLI's JSON config file
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"


class CredentialProvider(Protocol):
    """Source of the current bearer token."""

    def current_token(self) -> str | None:
        """Return the current token, or None if not authenticated."""
        ...

    def force_logout(self) -> None:
        """Drop the session after the server rejected the token."""
        ...


class StaticCredentials:
    """Holds a token in memory."""

    def __init__(
        self,
        token: str | None,
        on_logout: Callable[[], None] | None = None,
    ) -> None:
        self._token = token
        self._on_logout = on_logout
        self._lock = threading.Lock()

    def current_token(self) -> str | None:
        with self._lock:
            return self._token

    def force_logout(self) -> None:
        with self._lock:
            self._token = None
        logger.warning("Session expired, credentials cleared")
        if self._on_logout:
            self._on_logout()


class ConfigFileCredentials:
    """Reads the token from a JSON config file on every call.

    force_logout() removes the token from the file so the next run is a
    no-op until the user configures a new one.
    """

    def __init__(self, config_file: Path) -> None:
        self._config_file = Path(config_file)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        if self._config_file.exists():
            return dict(json.loads(self._config_file.read_text()))
        return {}

    def current_token(self) -> str | None:
        with self._lock:
            return self._load().get(TOKEN_KEY) or None

    def force_logout(self) -> None:
        with self._lock:
            config = self._load()
            if config.pop(TOKEN_KEY, None) is not None:
                self._config_file.write_text(json.dumps(config, indent=2))
        logger.warning("Session expired. Please configure a new token.")
