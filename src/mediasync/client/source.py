"""Access to the bytes behind local item identifiers.

This module provides:
- ContentSource: Protocol for opening an identifier and reading its MIME type
- FileSystemSource: Identifiers are filesystem paths or file:// URIs
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.parse import unquote, urlparse


class ContentSource(Protocol):
    """Resolves local item identifiers to readable content."""

    def open(self, identifier: str) -> BinaryIO:
        """Open the item for binary reading.

        Raises:
            FileNotFoundError: If the item no longer exists.
            OSError: If the item cannot be read.
        """
        ...

    def mime_type(self, identifier: str) -> str | None:
        """Return the declared MIME type of the item, if known."""
        ...

    def display_name(self, identifier: str) -> str:
        """Return a human-readable file name for the item."""
        ...


class FileSystemSource:
    """Content source backed by the local filesystem."""

    def resolve(self, identifier: str) -> Path:
        """Convert an identifier to a filesystem path.

        Args:
            identifier: Plain path or file:// URI.

        Returns:
            Path to the item.
        """
        if identifier.startswith("file://"):
            return Path(unquote(urlparse(identifier).path))
        return Path(identifier)

    def open(self, identifier: str) -> BinaryIO:
        return open(self.resolve(identifier), "rb")

    def mime_type(self, identifier: str) -> str | None:
        mime, _ = mimetypes.guess_type(self.resolve(identifier).name)
        return mime

    def display_name(self, identifier: str) -> str:
        return self.resolve(identifier).name
