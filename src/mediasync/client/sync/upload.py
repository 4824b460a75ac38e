"""Single-item media upload.

This module provides:
- MediaUploader: Stages an item into a temp file and posts it with metadata
- extension_for: Extension chosen for a staged file
- build_metadata: JSON metadata sent alongside the file part
"""

from __future__ import annotations

import contextlib
import logging
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mediasync.client.sync.types import ItemUnreadableError, UploadError
from mediasync.core.types import MediaKind

if TYPE_CHECKING:
    from mediasync.client.api import HTTPClient
    from mediasync.client.geolocation import GeolocationExtractor, GpsLocation
    from mediasync.client.source import ContentSource
    from mediasync.client.sync.types import CancellationToken, LocalItem

logger = logging.getLogger(__name__)

STAGING_BUFFER_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Checked in order; the first matching prefix wins
MIME_EXTENSIONS: list[tuple[str, str]] = [
    ("image/jpeg", ".jpg"),
    ("image/png", ".png"),
    ("image/gif", ".gif"),
    ("image/webp", ".webp"),
    ("image/heic", ".heic"),
    ("image/heif", ".heif"),
    ("video/mp4", ".mp4"),
    ("video/3gpp", ".3gp"),
    ("video/webm", ".webm"),
    ("video/quicktime", ".mov"),
    ("video/x-matroska", ".mkv"),
    ("video/", ".mp4"),
    ("image/", ".jpg"),
]


def extension_for(mime_type: str | None, kind: MediaKind) -> str:
    """Pick the staged file extension from the declared MIME type.

    Falls back to a kind-based default when the MIME type is unknown.
    """
    if mime_type:
        for prefix, extension in MIME_EXTENSIONS:
            if mime_type.startswith(prefix):
                return extension
    return ".mp4" if kind == MediaKind.VIDEO else ".jpg"


def _millis(timestamp: float | None) -> int | None:
    if timestamp is None:
        return None
    return int(timestamp * 1000)


def build_metadata(
    item: LocalItem,
    content_hash: str,
    location: GpsLocation | None = None,
) -> dict[str, Any]:
    """Build the metadata part of an upload.

    Args:
        item: Item being uploaded.
        content_hash: Its content fingerprint.
        location: Optional GPS data extracted from the source.

    Returns:
        JSON-serializable metadata dictionary.
    """
    metadata: dict[str, Any] = {
        "type": item.kind.value,
        "date_taken": _millis(item.captured_at),
        "date_modified": _millis(item.modified_at),
        "date_added": _millis(item.added_at),
        "hash": content_hash,
    }
    if location is not None:
        metadata.update(location.to_metadata())
    return metadata


class MediaUploader:
    """Uploads one media item to the server.

    The source is copied into a temporary file first so the transfer reads
    a stable snapshot with the right extension. The temporary file is
    removed on every exit path.
    """

    def __init__(
        self,
        client: HTTPClient,
        source: ContentSource,
        geolocation: GeolocationExtractor | None = None,
        staging_dir: Path | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            client: HTTP client for server communication.
            source: Resolves identifiers to readable content.
            geolocation: Optional best-effort GPS extractor.
            staging_dir: Directory for temp files (system default if None).
        """
        self._client = client
        self._source = source
        self._geolocation = geolocation
        self._staging_dir = staging_dir

    def declared_mime_type(self, item: LocalItem) -> str | None:
        """MIME type declared by the item or, failing that, by the source."""
        return item.mime_type or self._source.mime_type(item.identifier)

    @contextlib.contextmanager
    def stage(
        self,
        item: LocalItem,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[Path]:
        """Copy an item into a temporary file for the duration of the block.

        Args:
            item: Item to stage.
            cancel_token: Optional cancellation token, checked per block.

        Yields:
            Path of the staged file.

        Raises:
            ItemUnreadableError: If the source is gone or not readable.
            OSError: If staging fails for another reason.
            SyncCancelled: If cancellation was requested while copying.
        """
        extension = extension_for(self.declared_mime_type(item), item.kind)
        stem = Path(self._source.display_name(item.identifier)).stem or "upload"

        try:
            source_file = self._source.open(item.identifier)
        except (FileNotFoundError, PermissionError) as e:
            raise ItemUnreadableError(f"Source of {item.identifier} cannot be read: {e}") from e

        staged: Path | None = None
        try:
            with source_file, tempfile.NamedTemporaryFile(
                prefix=f"{stem}_",
                suffix=extension,
                dir=self._staging_dir,
                delete=False,
            ) as out:
                staged = Path(out.name)
                while True:
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    block = source_file.read(STAGING_BUFFER_SIZE)
                    if not block:
                        break
                    out.write(block)
            logger.debug(f"Staged {item.identifier} as {staged.name}")
            yield staged
        finally:
            if staged is not None:
                staged.unlink(missing_ok=True)

    def _locate(self, item: LocalItem) -> GpsLocation | None:
        if self._geolocation is None:
            return None
        try:
            return self._geolocation.extract(item.identifier)
        except Exception as e:
            logger.debug(f"Geolocation lookup failed for {item.identifier}: {e}")
            return None

    def upload(
        self,
        item: LocalItem,
        content_hash: str,
        token: str,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """Stage and upload one item.

        Args:
            item: Item to upload.
            content_hash: Content fingerprint sent in the metadata.
            token: Bearer token.
            cancel_token: Optional cancellation token.

        Returns:
            Remote id assigned by the server.

        Raises:
            ItemUnreadableError: If the source is gone or not readable.
            SyncCancelled: If cancelled while staging.
            UploadError: If staging fails.
            APIError: If the server rejects the upload.
        """
        content_type = self.declared_mime_type(item) or DEFAULT_CONTENT_TYPE
        metadata = build_metadata(item, content_hash, self._locate(item))

        try:
            with self.stage(item, cancel_token) as staged:
                remote_id = self._client.upload_media(
                    token, staged, metadata, content_type
                )
        except OSError as e:
            raise UploadError(f"Could not stage {item.identifier}: {e}") from e

        logger.info(f"Uploaded {item.identifier} -> {remote_id}")
        return remote_id
