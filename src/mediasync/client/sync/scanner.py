"""Local media enumeration.

This module provides:
- MediaScanner: Walks a folder and yields the photos and videos it contains
- read_capture_time: EXIF capture time of an image
"""

from __future__ import annotations

import logging
import mimetypes
import os
from datetime import datetime
from pathlib import Path

from PIL import ExifTags, Image, UnidentifiedImageError

from mediasync.client.sync.types import LocalItem
from mediasync.core.types import MediaKind

logger = logging.getLogger(__name__)

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
MEDIA_PREFIXES = ("image/", "video/")


def _parse_exif_datetime(value: object) -> float | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), EXIF_DATETIME_FORMAT).timestamp()
    except ValueError:
        return None


def read_capture_time(path: Path) -> float | None:
    """Read when an image was taken.

    Prefers DateTimeOriginal from the Exif IFD, then the base DateTime tag.
    EXIF times carry no zone and are read as local time.

    Returns:
        Epoch seconds, or None if the file has no usable EXIF date.
    """
    try:
        with Image.open(path) as image:
            exif = image.getexif()
            original = exif.get_ifd(ExifTags.IFD.Exif).get(ExifTags.Base.DateTimeOriginal)
            fallback = exif.get(ExifTags.Base.DateTime)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.debug(f"No EXIF date for {path}: {e}")
        return None
    return _parse_exif_datetime(original) or _parse_exif_datetime(fallback)


class MediaScanner:
    """Enumerates the media items below a folder.

    Hidden files and directories and symlinks are skipped. Only files whose
    guessed MIME type is an image or a video are returned.
    """

    def __init__(self, base_path: Path, read_exif: bool = True) -> None:
        """Initialize the scanner.

        Args:
            base_path: Folder to scan recursively.
            read_exif: Read capture times from image EXIF.
        """
        self._base_path = Path(base_path).resolve()
        self._read_exif = read_exif

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _to_item(self, path: Path) -> LocalItem | None:
        mime, _ = mimetypes.guess_type(path.name)
        if not mime or not mime.startswith(MEDIA_PREFIXES):
            return None

        try:
            stat = path.stat()
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return None

        kind = MediaKind.from_mime_type(mime)
        captured_at = None
        if self._read_exif and kind == MediaKind.IMAGE:
            captured_at = read_capture_time(path)

        return LocalItem(
            identifier=str(path),
            kind=kind,
            modified_at=stat.st_mtime,
            captured_at=captured_at,
            added_at=getattr(stat, "st_birthtime", None),
            mime_type=mime,
        )

    def scan(self) -> list[LocalItem]:
        """Walk the folder.

        Returns:
            Items sorted by identifier.
        """
        if not self._base_path.is_dir():
            logger.warning(f"Media folder {self._base_path} does not exist")
            return []

        items: list[LocalItem] = []
        for root_str, dirs, files in os.walk(self._base_path):
            root = Path(root_str)
            dirs[:] = [d for d in dirs if not d.startswith(".")]

            for filename in files:
                if filename.startswith("."):
                    continue
                file_path = root / filename
                if file_path.is_symlink():
                    continue
                item = self._to_item(file_path)
                if item is not None:
                    items.append(item)

        items.sort(key=lambda i: i.identifier)
        logger.info(f"Found {len(items)} media items in {self._base_path}")
        return items
