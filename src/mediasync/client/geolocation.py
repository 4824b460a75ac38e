"""GPS extraction from image EXIF data.

This module provides:
- GpsLocation: Coordinates attached to an upload's metadata
- GeolocationExtractor: Protocol consumed by the uploader
- ExifGeolocationExtractor: Pillow-based implementation

Extraction is best-effort: any failure yields None, never an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from PIL import ExifTags, Image, UnidentifiedImageError

if TYPE_CHECKING:
    from mediasync.client.source import ContentSource

logger = logging.getLogger(__name__)

# GPS IFD tag numbers (EXIF 2.3)
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4
GPS_ALTITUDE_REF = 5
GPS_ALTITUDE = 6
GPS_TIMESTAMP = 7
GPS_DATESTAMP = 29


@dataclass
class GpsLocation:
    """GPS data extracted from EXIF."""

    latitude: float
    longitude: float
    altitude: float | None = None
    timestamp: str | None = None  # EXIF "YYYY:MM:DD HH:MM:SS"

    def to_metadata(self) -> dict[str, Any]:
        """Convert to upload metadata fields, omitting unknown values."""
        metadata: dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if self.altitude is not None:
            metadata["altitude"] = self.altitude
        if self.timestamp is not None:
            metadata["gps_timestamp"] = self.timestamp
        return metadata


class GeolocationExtractor(Protocol):
    """Extracts GPS coordinates for a local item."""

    def extract(self, identifier: str) -> GpsLocation | None:
        ...


def _to_degrees(value: Any) -> float:
    """Convert an EXIF (degrees, minutes, seconds) triple to decimal degrees."""
    degrees, minutes, seconds = (float(part) for part in value)
    return degrees + minutes / 60.0 + seconds / 3600.0


def gps_from_ifd(gps: dict[int, Any]) -> GpsLocation | None:
    """Build a GpsLocation from a GPS IFD mapping.

    Args:
        gps: Tag number -> value, as returned by Exif.get_ifd().

    Returns:
        GpsLocation, or None if latitude/longitude are missing or malformed.
    """
    if GPS_LATITUDE not in gps or GPS_LONGITUDE not in gps:
        return None
    try:
        latitude = _to_degrees(gps[GPS_LATITUDE])
        longitude = _to_degrees(gps[GPS_LONGITUDE])
    except (TypeError, ValueError, ZeroDivisionError):
        return None

    if str(gps.get(GPS_LATITUDE_REF, "N")).upper().startswith("S"):
        latitude = -latitude
    if str(gps.get(GPS_LONGITUDE_REF, "E")).upper().startswith("W"):
        longitude = -longitude

    altitude: float | None = None
    if GPS_ALTITUDE in gps:
        try:
            altitude = float(gps[GPS_ALTITUDE])
        except (TypeError, ValueError, ZeroDivisionError):
            altitude = None
        else:
            ref = gps.get(GPS_ALTITUDE_REF, 0)
            if isinstance(ref, bytes):
                ref = ref[0] if ref else 0
            if ref == 1:  # below sea level
                altitude = -altitude

    timestamp: str | None = None
    date = gps.get(GPS_DATESTAMP)
    if date:
        timestamp = str(date)
        time_parts = gps.get(GPS_TIMESTAMP)
        if time_parts:
            try:
                h, m, s = (int(float(part)) for part in time_parts)
                timestamp = f"{timestamp} {h:02d}:{m:02d}:{s:02d}"
            except (TypeError, ValueError, ZeroDivisionError):
                pass

    return GpsLocation(
        latitude=latitude,
        longitude=longitude,
        altitude=altitude,
        timestamp=timestamp,
    )


class ExifGeolocationExtractor:
    """Reads GPS coordinates from image EXIF with Pillow.

    Videos and images without EXIF yield None.
    """

    def __init__(self, source: ContentSource) -> None:
        self._source = source

    def extract(self, identifier: str) -> GpsLocation | None:
        try:
            with self._source.open(identifier) as f, Image.open(f) as image:
                gps = image.getexif().get_ifd(ExifTags.IFD.GPSInfo)
        except (OSError, UnidentifiedImageError, ValueError) as e:
            logger.debug(f"No EXIF location for {identifier}: {e}")
            return None

        if not gps:
            logger.debug(f"No GPS coordinates found in EXIF of {identifier}")
            return None

        location = gps_from_ifd(dict(gps))
        if location:
            logger.debug(
                f"GPS found for {identifier}: lat={location.latitude}, "
                f"lon={location.longitude}, alt={location.altitude}"
            )
        return location
