"""Shared types for mediasync.

This module defines the enums used across the client: the kind of a media
item and the phase of a synchronization run.
"""

from __future__ import annotations

from enum import Enum


class MediaKind(str, Enum):
    """Kind of a media item, as named on the wire."""

    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def from_mime_type(cls, mime_type: str | None) -> MediaKind:
        """Classify a MIME type; anything that is not video is an image."""
        if mime_type and mime_type.startswith("video/"):
            return cls.VIDEO
        return cls.IMAGE


class SyncPhase(str, Enum):
    """Phase of a batch synchronization run.

    Transitions are one-directional:
        IDLE -> CALCULATING_HASHES -> CHECKING_SERVER -> UPLOADING
             -> COMPLETED | CANCELLED | ERROR
    A terminal phase returns to IDLE once acknowledged by the caller.
    """

    IDLE = "idle"
    CALCULATING_HASHES = "calculating_hashes"
    CHECKING_SERVER = "checking_server"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """Whether the run is over and waiting to be acknowledged."""
        return self in (SyncPhase.COMPLETED, SyncPhase.CANCELLED, SyncPhase.ERROR)

    @property
    def is_active(self) -> bool:
        """Whether a run is in flight."""
        return self in (
            SyncPhase.CALCULATING_HASHES,
            SyncPhase.CHECKING_SERVER,
            SyncPhase.UPLOADING,
        )
