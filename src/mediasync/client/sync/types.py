"""Shared types and dataclasses for batch synchronization.

This module provides:
- SyncError, ReconcileError, UploadError, ItemUnreadableError, SyncCancelled:
  Exception classes
- CancellationToken: Cooperative cancellation passed into suspending calls
- LocalItem: A media item on the device
- FingerprintRecord, SyncedRecord: Rows of the fingerprint store
- UploadOutcome, OutcomeStatus: Per-item upload result
- UploadProgress, SyncSnapshot: Progress reporting
- BatchSyncResult: Outcome of one orchestration run
- Type aliases for callbacks
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from mediasync.core.types import MediaKind, SyncPhase


class SyncError(Exception):
    """Base exception for sync errors."""


class ReconcileError(SyncError):
    """The reconciliation call failed; the run was aborted.

    Attributes:
        partial: Whatever the run had achieved before the failure.
    """

    def __init__(self, message: str, partial: BatchSyncResult | None = None) -> None:
        super().__init__(message)
        self.partial = partial or BatchSyncResult()


class UploadError(SyncError):
    """Failed to upload an item."""


class ItemUnreadableError(SyncError):
    """The item's content can no longer be resolved on the device."""


class SyncCancelled(SyncError):
    """Raised inside a suspending call when cancellation was requested."""


class CancellationToken:
    """Cooperative cancellation flag for one run.

    The token is handed explicitly to every suspending call (hash reads,
    staging, backoff waits) so that checking and waiting share one source
    of truth.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise SyncCancelled if cancellation was requested."""
        if self._event.is_set():
            raise SyncCancelled("Synchronization cancelled")

    def wait(self, timeout: float) -> bool:
        """Sleep for up to timeout seconds, waking early on cancellation.

        Returns:
            True if cancellation was requested.
        """
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)


@dataclass(frozen=True)
class LocalItem:
    """A media item on the device.

    Attributes:
        identifier: Stable opaque name of the item (a path or file:// URI).
        kind: Image or video.
        modified_at: Modification time (epoch seconds).
        captured_at: Capture time from EXIF, if known.
        duration_ms: Duration for videos.
        added_at: Time the item appeared on the device, if known.
        mime_type: Declared MIME type, if known.
    """

    identifier: str
    kind: MediaKind
    modified_at: float
    captured_at: float | None = None
    duration_ms: int | None = None
    added_at: float | None = None
    mime_type: str | None = None


@dataclass
class FingerprintRecord:
    """Cached content hash of a local item."""

    identifier: str
    content_hash: str
    hash_computed_at: float


@dataclass
class SyncedRecord:
    """Confirms a local item has a counterpart in the remote store."""

    identifier: str
    remote_id: str
    content_hash: str
    synced_at: float


class OutcomeStatus(Enum):
    """Per-item upload outcome."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class UploadOutcome:
    """Result of uploading one item, retries included."""

    identifier: str
    status: OutcomeStatus
    remote_id: str | None = None
    reason: str | None = None
    attempts: int = 0

    @classmethod
    def success(cls, identifier: str, remote_id: str, attempts: int) -> UploadOutcome:
        return cls(identifier, OutcomeStatus.SUCCESS, remote_id=remote_id, attempts=attempts)

    @classmethod
    def failure(cls, identifier: str, reason: str, attempts: int) -> UploadOutcome:
        return cls(identifier, OutcomeStatus.FAILURE, reason=reason, attempts=attempts)

    @classmethod
    def skipped(cls, identifier: str, reason: str) -> UploadOutcome:
        return cls(identifier, OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def cancelled(cls, identifier: str, attempts: int) -> UploadOutcome:
        return cls(identifier, OutcomeStatus.CANCELLED, attempts=attempts)


@dataclass(frozen=True)
class UploadProgress:
    """Position in the upload phase."""

    current: int = 0
    total: int = 0

    @property
    def fraction(self) -> float:
        """Fraction of items processed."""
        if self.total == 0:
            return 0.0
        return self.current / self.total


@dataclass(frozen=True)
class SyncSnapshot:
    """Observable state of the engine at one point in time."""

    phase: SyncPhase = SyncPhase.IDLE
    progress: float = 0.0
    upload_progress: UploadProgress = field(default_factory=UploadProgress)
    error: str | None = None


@dataclass
class BatchSyncResult:
    """Result of a batch synchronization run.

    Attributes:
        already_synced: identifier -> remote id, newly confirmed this run.
        needs_upload: identifiers the server reported as missing.
        uploaded_count: Items uploaded successfully this run.
        failed_count: Items that exhausted the retry budget.
        was_cancelled: Whether the run stopped at a cancellation checkpoint.
        uploaded: identifier -> remote id for items uploaded this run.
        failed: identifiers counted in failed_count (for a scoped retry).
        skipped: identifiers whose content could not be resolved.
    """

    already_synced: dict[str, str] = field(default_factory=dict)
    needs_upload: list[str] = field(default_factory=list)
    uploaded_count: int = 0
    failed_count: int = 0
    was_cancelled: bool = False
    uploaded: dict[str, str] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def pending_count(self) -> int:
        """Items still missing on the server after this run."""
        return len(self.needs_upload) - self.uploaded_count


# Type aliases for callbacks
FractionCallback = Callable[[float], None]
HashedCallback = Callable[[str, str], None]
SnapshotListener = Callable[[SyncSnapshot], None]
