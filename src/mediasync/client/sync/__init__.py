"""Batch synchronization of local media with the remote store.

Architecture:
    MediaScanner → SyncEngine → (ContentHasher, HTTPClient, MediaUploader)

Components:
- **SyncEngine**: Runs hash → reconcile → upload passes, one at a time
- **ContentHasher**: Streaming SHA-256 fingerprints with cancellation
- **MediaUploader**: Stages one item in a temp file and uploads it
- **SyncStatus**: Observable phase and progress
- **SessionCache**: Short-lived cache of the remote listing
- **MediaScanner**: Enumerates photos and videos in a folder
"""

from mediasync.client.sync.cache import DEFAULT_CACHE_TTL, SessionCache
from mediasync.client.sync.engine import SyncEngine
from mediasync.client.sync.hasher import ContentHasher
from mediasync.client.sync.progress import SyncStatus
from mediasync.client.sync.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    linear_backoff_delay,
    retry_with_linear_backoff,
)
from mediasync.client.sync.scanner import MediaScanner
from mediasync.client.sync.types import (
    BatchSyncResult,
    CancellationToken,
    FingerprintRecord,
    ItemUnreadableError,
    LocalItem,
    OutcomeStatus,
    ReconcileError,
    SnapshotListener,
    SyncCancelled,
    SyncedRecord,
    SyncError,
    SyncSnapshot,
    UploadError,
    UploadOutcome,
    UploadProgress,
)
from mediasync.client.sync.upload import MediaUploader

__all__ = [
    # Engine
    "SyncEngine",
    "SyncStatus",
    "SessionCache",
    "DEFAULT_CACHE_TTL",
    # Building blocks
    "ContentHasher",
    "MediaUploader",
    "MediaScanner",
    # Retry
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_ATTEMPTS",
    "linear_backoff_delay",
    "retry_with_linear_backoff",
    # Types
    "BatchSyncResult",
    "CancellationToken",
    "FingerprintRecord",
    "LocalItem",
    "OutcomeStatus",
    "SnapshotListener",
    "SyncedRecord",
    "SyncSnapshot",
    "UploadOutcome",
    "UploadProgress",
    # Errors
    "ItemUnreadableError",
    "ReconcileError",
    "SyncCancelled",
    "SyncError",
    "UploadError",
]
