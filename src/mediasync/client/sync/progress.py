"""Observable progress state of the sync engine.

This module provides:
- HASHING_SHARE, SERVER_CHECKED: Mapping of phases onto one progress float
- SyncStatus: Single-writer state with listener subscriptions

The engine is the only writer. Any thread may read the current snapshot
or subscribe; listeners are called synchronously on the writer's thread.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import TYPE_CHECKING, Any

from mediasync.client.sync.types import SyncSnapshot, UploadProgress
from mediasync.core.types import SyncPhase

if TYPE_CHECKING:
    from collections.abc import Callable

    from mediasync.client.sync.types import SnapshotListener

logger = logging.getLogger(__name__)

# Hashing maps onto [0, HASHING_SHARE]; the server round-trip jumps to
# SERVER_CHECKED; uploads fill [SERVER_CHECKED, 1.0].
HASHING_SHARE = 0.45
SERVER_CHECKED = 0.5


def hashing_progress(fraction: float) -> float:
    """Overall progress for a fraction of the hashing phase."""
    return HASHING_SHARE * min(max(fraction, 0.0), 1.0)


def upload_progress(current: int, total: int) -> float:
    """Overall progress after current of total uploads."""
    if total <= 0:
        return 1.0
    return SERVER_CHECKED + (1.0 - SERVER_CHECKED) * (current / total)


class SyncStatus:
    """Phase, progress and upload position of the engine.

    Usage:
        status = SyncStatus()
        unsubscribe = status.subscribe(lambda snap: print(snap.phase))
        ...
        unsubscribe()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = SyncSnapshot()
        self._listeners: list[SnapshotListener] = []

    @property
    def snapshot(self) -> SyncSnapshot:
        """Current state."""
        with self._lock:
            return self._snapshot

    @property
    def phase(self) -> SyncPhase:
        return self.snapshot.phase

    @property
    def progress(self) -> float:
        return self.snapshot.progress

    @property
    def upload_progress(self) -> UploadProgress:
        return self.snapshot.upload_progress

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called after every change.

        The listener immediately receives the current snapshot.

        Returns:
            Function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)
            current = self._snapshot
        listener(current)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> SyncSnapshot:
        """Apply changes and notify listeners. Engine use only."""
        with self._lock:
            self._snapshot = dataclasses.replace(self._snapshot, **changes)
            snapshot = self._snapshot
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Sync status listener failed")
        return snapshot

    def reset(self) -> SyncSnapshot:
        """Return to a fresh idle snapshot."""
        return self.update(
            phase=SyncPhase.IDLE,
            progress=0.0,
            upload_progress=UploadProgress(),
            error=None,
        )
