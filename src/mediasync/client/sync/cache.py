"""Short-lived cache of the remote media listing.

This module provides:
- DEFAULT_CACHE_TTL: Validity window in seconds
- SessionCache: Thread-safe single-value cache with explicit invalidation
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 30.0  # seconds

T = TypeVar("T")


class SessionCache(Generic[T]):
    """Caches the last successful value for a short window.

    Entries go stale after ttl seconds and must be invalidated explicitly
    whenever the remote side changes under our feet (deletion, forced
    refresh).
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Validity window in seconds.
            clock: Monotonic time source (injectable for tests).
        """
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._value: T | None = None
        self._stored_at: float | None = None

    @property
    def age(self) -> float | None:
        """Seconds since the value was stored, or None if empty."""
        with self._lock:
            if self._stored_at is None:
                return None
            return self._clock() - self._stored_at

    def get(self) -> T | None:
        """Return the cached value if still fresh."""
        with self._lock:
            if self._stored_at is None:
                return None
            if self._clock() - self._stored_at >= self._ttl:
                return None
            return self._value

    def put(self, value: T) -> None:
        """Store a fresh value."""
        with self._lock:
            self._value = value
            self._stored_at = self._clock()

    def invalidate(self) -> None:
        """Forget the cached value."""
        with self._lock:
            self._value = None
            self._stored_at = None
        logger.debug("Session cache cleared")
