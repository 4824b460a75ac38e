"""Streaming content hashing for local items.

This module provides:
- HASH_ALGORITHM, DEFAULT_BUFFER_SIZE: Digest configuration
- ContentHasher: SHA-256 over fixed-size reads, interruptible per read
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

from mediasync.client.sync.types import SyncCancelled

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mediasync.client.source import ContentSource
    from mediasync.client.sync.types import (
        CancellationToken,
        FractionCallback,
        HashedCallback,
    )

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "sha256"
DEFAULT_BUFFER_SIZE = 8192


class ContentHasher:
    """Computes content fingerprints of local items.

    Memory use is bounded by the buffer size, not by the item size.
    The cancellation token is consulted before every read.

    Attributes:
        hashes_computed: Number of digests completed by this instance.
    """

    def __init__(
        self,
        source: ContentSource,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        """Initialize the hasher.

        Args:
            source: Resolves identifiers to readable content.
            buffer_size: Bytes read per step.
        """
        self._source = source
        self._buffer_size = buffer_size
        self.hashes_computed = 0

    def compute_hash(
        self,
        identifier: str,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """Compute the SHA-256 hex digest of an item.

        Args:
            identifier: Item to hash.
            cancel_token: Optional cancellation token, checked once per read.

        Returns:
            Hexadecimal digest string.

        Raises:
            SyncCancelled: If cancellation was requested mid-computation.
            OSError: If the item cannot be read.
        """
        hasher = hashlib.new(HASH_ALGORITHM)
        with self._source.open(identifier) as f:
            while True:
                if cancel_token is not None and cancel_token.cancelled:
                    raise SyncCancelled(f"Hashing of {identifier} cancelled")
                block = f.read(self._buffer_size)
                if not block:
                    break
                hasher.update(block)
        self.hashes_computed += 1
        return hasher.hexdigest()

    def compute_hashes(
        self,
        identifiers: Iterable[str],
        on_progress: FractionCallback | None = None,
        cancel_token: CancellationToken | None = None,
        on_hashed: HashedCallback | None = None,
    ) -> dict[str, str]:
        """Hash several items sequentially.

        Items that cannot be read are left out of the result rather than
        aborting the batch. On cancellation the hashes computed so far are
        returned.

        Args:
            identifiers: Items to hash.
            on_progress: Called with the completed fraction after each item.
            cancel_token: Optional cancellation token.
            on_hashed: Called with (identifier, hash) as soon as a hash is known.

        Returns:
            Mapping of identifier to hex digest.
        """
        pending = list(identifiers)
        total = len(pending)
        result: dict[str, str] = {}

        for index, identifier in enumerate(pending):
            if cancel_token is not None and cancel_token.cancelled:
                logger.info(f"Hashing cancelled after {index}/{total} items")
                break
            try:
                digest = self.compute_hash(identifier, cancel_token)
            except SyncCancelled:
                logger.info(f"Hashing cancelled at {identifier}")
                break
            except OSError as e:
                logger.warning(f"Could not hash {identifier}: {e}")
            else:
                result[identifier] = digest
                if on_hashed:
                    on_hashed(identifier, digest)

            if on_progress:
                on_progress((index + 1) / total)

        return result
