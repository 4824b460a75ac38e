"""Batch synchronization engine.

This module provides:
- SyncEngine: Runs hash -> reconcile -> upload passes over a set of local items
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from mediasync.client.api import APIError, AuthExpiredError, NotFoundError
from mediasync.client.sync.cache import SessionCache
from mediasync.client.sync.progress import (
    HASHING_SHARE,
    SERVER_CHECKED,
    SyncStatus,
    hashing_progress,
    upload_progress,
)
from mediasync.client.sync.retry import retry_with_linear_backoff
from mediasync.client.sync.types import (
    BatchSyncResult,
    CancellationToken,
    FingerprintRecord,
    ItemUnreadableError,
    OutcomeStatus,
    ReconcileError,
    SyncCancelled,
    SyncedRecord,
    SyncError,
    UploadOutcome,
    UploadProgress,
)
from mediasync.core.config import SyncSettings
from mediasync.core.types import SyncPhase

if TYPE_CHECKING:
    from mediasync.client.api import HTTPClient, ReconcileResult, RemoteMediaItem
    from mediasync.client.credentials import CredentialProvider
    from mediasync.client.state import FingerprintStore
    from mediasync.client.sync.hasher import ContentHasher
    from mediasync.client.sync.types import LocalItem
    from mediasync.client.sync.upload import MediaUploader

logger = logging.getLogger(__name__)


class SyncEngine:
    """Keeps local media consistent with the remote store.

    One run at a time: a second caller of start_batch_sync() blocks until
    the current run ends. Progress is published through ``status``.

    Usage:
        engine = SyncEngine(store, hasher, client, uploader, credentials)
        engine.status.subscribe(print)
        result = engine.start_batch_sync(items, auto_upload=True)
    """

    def __init__(
        self,
        store: FingerprintStore,
        hasher: ContentHasher,
        client: HTTPClient,
        uploader: MediaUploader,
        credentials: CredentialProvider,
        settings: SyncSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Persistent fingerprint and sync records.
            hasher: Computes content hashes.
            client: HTTP client for reconcile, list and delete.
            uploader: Uploads a single item.
            credentials: Supplies the bearer token.
            settings: Engine tunables (defaults if None).
            clock: Wall clock used for record timestamps.
        """
        self._store = store
        self._hasher = hasher
        self._client = client
        self._uploader = uploader
        self._credentials = credentials
        self._settings = settings or SyncSettings()
        self._clock = clock

        self.status = SyncStatus()
        self._run_lock = threading.Lock()
        self._token_lock = threading.Lock()
        self._cancel_token: CancellationToken | None = None
        self._remote_cache: SessionCache[list[RemoteMediaItem]] = SessionCache(
            ttl=self._settings.list_cache_ttl
        )

    # === Run control ===

    def start_batch_sync(
        self,
        items: Iterable[LocalItem],
        auto_upload: bool | None = None,
    ) -> BatchSyncResult:
        """Reconcile the given items with the server.

        Args:
            items: Candidate local items.
            auto_upload: Upload missing items (settings default if None).

        Returns:
            BatchSyncResult of this run. A cancelled run returns normally
            with was_cancelled set.

        Raises:
            AuthExpiredError: If the server rejected the token. The
                credentials have been logged out.
            ReconcileError: If the reconciliation call failed.
        """
        if auto_upload is None:
            auto_upload = self._settings.auto_upload

        if not self._run_lock.acquire(blocking=False):
            logger.info("Another sync is running, waiting for it to finish")
            self._run_lock.acquire()

        token = CancellationToken()
        with self._token_lock:
            self._cancel_token = token
        try:
            return self._run(list(items), auto_upload, token)
        except AuthExpiredError as e:
            logger.warning(f"Credentials rejected by server: {e}")
            self._credentials.force_logout()
            self.status.update(phase=SyncPhase.ERROR, error=str(e))
            raise
        except Exception as e:
            logger.error(f"Sync failed: {e}")
            self.status.update(phase=SyncPhase.ERROR, error=str(e))
            raise
        finally:
            with self._token_lock:
                self._cancel_token = None
            self._run_lock.release()

    def cancel(self) -> None:
        """Request cancellation of the run in progress, if any."""
        with self._token_lock:
            token = self._cancel_token
        if token is None:
            logger.debug("Cancel requested with no sync running")
            return
        logger.info("Cancelling sync")
        token.cancel()

    def acknowledge(self) -> None:
        """Return a finished run's status to IDLE."""
        if self.status.phase.is_terminal:
            self.status.reset()

    # === Queries ===

    def is_synced(self, identifier: str) -> bool:
        return self._store.is_synced(identifier)

    def synced_count(self) -> int:
        return self._store.synced_count()

    # === The run ===

    def _run(
        self,
        items: list[LocalItem],
        auto_upload: bool,
        token: CancellationToken,
    ) -> BatchSyncResult:
        # A new run implicitly acknowledges the previous one
        self.acknowledge()
        result = BatchSyncResult()

        auth = self._credentials.current_token()
        if not auth:
            logger.info("Not authenticated, skipping sync")
            return self._complete(result)

        by_id = {item.identifier: item for item in items}
        identifiers = list(by_id)
        logger.info(f"Starting sync of {len(identifiers)} items")

        self.status.update(
            phase=SyncPhase.CALCULATING_HASHES,
            progress=0.0,
            upload_progress=UploadProgress(),
            error=None,
        )

        synced = self._store.get_synced(identifiers)
        known = self._known_hashes(by_id, synced)
        logger.debug(f"{len(known)} hashes known, {len(identifiers) - len(known)} to compute")

        if token.cancelled:
            return self._cancelled(result)

        to_hash = [i for i in identifiers if i not in known]
        computed = self._hash_missing(to_hash, token)
        if token.cancelled:
            return self._cancelled(result)

        hashes = {**known, **computed}
        if not hashes:
            logger.info("Nothing to reconcile")
            return self._complete(result)

        self.status.update(phase=SyncPhase.CHECKING_SERVER, progress=HASHING_SHARE)
        try:
            reconciled = self._client.reconcile(auth, hashes)
        except AuthExpiredError:
            raise
        except APIError as e:
            raise ReconcileError(f"Reconciliation failed: {e}", partial=result) from e
        self.status.update(progress=SERVER_CHECKED)

        self._apply_reconcile(reconciled, hashes, synced, result)

        if token.cancelled:
            self._update_last_failed(reconciled, result)
            return self._cancelled(result)

        if auto_upload and result.needs_upload:
            self._upload_missing(result, by_id, hashes, auth, token)
        self._update_last_failed(reconciled, result)
        if result.was_cancelled:
            return self._cancelled(result)

        if reconciled.generation is not None:
            self._store.set_last_generation(reconciled.generation)
        self._store.set_last_sync_at(self._clock())
        return self._complete(result)

    def _known_hashes(
        self,
        by_id: dict[str, LocalItem],
        synced: dict[str, SyncedRecord],
    ) -> dict[str, str]:
        """Hashes that can be reused without reading the content.

        A sync record is preferred over a plain fingerprint. Either is
        ignored once the item has been modified after it was recorded.
        """
        fingerprints = self._store.get_fingerprints(list(by_id))
        known: dict[str, str] = {}
        for identifier, item in by_id.items():
            record = synced.get(identifier)
            fingerprint = fingerprints.get(identifier)
            if record is not None and record.synced_at >= item.modified_at:
                known[identifier] = record.content_hash
            elif fingerprint is not None and fingerprint.hash_computed_at >= item.modified_at:
                known[identifier] = fingerprint.content_hash
            elif record is not None or fingerprint is not None:
                logger.debug(f"Cached hash of {identifier} is stale")
        return known

    def _hash_missing(
        self,
        identifiers: list[str],
        token: CancellationToken,
    ) -> dict[str, str]:
        if not identifiers:
            self.status.update(progress=HASHING_SHARE)
            return {}

        def persist(identifier: str, digest: str) -> None:
            self._store.upsert_fingerprints(
                [FingerprintRecord(identifier, digest, self._clock())]
            )

        return self._hasher.compute_hashes(
            identifiers,
            on_progress=lambda fraction: self.status.update(
                progress=hashing_progress(fraction)
            ),
            cancel_token=token,
            on_hashed=persist,
        )

    def _apply_reconcile(
        self,
        reconciled: ReconcileResult,
        hashes: dict[str, str],
        synced: dict[str, SyncedRecord],
        result: BatchSyncResult,
    ) -> None:
        """Record the server's answer in the store and the result."""
        needs_upload = list(dict.fromkeys(reconciled.needs_upload))
        unknown = [i for i in needs_upload if i not in hashes]
        if unknown:
            logger.warning(f"Server listed {len(unknown)} unknown items as missing")

        duplicates = [
            rid for rid, n in Counter(reconciled.already_synced.values()).items() if n > 1
        ]
        for remote_id in duplicates:
            logger.warning(f"Remote id {remote_id} claimed by several local items")

        removed = self._store.delete_synced(needs_upload)
        if removed:
            logger.info(f"Dropped {removed} stale sync records")

        now = self._clock()
        confirmed: list[SyncedRecord] = []
        for identifier, remote_id in reconciled.already_synced.items():
            content_hash = hashes.get(identifier)
            if content_hash is None:
                logger.warning(f"Server confirmed unknown item {identifier}")
                continue
            previous = synced.get(identifier)
            if (
                previous is not None
                and previous.remote_id == remote_id
                and previous.content_hash == content_hash
            ):
                continue
            confirmed.append(SyncedRecord(identifier, remote_id, content_hash, now))
            result.already_synced[identifier] = remote_id

        self._store.upsert_synced(confirmed)
        result.needs_upload = needs_upload
        logger.info(
            f"Server check: {len(confirmed)} newly confirmed, "
            f"{len(needs_upload)} missing"
        )

    def _update_last_failed(
        self,
        reconciled: ReconcileResult,
        result: BatchSyncResult,
    ) -> None:
        """Maintain the list used by a scoped retry.

        Failures of this run come first. Earlier entries are carried over
        unless this run confirmed, uploaded, skipped or re-failed them, so
        items a cancelled run never reached stay retryable.
        """
        settled = (
            set(reconciled.already_synced)
            | set(result.uploaded)
            | set(result.skipped)
            | set(result.failed)
        )
        carried = [i for i in self._store.get_last_failed() if i not in settled]
        self._store.set_last_failed(result.failed + carried)

    # === Uploads ===

    def _upload_missing(
        self,
        result: BatchSyncResult,
        by_id: dict[str, LocalItem],
        hashes: dict[str, str],
        auth: str,
        token: CancellationToken,
    ) -> None:
        total = len(result.needs_upload)
        self.status.update(
            phase=SyncPhase.UPLOADING,
            upload_progress=UploadProgress(0, total),
        )

        for index, identifier in enumerate(result.needs_upload, start=1):
            if token.cancelled:
                result.was_cancelled = True
                break

            item = by_id.get(identifier)
            content_hash = hashes.get(identifier)
            if item is None or content_hash is None:
                outcome = UploadOutcome.skipped(identifier, "not a candidate of this run")
            else:
                outcome = self._upload_item(item, content_hash, auth, token)

            if outcome.status == OutcomeStatus.SUCCESS and outcome.remote_id:
                self._store.upsert_synced(
                    [SyncedRecord(identifier, outcome.remote_id, hashes[identifier], self._clock())]
                )
                result.uploaded[identifier] = outcome.remote_id
                result.uploaded_count += 1
            elif outcome.status == OutcomeStatus.FAILURE:
                result.failed.append(identifier)
                result.failed_count += 1
            elif outcome.status == OutcomeStatus.SKIPPED:
                logger.warning(f"Skipped {identifier}: {outcome.reason}")
                result.skipped.append(identifier)
            else:
                result.was_cancelled = True
                break

            self.status.update(
                progress=upload_progress(index, total),
                upload_progress=UploadProgress(index, total),
            )

        logger.info(
            f"Uploads: {result.uploaded_count} done, {result.failed_count} failed, "
            f"{len(result.skipped)} skipped"
        )

    def _upload_item(
        self,
        item: LocalItem,
        content_hash: str,
        auth: str,
        token: CancellationToken,
    ) -> UploadOutcome:
        """Upload one item within the retry budget.

        AuthExpiredError propagates; every other failure becomes an outcome.
        """
        attempts = 0

        def attempt(n: int) -> str:
            nonlocal attempts
            attempts = n
            return self._uploader.upload(item, content_hash, auth, token)

        try:
            remote_id = retry_with_linear_backoff(
                attempt,
                max_attempts=self._settings.max_upload_attempts,
                base_delay=self._settings.retry_base_delay,
                cancel_token=token,
                non_retryable_exceptions=(AuthExpiredError, ItemUnreadableError),
            )
        except AuthExpiredError:
            raise
        except SyncCancelled:
            return UploadOutcome.cancelled(item.identifier, attempts)
        except ItemUnreadableError as e:
            return UploadOutcome.skipped(item.identifier, str(e))
        except Exception as e:
            logger.error(f"Giving up on {item.identifier} after {attempts} attempts: {e}")
            return UploadOutcome.failure(item.identifier, str(e), attempts)
        return UploadOutcome.success(item.identifier, remote_id, attempts)

    # === Terminal states ===

    def _complete(self, result: BatchSyncResult) -> BatchSyncResult:
        self.status.update(phase=SyncPhase.COMPLETED, progress=1.0)
        logger.info("Sync completed")
        return result

    def _cancelled(self, result: BatchSyncResult) -> BatchSyncResult:
        result.was_cancelled = True
        self.status.update(phase=SyncPhase.CANCELLED)
        logger.info("Sync cancelled")
        return result

    # === Remote listing ===

    def _require_token(self) -> str:
        token = self._credentials.current_token()
        if not token:
            raise SyncError("Not authenticated")
        return token

    def list_remote_items(self, force_refresh: bool = False) -> list[RemoteMediaItem]:
        """List media stored on the server.

        The listing is cached for a short window; force_refresh bypasses it.

        Raises:
            SyncError: If not authenticated.
            AuthExpiredError: If the token was rejected.
            APIError: On any other server error.
        """
        if force_refresh:
            self._remote_cache.invalidate()
        cached = self._remote_cache.get()
        if cached is not None:
            age = self._remote_cache.age or 0.0
            logger.debug(f"Using cached listing ({len(cached)} items, {age:.0f}s old)")
            return cached

        token = self._require_token()
        try:
            items = self._client.list_media(token)
        except AuthExpiredError:
            self._credentials.force_logout()
            raise
        self._remote_cache.put(items)
        return items

    def delete_remote_item(self, remote_id: str) -> None:
        """Delete a media item on the server and forget its sync record.

        An item already missing on the server is treated as deleted.

        Raises:
            SyncError: If not authenticated.
            AuthExpiredError: If the token was rejected.
            APIError: On any other server error.
        """
        token = self._require_token()
        try:
            self._client.delete_media(token, remote_id)
        except NotFoundError:
            logger.info(f"Remote item {remote_id} was already gone")
        except AuthExpiredError:
            self._credentials.force_logout()
            raise
        finally:
            self._remote_cache.invalidate()

        removed = self._store.delete_by_remote_id(remote_id)
        logger.info(f"Deleted remote item {remote_id} ({removed} local records)")
