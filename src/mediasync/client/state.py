"""Local fingerprint store for the sync client.

This module provides:
- FingerprintStore: SQLite-based cache of content hashes and sync records

Architecture:
    Two tables back the batch synchronization:
    - fingerprints: identifier -> content hash, so unchanged items are not
      re-hashed on every run
    - synced_media: identifier -> remote id, so confirmed items are not
      re-uploaded

    A third key/value table keeps run bookkeeping (last sync time, server
    generation, identifiers that failed last time).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Iterable, Iterator
from pathlib import Path

from mediasync.client.sync.types import FingerprintRecord, SyncedRecord

logger = logging.getLogger(__name__)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds
QUERY_BATCH_SIZE = 500


def _batched(values: list[str], size: int = QUERY_BATCH_SIZE) -> Iterator[list[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _fingerprint_from_row(row: sqlite3.Row) -> FingerprintRecord:
    return FingerprintRecord(
        identifier=row["identifier"],
        content_hash=row["content_hash"],
        hash_computed_at=row["hash_computed_at"],
    )


def _synced_from_row(row: sqlite3.Row) -> SyncedRecord:
    return SyncedRecord(
        identifier=row["identifier"],
        remote_id=row["remote_id"],
        content_hash=row["content_hash"],
        synced_at=row["synced_at"],
    )


class FingerprintStore:
    """SQLite-based fingerprint and sync-record store.

    Reads may happen from any thread while the engine writes; all access
    goes through one connection guarded by a lock.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS fingerprints (
                identifier TEXT PRIMARY KEY,
                content_hash TEXT NOT NULL,
                hash_computed_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS synced_media (
                identifier TEXT PRIMARY KEY,
                remote_id TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                synced_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_synced_media_remote_id
                ON synced_media (remote_id);

            -- Key-value sync state
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _select_in(
        self, table: str, identifiers: Iterable[str]
    ) -> list[sqlite3.Row]:
        rows: list[sqlite3.Row] = []
        unique = list(dict.fromkeys(identifiers))
        with self._lock:
            for batch in _batched(unique):
                placeholders = ", ".join("?" for _ in batch)
                cursor = self._conn.execute(
                    f"SELECT * FROM {table} WHERE identifier IN ({placeholders})",
                    batch,
                )
                rows.extend(cursor.fetchall())
        return rows

    def _delete_in(self, table: str, identifiers: Iterable[str]) -> int:
        deleted = 0
        unique = list(dict.fromkeys(identifiers))
        with self._lock:
            for batch in _batched(unique):
                placeholders = ", ".join("?" for _ in batch)
                cursor = self._conn.execute(
                    f"DELETE FROM {table} WHERE identifier IN ({placeholders})",
                    batch,
                )
                deleted += cursor.rowcount
        return deleted

    # === Fingerprints ===

    def get_fingerprints(
        self, identifiers: Iterable[str]
    ) -> dict[str, FingerprintRecord]:
        """Get cached hashes for identifiers.

        Identifiers without a cached hash are simply absent from the result.
        """
        return {
            row["identifier"]: _fingerprint_from_row(row)
            for row in self._select_in("fingerprints", identifiers)
        }

    def upsert_fingerprints(self, records: Iterable[FingerprintRecord]) -> None:
        """Insert or replace cached hashes."""
        rows = [(r.identifier, r.content_hash, r.hash_computed_at) for r in records]
        if not rows:
            return
        with self._lock:
            self._conn.executemany(
                """
                INSERT OR REPLACE INTO fingerprints (
                    identifier, content_hash, hash_computed_at
                ) VALUES (?, ?, ?)
                """,
                rows,
            )

    def delete_fingerprints(self, identifiers: Iterable[str]) -> int:
        """Delete cached hashes.

        Returns:
            Number of rows removed.
        """
        return self._delete_in("fingerprints", identifiers)

    def count_fingerprints(self) -> int:
        """Count cached hashes."""
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM fingerprints").fetchone()
        return int(row[0])

    # === Sync records ===

    def get_synced(self, identifiers: Iterable[str]) -> dict[str, SyncedRecord]:
        """Get sync records for identifiers."""
        return {
            row["identifier"]: _synced_from_row(row)
            for row in self._select_in("synced_media", identifiers)
        }

    def upsert_synced(self, records: Iterable[SyncedRecord]) -> None:
        """Insert or replace sync records."""
        rows = [(r.identifier, r.remote_id, r.content_hash, r.synced_at) for r in records]
        if not rows:
            return
        with self._lock:
            self._conn.executemany(
                """
                INSERT OR REPLACE INTO synced_media (
                    identifier, remote_id, content_hash, synced_at
                ) VALUES (?, ?, ?, ?)
                """,
                rows,
            )

    def delete_synced(self, identifiers: Iterable[str]) -> int:
        """Delete sync records.

        Returns:
            Number of rows removed.
        """
        return self._delete_in("synced_media", identifiers)

    def is_synced(self, identifier: str) -> bool:
        """Check if an item has a confirmed remote counterpart."""
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM synced_media WHERE identifier = ?",
                (identifier,),
            ).fetchone()
        return row is not None

    def synced_count(self) -> int:
        """Count confirmed items."""
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM synced_media").fetchone()
        return int(row[0])

    def list_synced(self) -> list[SyncedRecord]:
        """List all sync records, most recent first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM synced_media ORDER BY synced_at DESC"
            ).fetchall()
        return [_synced_from_row(row) for row in rows]

    def get_by_remote_id(self, remote_id: str) -> SyncedRecord | None:
        """Get the sync record pointing at a remote item."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM synced_media WHERE remote_id = ?",
                (remote_id,),
            ).fetchone()
        if row is None:
            return None
        return _synced_from_row(row)

    def delete_by_remote_id(self, remote_id: str) -> int:
        """Delete sync records pointing at a remote item."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM synced_media WHERE remote_id = ?",
                (remote_id,),
            )
        return cursor.rowcount

    def clear(self) -> None:
        """Drop every cached hash and sync record."""
        with self._lock:
            self._conn.execute("DELETE FROM fingerprints")
            self._conn.execute("DELETE FROM synced_media")
        logger.info("Fingerprint store cleared")

    # === Sync state ===

    def get_state(self, key: str) -> str | None:
        """Get a sync state value."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Set a sync state value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_last_sync_at(self) -> float | None:
        """Get timestamp of last completed sync."""
        value = self.get_state("last_sync_at")
        return float(value) if value else None

    def set_last_sync_at(self, timestamp: float | None = None) -> None:
        """Set timestamp of last completed sync."""
        self.set_state("last_sync_at", str(timestamp if timestamp is not None else time.time()))

    def get_last_generation(self) -> str | None:
        """Get the server generation seen by the last reconciliation."""
        return self.get_state("last_generation")

    def set_last_generation(self, generation: str) -> None:
        """Set the server generation seen by the last reconciliation."""
        self.set_state("last_generation", generation)

    def get_last_failed(self) -> list[str]:
        """Get identifiers that exhausted their retries and were not settled since."""
        value = self.get_state("last_failed")
        if not value:
            return []
        return list(json.loads(value))

    def set_last_failed(self, identifiers: list[str]) -> None:
        """Remember identifiers that exhausted their retries."""
        self.set_state("last_failed", json.dumps(identifiers))
