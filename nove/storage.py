"""Durable key-value byte storage shared by the profile and the audio cache."""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the underlying storage medium cannot be read or written."""


class KeyValueStore(ABC):
    """Namespaced ``bytes`` store with get/put/delete/enumerate semantics.

    Each call is atomic on its own; ``put_many``, ``delete_many`` and
    ``clear`` are atomic across all the keys they touch.  No other
    transactional guarantee is offered.
    """

    @abstractmethod
    def get(self, namespace: str, key: str) -> bytes | None:
        """Return the value for *key*, or ``None`` if absent."""

    @abstractmethod
    def put_many(self, items: Iterable[tuple[str, str, bytes]]) -> None:
        """Write ``(namespace, key, value)`` triples as one unit of work."""

    @abstractmethod
    def delete_many(self, keys: Iterable[tuple[str, str]]) -> None:
        """Remove ``(namespace, key)`` pairs as one unit of work."""

    @abstractmethod
    def items(self, namespace: str) -> list[tuple[str, bytes]]:
        """Return every ``(key, value)`` pair in *namespace*."""

    @abstractmethod
    def keys(self, namespace: str) -> list[str]:
        """Return every key in *namespace*."""

    @abstractmethod
    def clear(self, *namespaces: str) -> None:
        """Remove everything in *namespaces* as one unit of work."""

    def put(self, namespace: str, key: str, value: bytes) -> None:
        self.put_many([(namespace, key, value)])

    def delete(self, namespace: str, key: str) -> None:
        self.delete_many([(namespace, key)])

    def close(self) -> None:
        """Release any underlying resources."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store used in tests and when the database is unavailable."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, dict[str, bytes]] = {}

    def get(self, namespace: str, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(namespace, {}).get(key)

    def put_many(self, items: Iterable[tuple[str, str, bytes]]) -> None:
        with self._lock:
            for namespace, key, value in items:
                self._data.setdefault(namespace, {})[key] = bytes(value)

    def delete_many(self, keys: Iterable[tuple[str, str]]) -> None:
        with self._lock:
            for namespace, key in keys:
                self._data.get(namespace, {}).pop(key, None)

    def items(self, namespace: str) -> list[tuple[str, bytes]]:
        with self._lock:
            return list(self._data.get(namespace, {}).items())

    def keys(self, namespace: str) -> list[str]:
        with self._lock:
            return list(self._data.get(namespace, {}))

    def clear(self, *namespaces: str) -> None:
        with self._lock:
            for namespace in namespaces:
                self._data.pop(namespace, None)


class SqliteKeyValueStore(KeyValueStore):
    """Key-value store backed by a single sqlite table.

    The connection is shared between threads and serialised with an
    :class:`threading.RLock`; every public method runs in its own
    transaction.

    Args:
        db_path: Path of the sqlite file, or ``":memory:"``.

    Raises:
        StorageError: If the database cannot be opened or initialised.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            with self._conn:
                self._conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv ("
                    " namespace TEXT NOT NULL,"
                    " key TEXT NOT NULL,"
                    " value BLOB NOT NULL,"
                    " PRIMARY KEY (namespace, key))"
                )
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"cannot open {self.db_path}: {exc}") from exc

    def get(self, namespace: str, key: str) -> bytes | None:
        row = self._fetch_one(
            "SELECT value FROM kv WHERE namespace = ? AND key = ?", (namespace, key)
        )
        return bytes(row[0]) if row else None

    def put_many(self, items: Iterable[tuple[str, str, bytes]]) -> None:
        rows = [(ns, key, sqlite3.Binary(value)) for ns, key, value in items]
        self._execute_many(
            "INSERT OR REPLACE INTO kv (namespace, key, value) VALUES (?, ?, ?)", rows
        )

    def delete_many(self, keys: Iterable[tuple[str, str]]) -> None:
        self._execute_many("DELETE FROM kv WHERE namespace = ? AND key = ?", list(keys))

    def items(self, namespace: str) -> list[tuple[str, bytes]]:
        rows = self._fetch_all(
            "SELECT key, value FROM kv WHERE namespace = ? ORDER BY rowid", (namespace,)
        )
        return [(key, bytes(value)) for key, value in rows]

    def keys(self, namespace: str) -> list[str]:
        rows = self._fetch_all(
            "SELECT key FROM kv WHERE namespace = ? ORDER BY rowid", (namespace,)
        )
        return [key for (key,) in rows]

    def clear(self, *namespaces: str) -> None:
        self._execute_many("DELETE FROM kv WHERE namespace = ?", [(ns,) for ns in namespaces])

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fetch_one(self, sql: str, params: tuple) -> tuple | None:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def _fetch_all(self, sql: str, params: tuple) -> list[tuple]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def _execute_many(self, sql: str, rows: list[tuple]) -> None:
        if not rows:
            return
        try:
            with self._lock, self._conn:
                self._conn.executemany(sql, rows)
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc


def open_store(db_path: str | Path | None) -> KeyValueStore:
    """Open the sqlite store at *db_path*, degrading to memory on failure.

    A failure is reported once as a warning; the session then runs without
    durable state.

    Args:
        db_path: Database path.  ``None`` selects in-memory storage directly.

    Returns:
        A ready :class:`KeyValueStore`.
    """
    if db_path is None:
        return InMemoryKeyValueStore()
    try:
        store = SqliteKeyValueStore(db_path)
    except StorageError as exc:
        logger.warning("Storage unavailable (%s); using in-memory state for this session.", exc)
        return InMemoryKeyValueStore()
    logger.info("Opened local store at %s", db_path)
    return store
