"""Durable key/value store for scan state.

The store has no logic of its own: get/set/delete of JSON-compatible values
with a default, plus a re-entrant transaction() scope. The controller and
scheduler perform compare-and-set by reading and writing inside one
transaction.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime, timezone
from typing import Any, Protocol

from postmaint.db.connection import DatabaseLockedError, is_lock_error

logger = logging.getLogger(__name__)

# Persisted keys
KEY_STATUS = "scan_status"
KEY_PROGRESS = "scan_progress"
KEY_START_TIME = "scan_start_time"
KEY_LAST_SCAN_TIME = "last_scan_time"
KEY_NOTIFICATION = "scan_notification"
KEY_GENERATION = "scan_generation"
KEY_SCHEDULE = "scan_schedule"
KEY_DAILY_LAST_RUN = "daily_scan_last_run"


class ProgressStore(Protocol):
    """Protocol for durable scan state storage."""

    def get(self, name: str, default: Any = None) -> Any:
        """Return the stored value for name, or default if unset."""
        ...

    def set(self, name: str, value: Any) -> None:
        """Store a JSON-compatible value under name."""
        ...

    def delete(self, name: str) -> bool:
        """Delete name. Returns True if it existed."""
        ...

    def transaction(self) -> AbstractContextManager[None]:
        """Scope in which reads and writes are atomic. Re-entrant."""
        ...


class MemoryProgressStore:
    """In-process store, used by tests and dry runs."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.RLock()

    def get(self, name: str, default: Any = None) -> Any:
        with self._lock:
            if name not in self._data:
                return default
            return copy.deepcopy(self._data[name])

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            self._data[name] = copy.deepcopy(value)

    def delete(self, name: str) -> bool:
        with self._lock:
            if name not in self._data:
                return False
            del self._data[name]
            return True

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store lock; rolls back all writes if the body raises."""
        with self._lock:
            snapshot = copy.deepcopy(self._data)
            try:
                yield
            except BaseException:
                self._data = snapshot
                raise


class SqliteProgressStore:
    """Store backed by the scan_options table.

    The connection must not be shared with other writers on the same thread
    while a transaction is open. Thread safety within the process comes from
    an RLock; between processes from BEGIN IMMEDIATE.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    def get(self, name: str, default: Any = None) -> Any:
        with self._lock:
            cursor = self._execute(
                "SELECT value FROM scan_options WHERE name = ?", (name,)
            )
            row = cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt scan option %r", name)
            return default

    def set(self, name: str, value: Any) -> None:
        encoded = json.dumps(value)
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._execute(
                """
                INSERT INTO scan_options (name, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (name, encoded, now),
            )
            self._commit_if_outside_transaction()

    def delete(self, name: str) -> bool:
        with self._lock:
            cursor = self._execute(
                "DELETE FROM scan_options WHERE name = ?", (name,)
            )
            self._commit_if_outside_transaction()
            return cursor.rowcount > 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the body inside BEGIN IMMEDIATE.

        Nested scopes join the outermost transaction. The outermost scope
        commits on success and rolls back if the body raises.

        Raises:
            DatabaseLockedError: If another connection holds the write lock
                past the busy timeout.
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            if self._conn.in_transaction:
                # Close any implicit transaction left open by the caller
                self._conn.commit()
            self._execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield
            except BaseException:
                self._depth = 0
                self._conn.rollback()
                raise
            self._depth = 0
            self._conn.commit()

    def _commit_if_outside_transaction(self) -> None:
        if self._depth == 0:
            self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.OperationalError as e:
            if is_lock_error(e):
                raise DatabaseLockedError(
                    "Scan state is locked by another process."
                ) from e
            raise
