"""Database connection management for postmaint."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseLockedError(Exception):
    """Raised when the database is locked and cannot be accessed."""


def ensure_db_directory(db_path: Path) -> None:
    """Ensure the database directory exists, creating it if necessary."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def open_connection(
    db_path: Path | str,
    timeout: float = 30.0,
    *,
    check_same_thread: bool = True,
) -> sqlite3.Connection:
    """Open a database connection with the standard pragmas applied.

    The caller owns the connection and must close it.

    Args:
        db_path: Path to the database file, or ":memory:".
        timeout: How long to wait for locks (seconds).
        check_same_thread: Pass False when the connection is shared between
            threads behind an external lock (daemon mode).

    Returns:
        An sqlite3 Connection with rows as sqlite3.Row.
    """
    if str(db_path) != ":memory:":
        ensure_db_directory(Path(db_path))

    conn = sqlite3.connect(
        str(db_path), timeout=timeout, check_same_thread=check_same_thread
    )

    conn.execute("PRAGMA foreign_keys = ON")

    # WAL allows the worker and API connections to read while one writes
    conn.execute("PRAGMA journal_mode = WAL")

    # NORMAL is safe with WAL mode
    conn.execute("PRAGMA synchronous = NORMAL")

    conn.execute("PRAGMA busy_timeout = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")

    conn.row_factory = sqlite3.Row
    return conn


def is_lock_error(error: sqlite3.OperationalError) -> bool:
    """Return True if the error is SQLite lock contention."""
    message = str(error).casefold()
    return "locked" in message or "busy" in message

