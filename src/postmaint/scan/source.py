"""Content source: where the records to scan come from.

The engine only needs three operations: count the matching records, fetch a
page of identifiers in a deterministic order, and touch one record.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Sequence
from typing import Protocol

from postmaint.db.queries import count_posts, get_post_ids_page, set_post_meta

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Protocol for a collection of scannable records."""

    def count(self, post_types: Sequence[str]) -> int:
        """Return the number of records matching the filter."""
        ...

    def page(self, post_types: Sequence[str], limit: int, offset: int) -> list[int]:
        """Return up to limit identifiers at offset, identifier ascending."""
        ...

    def touch(self, post_id: int) -> bool:
        """Apply the maintenance mutation. Returns False if it did not apply."""
        ...


class SqliteContentSource:
    """Content source over the posts/post_meta tables.

    touch() stamps the current epoch time into the configured meta key.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        post_status: str = "publish",
        meta_key: str = "last_scan",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._conn = conn
        self.post_status = post_status
        self.meta_key = meta_key
        self._clock = clock
        self._lock = threading.Lock()

    def count(self, post_types: Sequence[str]) -> int:
        with self._lock:
            return count_posts(self._conn, post_types, self.post_status)

    def page(self, post_types: Sequence[str], limit: int, offset: int) -> list[int]:
        with self._lock:
            return get_post_ids_page(
                self._conn, post_types, self.post_status, limit, offset
            )

    def touch(self, post_id: int) -> bool:
        stamp = str(int(self._clock()))
        with self._lock:
            written = set_post_meta(self._conn, post_id, self.meta_key, stamp)
        if not written:
            logger.debug("Post %d vanished before it could be touched", post_id)
        return written
