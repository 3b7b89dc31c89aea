"""Scan coverage statistics."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field

from postmaint.db.queries import (
    count_posts,
    count_posts_with_meta,
    get_meta_date_distribution,
)


@dataclass(frozen=True)
class ScanStats:
    """How many matching posts carry a scan timestamp."""

    total: int
    scanned: int
    date_distribution: dict[str, int] = field(default_factory=dict)

    @property
    def unscanned(self) -> int:
        return max(0, self.total - self.scanned)

    def percent(self, value: int) -> float:
        if self.total <= 0:
            return 0.0
        return round(value / self.total * 100, 1)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "scanned": self.scanned,
            "unscanned": self.unscanned,
            "date_distribution": dict(self.date_distribution),
        }


def get_scan_stats(
    conn: sqlite3.Connection,
    post_types: Sequence[str],
    *,
    post_status: str = "publish",
    meta_key: str = "last_scan",
) -> ScanStats:
    """Compute scanned/unscanned counts and the scan-date distribution."""
    return ScanStats(
        total=count_posts(conn, post_types, post_status),
        scanned=count_posts_with_meta(conn, post_types, post_status, meta_key),
        date_distribution=get_meta_date_distribution(
            conn, post_types, post_status, meta_key
        ),
    )
