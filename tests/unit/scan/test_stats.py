"""Tests for scan coverage statistics."""

from datetime import datetime, timezone

from postmaint.db import set_post_meta
from postmaint.scan.stats import ScanStats, get_scan_stats


def _epoch(year, month, day):
    return str(int(datetime(year, month, day, 12, tzinfo=timezone.utc).timestamp()))


class TestGetScanStats:
    """Tests for get_scan_stats()."""

    def test_counts_and_distribution(self, db_conn, seed_posts):
        posts = seed_posts(5, "post")
        seed_posts(2, "post", post_status="draft")
        set_post_meta(db_conn, posts[0], "last_scan", _epoch(2024, 3, 1))
        set_post_meta(db_conn, posts[1], "last_scan", _epoch(2024, 3, 1))
        set_post_meta(db_conn, posts[2], "last_scan", _epoch(2024, 3, 2))

        stats = get_scan_stats(db_conn, ["post"])

        assert stats.total == 5
        assert stats.scanned == 3
        assert stats.unscanned == 2
        assert stats.date_distribution == {"2024-03-02": 1, "2024-03-01": 2}
        assert list(stats.date_distribution) == ["2024-03-02", "2024-03-01"]

    def test_other_meta_keys_ignored(self, db_conn, seed_posts):
        (post_id,) = seed_posts(1)
        set_post_meta(db_conn, post_id, "other", _epoch(2024, 1, 1))

        stats = get_scan_stats(db_conn, ["post"])

        assert stats.scanned == 0
        assert stats.date_distribution == {}

    def test_empty(self, db_conn):
        stats = get_scan_stats(db_conn, ["post"])

        assert stats.to_dict() == {
            "total": 0,
            "scanned": 0,
            "unscanned": 0,
            "date_distribution": {},
        }


class TestScanStats:
    def test_percent(self):
        stats = ScanStats(total=8, scanned=3)

        assert stats.percent(stats.scanned) == 37.5
        assert stats.percent(stats.unscanned) == 62.5

    def test_percent_of_nothing(self):
        assert ScanStats(total=0, scanned=0).percent(0) == 0.0
