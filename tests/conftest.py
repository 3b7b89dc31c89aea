"""Shared test fixtures for postmaint."""

import os
import sqlite3
from collections.abc import Callable
from pathlib import Path

import pytest

from postmaint.config import clear_config_cache
from postmaint.config.models import ScanConfig
from postmaint.db import initialize_database, insert_post
from postmaint.db.connection import open_connection
from postmaint.scan import MemoryProgressStore, ScanController


class FakeClock:
    """Manually advanced epoch clock.

    Usable as both the ``clock`` and the ``sleep`` of engine components, so
    that worker waits advance time instead of blocking.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)


class FakeContentSource:
    """In-memory content source with injectable failures."""

    def __init__(
        self,
        ids: list[int] | None = None,
        *,
        failing_ids: set[int] | None = None,
        raising_ids: set[int] | None = None,
        page_error: Exception | None = None,
        count_error: Exception | None = None,
    ) -> None:
        self.ids = list(ids or [])
        self.failing_ids = failing_ids or set()
        self.raising_ids = raising_ids or set()
        self.page_error = page_error
        self.count_error = count_error
        self.touched: list[int] = []
        self.page_calls: list[tuple[int, int]] = []

    def count(self, post_types) -> int:
        if self.count_error is not None:
            raise self.count_error
        return len(self.ids)

    def page(self, post_types, limit: int, offset: int) -> list[int]:
        self.page_calls.append((limit, offset))
        if self.page_error is not None:
            raise self.page_error
        return self.ids[offset : offset + limit]

    def touch(self, post_id: int) -> bool:
        if post_id in self.raising_ids:
            raise RuntimeError(f"cannot touch {post_id}")
        if post_id in self.failing_ids:
            return False
        self.touched.append(post_id)
        return True


@pytest.fixture(autouse=True)
def postmaint_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate every test from the user's ~/.postmaint and POSTMAINT_* env."""
    for var in list(os.environ):
        if var.startswith("POSTMAINT_"):
            monkeypatch.delenv(var)
    data_dir = tmp_path / "postmaint-data"
    monkeypatch.setenv("POSTMAINT_DATA_DIR", str(data_dir))
    clear_config_cache()
    yield data_dir
    clear_config_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def db_conn(db_path: Path) -> sqlite3.Connection:
    """Initialized database connection."""
    conn = open_connection(db_path)
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def seed_posts(db_conn: sqlite3.Connection) -> Callable[..., list[int]]:
    """Insert posts and return their IDs."""

    def _seed(
        count: int, post_type: str = "post", post_status: str = "publish"
    ) -> list[int]:
        return [
            insert_post(
                db_conn, post_type, post_status=post_status, title=f"{post_type} {i}"
            )
            for i in range(count)
        ]

    return _seed


@pytest.fixture
def make_source() -> Callable[..., FakeContentSource]:
    """Factory for fake content sources."""
    return FakeContentSource


@pytest.fixture
def make_controller(clock: FakeClock) -> Callable[..., ScanController]:
    """Factory for controllers over a memory store and a fake clock.

    Keyword arguments other than source/store are ScanConfig overrides.
    """

    def _make(
        source: FakeContentSource | None = None,
        store: MemoryProgressStore | None = None,
        **config_overrides,
    ) -> ScanController:
        return ScanController(
            store if store is not None else MemoryProgressStore(),
            source if source is not None else FakeContentSource(),
            ScanConfig(**config_overrides),
            clock=clock,
        )

    return _make
