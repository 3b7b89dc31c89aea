"""Wiring of the scan engine components from configuration."""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass

from postmaint.config.models import ScanConfig
from postmaint.scan.controller import ScanController
from postmaint.scan.daily import DailyTrigger
from postmaint.scan.processor import BatchProcessor
from postmaint.scan.scheduler import Scheduler
from postmaint.scan.source import SqliteContentSource
from postmaint.scan.store import SqliteProgressStore
from postmaint.scan.watchdog import StaleScanWatchdog
from postmaint.scan.worker import ScanWorker


@dataclass
class ScanEngine:
    """The assembled engine."""

    controller: ScanController
    worker: ScanWorker
    daily_trigger: DailyTrigger


def create_engine(
    config: ScanConfig,
    conn: sqlite3.Connection,
    *,
    source_conn: sqlite3.Connection | None = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], object] | None = None,
    time_limit: bool = True,
) -> ScanEngine:
    """Build a SQLite-backed engine.

    Args:
        config: Scan configuration.
        conn: Connection for the progress store.
        source_conn: Separate connection for the content source. Required
            when the store runs transactions on another thread (server mode);
            defaults to conn.
        clock: Returns the current epoch time.
        sleep: Worker sleep function (see ScanWorker).
        time_limit: Apply the overall timeout. The startup stall check
            always applies.
    """
    store = SqliteProgressStore(conn)
    source = SqliteContentSource(
        source_conn if source_conn is not None else conn,
        post_status=config.post_status,
        meta_key=config.meta_key,
        clock=clock,
    )
    controller = ScanController(
        store,
        source,
        config,
        processor=BatchProcessor(source),
        scheduler=Scheduler(store, config.inter_batch_delay_seconds, clock),
        watchdog=StaleScanWatchdog(
            config.startup_timeout_seconds,
            config.overall_timeout_seconds if time_limit else None,
            clock,
        ),
        clock=clock,
    )
    daily_trigger = DailyTrigger(
        controller,
        store,
        post_types=config.post_types,
        batch_size=config.batch_size,
        interval_seconds=config.daily_interval_hours * 3600,
        enabled=config.daily_trigger_enabled,
        clock=clock,
    )
    worker = ScanWorker(
        controller,
        daily_trigger=daily_trigger,
        poll_interval=config.poll_interval_seconds,
        clock=clock,
        sleep=sleep,
    )
    return ScanEngine(
        controller=controller, worker=worker, daily_trigger=daily_trigger
    )
