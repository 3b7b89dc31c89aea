"""Resumable batch-scan engine.

Module organization:
- types.py: Value types (ScanStatus, ScanProgress, ScheduledBatch, ...)
- store.py: Durable key/value progress store
- source.py: Content source protocol and SQLite implementation
- processor.py: Processes one batch
- watchdog.py: Stale-scan detection
- scheduler.py: The pending continuation
- controller.py: The scan state machine
- worker.py: Polling driver for scheduled batches
- daily.py: Daily trigger
- stats.py: Scan coverage statistics
- factory.py: Engine wiring from configuration
"""

from postmaint.scan.controller import (
    MSG_ALREADY_RUNNING,
    MSG_STARTED,
    ScanController,
    normalize_post_types,
    validate_batch_size,
)
from postmaint.scan.daily import DailyTrigger
from postmaint.scan.exceptions import ScanError, ScanValidationError
from postmaint.scan.factory import ScanEngine, create_engine
from postmaint.scan.processor import BatchProcessor
from postmaint.scan.scheduler import Scheduler
from postmaint.scan.source import ContentSource, SqliteContentSource
from postmaint.scan.stats import ScanStats, get_scan_stats
from postmaint.scan.store import (
    MemoryProgressStore,
    ProgressStore,
    SqliteProgressStore,
)
from postmaint.scan.types import (
    BatchResult,
    Notification,
    NotificationType,
    ProgressSnapshot,
    ScanProgress,
    ScanState,
    ScanStatus,
    ScheduledBatch,
    StartResult,
)
from postmaint.scan.watchdog import StaleReason, StaleScanWatchdog
from postmaint.scan.worker import ScanWorker

__all__ = [
    # Types
    "BatchResult",
    "Notification",
    "NotificationType",
    "ProgressSnapshot",
    "ScanProgress",
    "ScanState",
    "ScanStatus",
    "ScheduledBatch",
    "StartResult",
    # Exceptions
    "ScanError",
    "ScanValidationError",
    # Components
    "BatchProcessor",
    "ContentSource",
    "DailyTrigger",
    "MemoryProgressStore",
    "ProgressStore",
    "ScanController",
    "ScanWorker",
    "Scheduler",
    "SqliteContentSource",
    "SqliteProgressStore",
    "StaleReason",
    "StaleScanWatchdog",
    # Wiring
    "ScanEngine",
    "create_engine",
    # Statistics
    "ScanStats",
    "get_scan_stats",
    # Helpers
    "MSG_ALREADY_RUNNING",
    "MSG_STARTED",
    "normalize_post_types",
    "validate_batch_size",
]
