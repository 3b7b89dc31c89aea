"""Scan controller: the state machine of the batch-scan engine.

State transitions:

    idle --start--> running --(empty batch)--> completed --start--> running
    running --watchdog--> idle
    running --processor exception--> error
    running | completed | error --reset--> idle
    error --start--> running

Every read-modify-write of the scan state happens inside one store
transaction, and every scan is identified by a generation token. A batch
whose generation no longer matches, or that arrives when the scan is not
running, is discarded.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from postmaint.config.models import MAX_BATCH_SIZE, MIN_BATCH_SIZE, ScanConfig
from postmaint.logging.context import scan_context
from postmaint.scan.exceptions import ScanValidationError
from postmaint.scan.processor import BatchProcessor
from postmaint.scan.scheduler import Scheduler
from postmaint.scan.source import ContentSource
from postmaint.scan.store import (
    KEY_GENERATION,
    KEY_LAST_SCAN_TIME,
    KEY_NOTIFICATION,
    KEY_PROGRESS,
    KEY_START_TIME,
    KEY_STATUS,
    ProgressStore,
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

logger = logging.getLogger(__name__)

MSG_STARTED = "Scan started successfully"
MSG_ALREADY_RUNNING = "A scan is already running."


def normalize_post_types(post_types: Sequence[str] | str) -> list[str]:
    """Validate and de-duplicate post types, preserving order.

    A single string is treated as a comma-separated list.

    Raises:
        ScanValidationError: If the list is empty or contains a blank or
            non-string entry.
    """
    if isinstance(post_types, str):
        post_types = post_types.split(",")

    result: list[str] = []
    for post_type in post_types:
        if not isinstance(post_type, str) or not post_type.strip():
            raise ScanValidationError(
                "post_types", "Post types must be non-empty strings."
            )
        name = post_type.strip()
        if name not in result:
            result.append(name)

    if not result:
        raise ScanValidationError(
            "post_types", "Please select at least one post type."
        )
    return result


def validate_batch_size(batch_size: object) -> int:
    """Validate a batch size.

    Raises:
        ScanValidationError: If batch_size is not an int within bounds.
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ScanValidationError("batch_size", "Batch size must be an integer.")
    if not MIN_BATCH_SIZE <= batch_size <= MAX_BATCH_SIZE:
        raise ScanValidationError(
            "batch_size",
            f"Batch size must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}.",
        )
    return batch_size


class ScanController:
    """Starts, advances, finalizes and resets the single scan.

    Args:
        store: Durable scan state.
        source: Records to scan.
        config: Scan configuration (defaults apply when omitted).
        processor: Batch processor (defaults to one over source).
        scheduler: Continuation scheduler (defaults to one over store).
        watchdog: Stale-scan watchdog (defaults from config).
        clock: Returns the current epoch time.
    """

    def __init__(
        self,
        store: ProgressStore,
        source: ContentSource,
        config: ScanConfig | None = None,
        *,
        processor: BatchProcessor | None = None,
        scheduler: Scheduler | None = None,
        watchdog: StaleScanWatchdog | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ScanConfig()
        self.store = store
        self.source = source
        self._clock = clock
        self.processor = processor or BatchProcessor(source)
        self.scheduler = scheduler or Scheduler(
            store, self.config.inter_batch_delay_seconds, clock
        )
        self.watchdog = watchdog or StaleScanWatchdog(
            self.config.startup_timeout_seconds,
            self.config.overall_timeout_seconds,
            clock,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(
        self, post_types: Sequence[str] | str, batch_size: int | None = None
    ) -> StartResult:
        """Start a new scan.

        Args:
            post_types: Post types to scan.
            batch_size: Records per batch (defaults to the configured size).

        Returns:
            StartResult; ok is False when a scan is already running or the
            record count could not be taken.

        Raises:
            ScanValidationError: If the parameters are invalid. No state
                changes in that case.
        """
        types = normalize_post_types(post_types)
        size = validate_batch_size(
            self.config.batch_size if batch_size is None else batch_size
        )

        try:
            total = self.source.count(types)
        except Exception as e:
            logger.error("Could not count posts for scan: %s", e)
            message = f"Failed to start scan: {e}"
            with self.store.transaction():
                if self._status() != ScanStatus.RUNNING:
                    self._notify(NotificationType.ERROR, message)
            return StartResult(ok=False, message=message)

        with self.store.transaction():
            self._reclaim_if_stale()
            if self._status() == ScanStatus.RUNNING:
                logger.info("Start rejected: a scan is already running")
                return StartResult(ok=False, message=MSG_ALREADY_RUNNING)

            generation = self._bump_generation()
            progress = ScanProgress(post_types=types, total=total, batch_size=size)
            self.store.set(KEY_PROGRESS, progress.to_dict())
            self.store.set(KEY_STATUS, ScanStatus.RUNNING.value)
            self.store.set(KEY_START_TIME, self._clock())
            self.store.delete(KEY_NOTIFICATION)
            self.scheduler.enqueue_first(types, size, generation)

        logger.info(
            "Scan %d started: %d posts of types %s, batch size %d",
            generation,
            total,
            ", ".join(types),
            size,
        )
        return StartResult(ok=True, message=MSG_STARTED, generation=generation)

    def reset(self) -> None:
        """Return to idle from any state. Idempotent."""
        with self.store.transaction():
            self.scheduler.cancel()
            self.store.delete(KEY_PROGRESS)
            self.store.delete(KEY_NOTIFICATION)
            self.store.delete(KEY_START_TIME)
            self.store.set(KEY_STATUS, ScanStatus.IDLE.value)
            generation = self._bump_generation()
        logger.info("Scan state reset (generation %d)", generation)

    def clear_notification(self) -> bool:
        """Acknowledge the current notification. Returns True if one existed."""
        return self.store.delete(KEY_NOTIFICATION)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self) -> ScanState:
        """Read the scan state without side effects."""
        started_at = self.store.get(KEY_START_TIME)
        last_completed = self.store.get(KEY_LAST_SCAN_TIME)
        return ScanState(
            status=self._status(),
            started_at=float(started_at) if started_at is not None else None,
            last_completed_at=(
                float(last_completed) if last_completed is not None else None
            ),
            notification=self._notification(),
            generation=self._generation(),
        )

    def get_progress(self) -> ProgressSnapshot:
        """Report progress, reclaiming a stale scan first."""
        self.check_watchdog()
        with self.store.transaction():
            state = self.get_state()
            progress = self._load_progress()

        if progress is None:
            return ProgressSnapshot(
                status=state.status,
                notification=state.notification,
                started_at=state.started_at,
                last_completed_at=state.last_completed_at,
            )
        return ProgressSnapshot(
            status=state.status,
            percent=progress.percent,
            processed=progress.processed,
            total=progress.total,
            failed=progress.failed,
            notification=state.notification,
            started_at=state.started_at,
            last_completed_at=state.last_completed_at,
            post_types=list(progress.post_types),
        )

    def get_scan_progress(self) -> ScanProgress | None:
        """Raw progress record, if one exists."""
        return self._load_progress()

    def check_watchdog(self) -> StaleReason | None:
        """Demote a stale running scan to idle.

        Returns:
            The reason the scan was demoted, or None if it was healthy.
        """
        with self.store.transaction():
            return self._reclaim_if_stale()

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------

    def run_batch(self, batch: ScheduledBatch) -> BatchResult | None:
        """Execute one continuation.

        Returns:
            The batch result, or None if the batch was discarded or failed.
        """
        if not self._is_current(batch):
            logger.info(
                "Discarding batch at offset %d from generation %d",
                batch.offset,
                batch.generation,
            )
            return None

        with scan_context(batch.generation, batch.offset):
            try:
                result = self.processor.run(
                    batch.post_types, batch.batch_size, batch.offset
                )
            except Exception as e:
                logger.exception("Batch at offset %d failed", batch.offset)
                self._fail(batch, e)
                return None

            self.on_batch_completed(batch, result)
        return result

    def on_batch_completed(self, batch: ScheduledBatch, result: BatchResult) -> bool:
        """Apply a batch result to the progress record.

        Returns:
            True if the result was applied, False if it was discarded.
        """
        with self.store.transaction():
            if not self._is_current(batch):
                logger.info("Discarding stale batch completion")
                return False

            progress = self._load_progress()
            if progress is None:
                logger.warning("Running scan has no progress record")
                return False

            progress.processed = min(
                progress.total, progress.processed + max(0, result.count)
            )
            progress.failed += len(result.failed_ids)
            progress.current_offset += batch.batch_size
            progress.batches += 1
            self.store.set(KEY_PROGRESS, progress.to_dict())

            if result.exhausted:
                self._complete(progress)
                return True

            reason = self.watchdog.check(
                ScanStatus.RUNNING, self._started_at(), progress.processed
            )
            if reason is not None:
                self._demote(reason)
                return True

            self.scheduler.enqueue_next(
                progress.post_types,
                batch.batch_size,
                progress.current_offset,
                batch.generation,
            )

        logger.info(
            "Processed %d/%d posts (%.1f%%)",
            progress.processed,
            progress.total,
            progress.percent,
        )
        return True

    # ------------------------------------------------------------------
    # Internal transitions (callers hold a store transaction)
    # ------------------------------------------------------------------

    def _complete(self, progress: ScanProgress) -> None:
        now = self._clock()
        # Nothing left to resume; counts stay for status reads
        progress.current_offset = 0
        self.store.set(KEY_PROGRESS, progress.to_dict())
        self.store.set(KEY_STATUS, ScanStatus.COMPLETED.value)
        self.store.set(KEY_LAST_SCAN_TIME, now)
        self.scheduler.cancel()
        if progress.failed > 0:
            self._notify(
                NotificationType.WARNING,
                f"Scan completed with {progress.failed} failed posts. "
                f"Processed {progress.processed} posts.",
            )
        else:
            self._notify(
                NotificationType.SUCCESS,
                "Scan completed successfully! "
                f"Processed {progress.processed} posts.",
            )
        logger.info(
            "Scan completed: %d processed, %d failed in %d batches",
            progress.processed,
            progress.failed,
            progress.batches,
        )

    def _demote(self, reason: StaleReason) -> None:
        message = self.watchdog.describe(reason)
        self.store.set(KEY_STATUS, ScanStatus.IDLE.value)
        self.scheduler.cancel()
        self.store.delete(KEY_PROGRESS)
        self.store.delete(KEY_START_TIME)
        self._notify(NotificationType.ERROR, message)
        logger.warning("Stale scan reclaimed (%s): %s", reason.value, message)

    def _fail(self, batch: ScheduledBatch, error: Exception) -> None:
        with self.store.transaction():
            if not self._is_current(batch):
                return
            self.store.set(KEY_STATUS, ScanStatus.ERROR.value)
            self.scheduler.cancel()
            self.store.delete(KEY_PROGRESS)
            self._notify(NotificationType.ERROR, f"Scan failed: {error}")

    def _reclaim_if_stale(self) -> StaleReason | None:
        status = self._status()
        if status != ScanStatus.RUNNING:
            return None
        progress = self._load_progress()
        processed = progress.processed if progress else 0
        reason = self.watchdog.check(status, self._started_at(), processed)
        if reason is not None:
            self._demote(reason)
        return reason

    def _is_current(self, batch: ScheduledBatch) -> bool:
        return (
            self._status() == ScanStatus.RUNNING
            and self._generation() == batch.generation
        )

    # ------------------------------------------------------------------
    # Store accessors
    # ------------------------------------------------------------------

    def _status(self) -> ScanStatus:
        value = self.store.get(KEY_STATUS, ScanStatus.IDLE.value)
        try:
            return ScanStatus(value)
        except ValueError:
            logger.warning("Unknown scan status %r, treating as idle", value)
            return ScanStatus.IDLE

    def _generation(self) -> int:
        return int(self.store.get(KEY_GENERATION, 0))

    def _bump_generation(self) -> int:
        generation = self._generation() + 1
        self.store.set(KEY_GENERATION, generation)
        return generation

    def _started_at(self) -> float | None:
        value = self.store.get(KEY_START_TIME)
        return float(value) if value is not None else None

    def _load_progress(self) -> ScanProgress | None:
        data = self.store.get(KEY_PROGRESS)
        if not data:
            return None
        return ScanProgress.from_dict(data)

    def _notification(self) -> Notification | None:
        data = self.store.get(KEY_NOTIFICATION)
        if not data:
            return None
        try:
            return Notification.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed scan notification")
            return None

    def _notify(self, type: NotificationType, message: str) -> None:
        notification = Notification(
            type=type, message=message, timestamp=self._clock()
        )
        self.store.set(KEY_NOTIFICATION, notification.to_dict())
