"""Stale-scan watchdog.

A running scan is stale when it has processed nothing within the startup
timeout, or when it has been running longer than the overall timeout.
Foreground runs pass no overall timeout and are bounded by batch count.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum

from postmaint.scan.types import ScanStatus


class StaleReason(str, Enum):
    """Which timeout declared the scan stale."""

    STARTUP_STALL = "startup_stall"
    OVERALL_TIMEOUT = "overall_timeout"


class StaleScanWatchdog:
    """Detects a wedged scan from elapsed time and processed count."""

    def __init__(
        self,
        startup_timeout: float = 60,
        overall_timeout: float | None = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.startup_timeout = startup_timeout
        self.overall_timeout = overall_timeout
        self._clock = clock

    def check(
        self, status: ScanStatus, started_at: float | None, processed: int
    ) -> StaleReason | None:
        """Return why the scan is stale, or None if it is healthy.

        Scans that are not running are never stale. A running scan without a
        start time is treated as a startup stall.
        """
        if status != ScanStatus.RUNNING:
            return None
        if started_at is None:
            return StaleReason.STARTUP_STALL

        elapsed = self._clock() - started_at
        if processed == 0 and elapsed > self.startup_timeout:
            return StaleReason.STARTUP_STALL
        if self.overall_timeout is not None and elapsed > self.overall_timeout:
            return StaleReason.OVERALL_TIMEOUT
        return None

    def is_stale(
        self, status: ScanStatus, started_at: float | None, processed: int
    ) -> bool:
        return self.check(status, started_at, processed) is not None

    def describe(self, reason: StaleReason) -> str:
        """User-facing message for a watchdog demotion."""
        if reason == StaleReason.STARTUP_STALL:
            return "Scan failed to start properly. Please try again."
        if self.overall_timeout is None:
            return "Scan timed out. Please try again."
        minutes = max(1, round(self.overall_timeout / 60))
        return (
            f"Scan timed out after {minutes} minutes. "
            "Please try again with a smaller batch size."
        )
