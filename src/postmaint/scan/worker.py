"""Scan worker: drives scheduled batches to completion.

The worker is the deferred-execution mechanism of the engine. Each tick it
reclaims a stale scan, fires the daily trigger, and claims and runs the due
continuation. Between ticks it sleeps until the next batch is due, capped at
the poll interval.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from postmaint.scan.controller import ScanController
from postmaint.scan.daily import DailyTrigger
from postmaint.scan.types import BatchResult, ScanStatus

logger = logging.getLogger(__name__)


class ScanWorker:
    """Polling driver for the scan controller.

    Args:
        controller: Scan controller to drive.
        daily_trigger: Optional daily trigger fired on each tick.
        poll_interval: Longest sleep between ticks, in seconds.
        clock: Returns the current epoch time.
        sleep: Called with the number of seconds to wait. Defaults to
            waiting on the shutdown event so that shutdown interrupts it.
    """

    def __init__(
        self,
        controller: ScanController,
        *,
        daily_trigger: DailyTrigger | None = None,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        self.controller = controller
        self.scheduler = controller.scheduler
        self.daily_trigger = daily_trigger
        self.poll_interval = poll_interval
        self._clock = clock
        self._shutdown = threading.Event()
        self._sleep = sleep or self._shutdown.wait
        self._batches_run = 0

    @property
    def batches_run(self) -> int:
        return self._batches_run

    def request_shutdown(self) -> None:
        """Ask the worker to stop after the current batch."""
        self._shutdown.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def tick(self) -> BatchResult | None:
        """Run one worker cycle.

        Returns:
            The result of the batch that ran, or None if nothing ran.
        """
        self.controller.check_watchdog()

        if self.daily_trigger is not None:
            self.daily_trigger.maybe_run()

        batch = self.scheduler.claim_due(self._clock())
        if batch is None:
            return None

        result = self.controller.run_batch(batch)
        self._batches_run += 1
        return result

    def next_delay(self) -> float:
        """Seconds to sleep before the next tick."""
        until_due = self.scheduler.seconds_until_due()
        if until_due is None:
            return self.poll_interval
        return min(until_due, self.poll_interval)

    def run(
        self,
        *,
        max_duration: float | None = None,
        once: bool = False,
        install_signal_handlers: bool = True,
    ) -> int:
        """Run the worker loop until shutdown.

        Args:
            max_duration: Stop after this many seconds.
            once: Run a single tick and return.
            install_signal_handlers: Handle SIGINT/SIGTERM for graceful
                shutdown (main thread only).

        Returns:
            Number of batches run.
        """
        start_time = self._clock()
        start_count = self._batches_run
        logger.info("Scan worker started")
        with self._signal_handlers(install_signal_handlers):
            try:
                while not self._shutdown.is_set():
                    self._safe_tick()
                    if once:
                        break
                    if max_duration is not None:
                        if self._clock() - start_time >= max_duration:
                            logger.info(
                                "Reached max duration limit (%d seconds)",
                                max_duration,
                            )
                            break
                    delay = self.next_delay()
                    if delay > 0:
                        self._sleep(delay)
            finally:
                logger.info(
                    "Scan worker stopped after %d batches",
                    self._batches_run - start_count,
                )
        return self._batches_run - start_count

    def drain(
        self,
        on_batch: Callable[[BatchResult | None], None] | None = None,
        *,
        max_batches: int | None = None,
        install_signal_handlers: bool = True,
    ) -> ScanStatus:
        """Run the current scan in the foreground until it leaves running.

        The daily trigger is not fired. SIGINT/SIGTERM stop draining after
        the current batch, leaving the scan running with its next batch
        scheduled so a worker can resume it.

        Args:
            on_batch: Called after each batch with its result.
            max_batches: Stop after this many batches (safety limit).
            install_signal_handlers: Handle SIGINT/SIGTERM (main thread only).

        Returns:
            The scan status when draining stopped.
        """
        ran = 0
        with self._signal_handlers(install_signal_handlers):
            while not self._shutdown.is_set():
                if self.controller.check_watchdog() is not None:
                    break
                if self.controller.get_state().status != ScanStatus.RUNNING:
                    break
                if max_batches is not None and ran >= max_batches:
                    logger.warning("Reached batch limit (%d), stopping", max_batches)
                    break

                batch = self.scheduler.claim_due(self._clock())
                if batch is None:
                    self._sleep(self.next_delay())
                    continue

                result = self.controller.run_batch(batch)
                self._batches_run += 1
                ran += 1
                if on_batch is not None:
                    on_batch(result)

        if self._shutdown.is_set():
            logger.info("Drain interrupted after %d batches", ran)

        return self.controller.get_state().status

    def _safe_tick(self) -> None:
        try:
            self.tick()
        except Exception:
            logger.exception("Scan worker tick failed")

    @contextmanager
    def _signal_handlers(self, install: bool) -> Iterator[None]:
        """Route SIGINT/SIGTERM to request_shutdown while the body runs."""
        previous_handlers = {}
        if install and threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGTERM, signal.SIGINT):
                previous_handlers[signum] = signal.signal(
                    signum, self._signal_handler
                )
        try:
            yield
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

    def _signal_handler(self, signum: int, frame) -> None:
        """Handle shutdown signals."""
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, requesting shutdown...", sig_name)
        self._shutdown.set()
