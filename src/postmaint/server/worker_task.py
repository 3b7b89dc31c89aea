"""Background scan worker task for the server.

Drives ScanWorker.tick() from the event loop so that scans started through
the API advance without a separate worker process.
"""

from __future__ import annotations

import asyncio
import logging

from postmaint.scan.worker import ScanWorker

logger = logging.getLogger(__name__)

# Number of consecutive failures before marking unhealthy
_UNHEALTHY_THRESHOLD = 3


class ScanWorkerTask:
    """Background task that ticks the scan worker.

    Usage:
        task = ScanWorkerTask(worker)
        asyncio.create_task(task.run())
        # ... later ...
        task.stop()
    """

    def __init__(self, worker: ScanWorker) -> None:
        self.worker = worker
        self._stop_event = asyncio.Event()
        self._running = False
        self._state_lock = asyncio.Lock()
        self._consecutive_failures = 0
        self._is_healthy = True

    async def run(self) -> None:
        """Run the tick loop until stop() is called."""
        async with self._state_lock:
            if self._running:
                logger.warning("Scan worker task already running")
                return
            self._running = True

        logger.info(
            "Scan worker task started (poll interval %.1f seconds)",
            self.worker.poll_interval,
        )

        try:
            while not self._stop_event.is_set():
                delay = await self._tick()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass  # Normal case - next tick is due
        except asyncio.CancelledError:
            pass
        finally:
            async with self._state_lock:
                self._running = False
            logger.info("Scan worker task stopped")

    def stop(self) -> None:
        """Signal the task to stop."""
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_healthy(self) -> bool:
        return self._is_healthy

    async def _tick(self) -> float:
        """Run one tick and return the seconds until the next one."""
        try:
            await asyncio.to_thread(self.worker.tick)
            delay = await asyncio.to_thread(self.worker.next_delay)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._consecutive_failures += 1
            if self._consecutive_failures >= _UNHEALTHY_THRESHOLD:
                self._is_healthy = False
            logger.exception(
                "Scan worker tick failed (%d consecutive)",
                self._consecutive_failures,
            )
            return self.worker.poll_interval
        self._consecutive_failures = 0
        self._is_healthy = True
        return delay
