"""Daily trigger: starts a scan with configured defaults once per interval."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from postmaint.scan.controller import ScanController
from postmaint.scan.store import KEY_DAILY_LAST_RUN, ProgressStore
from postmaint.scan.types import StartResult

logger = logging.getLogger(__name__)


class DailyTrigger:
    """Starts a scan when the daily interval has elapsed.

    The attempt time is recorded even when the start is rejected because a
    scan is already running, so a busy engine is not retried on every tick.
    """

    def __init__(
        self,
        controller: ScanController,
        store: ProgressStore,
        *,
        post_types: Sequence[str],
        batch_size: int,
        interval_seconds: float = 86400,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.controller = controller
        self.store = store
        self.post_types = list(post_types)
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self._clock = clock

    def last_run(self) -> float | None:
        value = self.store.get(KEY_DAILY_LAST_RUN)
        return float(value) if value is not None else None

    def is_due(self, now: float | None = None) -> bool:
        if not self.enabled:
            return False
        last = self.last_run()
        if last is None:
            return True
        current = self._clock() if now is None else now
        return current - last >= self.interval_seconds

    def maybe_run(self) -> StartResult | None:
        """Start the daily scan if it is due.

        Returns:
            The start result, or None if no attempt was made.
        """
        now = self._clock()
        with self.store.transaction():
            if not self.is_due(now):
                return None
            self.store.set(KEY_DAILY_LAST_RUN, now)

        result = self.controller.start(self.post_types, self.batch_size)
        if result.ok:
            logger.info("Daily scan started")
        else:
            logger.info("Daily scan skipped: %s", result.message)
        return result
