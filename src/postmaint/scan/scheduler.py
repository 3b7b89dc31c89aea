"""Scheduler for the pending scan continuation.

At most one ScheduledBatch exists, stored under the scan_schedule key. The
scheduler owns only that key; the scan worker claims due batches and hands
them to the controller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from postmaint.scan.store import KEY_SCHEDULE, ProgressStore
from postmaint.scan.types import ScheduledBatch

logger = logging.getLogger(__name__)


class Scheduler:
    """Registers, cancels and claims the one-shot scan continuation.

    Args:
        store: Progress store holding the continuation.
        inter_batch_delay: Seconds between one batch finishing and the next
            becoming due.
        clock: Returns the current epoch time.
    """

    def __init__(
        self,
        store: ProgressStore,
        inter_batch_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.inter_batch_delay = inter_batch_delay
        self._clock = clock

    def enqueue(
        self,
        post_types: Sequence[str],
        batch_size: int,
        offset: int,
        generation: int,
        delay: float = 0.0,
    ) -> ScheduledBatch:
        """Register the continuation, replacing any pending one."""
        batch = ScheduledBatch(
            post_types=tuple(post_types),
            batch_size=batch_size,
            offset=offset,
            due_at=self._clock() + max(0.0, delay),
            generation=generation,
        )
        self.store.set(KEY_SCHEDULE, batch.to_dict())
        logger.debug(
            "Scheduled batch at offset %d (generation %d) in %.2fs",
            offset,
            generation,
            delay,
        )
        return batch

    def enqueue_first(
        self,
        post_types: Sequence[str],
        batch_size: int,
        generation: int,
    ) -> ScheduledBatch:
        """Register the first batch of a scan, due immediately."""
        return self.enqueue(post_types, batch_size, 0, generation, delay=0.0)

    def enqueue_next(
        self,
        post_types: Sequence[str],
        batch_size: int,
        offset: int,
        generation: int,
    ) -> ScheduledBatch:
        """Register a follow-up batch after the inter-batch delay."""
        return self.enqueue(
            post_types, batch_size, offset, generation, delay=self.inter_batch_delay
        )

    def cancel(self) -> bool:
        """Remove the pending continuation. Returns True if one existed."""
        removed = self.store.delete(KEY_SCHEDULE)
        if removed:
            logger.debug("Cancelled pending batch")
        return removed

    def pending(self) -> ScheduledBatch | None:
        data = self.store.get(KEY_SCHEDULE)
        if not data:
            return None
        try:
            return ScheduledBatch.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed scheduled batch: %s", e)
            self.store.delete(KEY_SCHEDULE)
            return None

    def seconds_until_due(self) -> float | None:
        """Seconds until the pending batch is due (0 if overdue), or None."""
        batch = self.pending()
        if batch is None:
            return None
        return max(0.0, batch.due_at - self._clock())

    def claim_due(self, now: float | None = None) -> ScheduledBatch | None:
        """Atomically remove and return the continuation if it is due.

        Two drivers sharing a store cannot claim the same continuation: the
        read and delete happen in one store transaction.

        Args:
            now: Current epoch time (defaults to the clock).

        Returns:
            The claimed batch, or None if nothing is due.
        """
        current = self._clock() if now is None else now
        with self.store.transaction():
            batch = self.pending()
            if batch is None or batch.due_at > current:
                return None
            self.store.delete(KEY_SCHEDULE)
        logger.debug(
            "Claimed batch at offset %d (generation %d)",
            batch.offset,
            batch.generation,
        )
        return batch
