"""Batch processor: applies the maintenance action to one page of records."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from postmaint.scan.source import ContentSource
from postmaint.scan.types import BatchResult

logger = logging.getLogger(__name__)


class BatchProcessor:
    """Fetches one page and touches each record in it.

    Args:
        source: Content source to read from and mutate.
        dry_run: Fetch pages without mutating. Every fetched id counts as
            processed.
    """

    def __init__(self, source: ContentSource, *, dry_run: bool = False) -> None:
        self.source = source
        self.dry_run = dry_run

    def run(
        self, post_types: Sequence[str], batch_size: int, offset: int
    ) -> BatchResult:
        """Process one batch.

        A failing touch() (False or an exception) is recorded in failed_ids
        and does not abort the batch. Errors from page() propagate.

        Args:
            post_types: Post types to scan.
            batch_size: Maximum records to fetch.
            offset: Offset of the page to fetch.

        Returns:
            BatchResult with the number of records mutated.
        """
        ids = self.source.page(post_types, batch_size, offset)
        if not ids:
            logger.debug("Empty page at offset %d", offset)
            return BatchResult(count=0)

        if self.dry_run:
            return BatchResult(count=len(ids), ids=tuple(ids))

        failed: list[int] = []
        for post_id in ids:
            try:
                ok = self.source.touch(post_id)
            except Exception as e:
                logger.warning("Failed to touch post %d: %s", post_id, e)
                ok = False
            if not ok:
                failed.append(post_id)

        count = len(ids) - len(failed)
        logger.debug(
            "Batch at offset %d: %d touched, %d failed", offset, count, len(failed)
        )
        return BatchResult(count=count, ids=tuple(ids), failed_ids=tuple(failed))
