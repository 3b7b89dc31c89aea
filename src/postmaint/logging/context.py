"""Scan context for structured logging.

Provides context propagation using contextvars, enabling automatic
injection of the scan generation and batch offset into log records.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_scan_generation: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "scan_generation", default=None
)
_batch_offset: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "batch_offset", default=None
)


def set_scan_context(generation: int, offset: int | None = None) -> None:
    """Set the current scan context.

    Args:
        generation: Scan generation token.
        offset: Offset of the batch being processed, if any.
    """
    _scan_generation.set(generation)
    _batch_offset.set(offset)


def clear_scan_context() -> None:
    """Clear the current scan context."""
    _scan_generation.set(None)
    _batch_offset.set(None)


@contextmanager
def scan_context(
    generation: int, offset: int | None = None
) -> Generator[None, None, None]:
    """Context manager for batch processing context.

    Sets scan context on entry and restores the previous one on exit.

    Example:
        with scan_context(3, 20):
            logger.info("Processing batch")  # Tagged [S3:O20]
    """
    old_generation = _scan_generation.get()
    old_offset = _batch_offset.get()
    try:
        set_scan_context(generation, offset)
        yield
    finally:
        _scan_generation.set(old_generation)
        _batch_offset.set(old_offset)


def get_scan_context() -> tuple[int | None, int | None]:
    """Get current scan context as (generation, offset)."""
    return _scan_generation.get(), _batch_offset.get()


class ScanContextFilter(logging.Filter):
    """Logging filter that injects scan context into log records.

    Adds scan_generation and batch_offset attributes for JSON output and a
    compact scan_tag like ``[S3:O20] `` for text output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject scan context into the record. Never filters records out."""
        generation, offset = get_scan_context()

        record.scan_generation = generation
        record.batch_offset = offset

        if generation is None:
            record.scan_tag = ""
        elif offset is None:
            record.scan_tag = f"[S{generation}] "
        else:
            record.scan_tag = f"[S{generation}:O{offset}] "

        return True
