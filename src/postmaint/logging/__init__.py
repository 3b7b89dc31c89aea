"""Structured logging module for postmaint.

Provides configurable logging with JSON format support and file rotation.
Includes scan context support so batch log lines carry the scan they belong to.
"""

from postmaint.logging.config import configure_logging
from postmaint.logging.context import (
    ScanContextFilter,
    clear_scan_context,
    get_scan_context,
    scan_context,
    set_scan_context,
)
from postmaint.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "ScanContextFilter",
    "clear_scan_context",
    "configure_logging",
    "get_scan_context",
    "scan_context",
    "set_scan_context",
]
