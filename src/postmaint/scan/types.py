"""Value types for the batch-scan engine.

All types here are plain data. They serialize to JSON-compatible dicts for
the progress store and the HTTP API and are rebuilt with from_dict().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScanStatus(str, Enum):
    """Lifecycle state of the (single) scan."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class NotificationType(str, Enum):
    """Severity of a user-facing scan notification."""

    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Notification:
    """Last user-facing event, shown until acknowledged or replaced."""

    type: NotificationType
    message: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Notification:
        return cls(
            type=NotificationType(data["type"]),
            message=str(data["message"]),
            timestamp=float(data["timestamp"]),
        )


@dataclass
class ScanProgress:
    """Counters for the scan in progress (or the last completed scan).

    Attributes:
        post_types: Ordered, de-duplicated post types, fixed for one scan.
        total: Matching-record count taken once at scan start.
        processed: Records touched so far, never more than total.
        current_offset: Offset of the next batch to fetch.
        batch_size: Records per batch for this scan.
        failed: Records whose mutation failed.
        batches: Number of batches applied.
    """

    post_types: list[str]
    total: int
    processed: int = 0
    current_offset: int = 0
    batch_size: int = 10
    failed: int = 0
    batches: int = 0

    @property
    def percent(self) -> float:
        """Completion percentage, 0.0 when there is nothing to scan."""
        if self.total <= 0:
            return 0.0
        return round(self.processed / self.total * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "post_types": list(self.post_types),
            "total": self.total,
            "processed": self.processed,
            "current_offset": self.current_offset,
            "batch_size": self.batch_size,
            "failed": self.failed,
            "batches": self.batches,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanProgress:
        return cls(
            post_types=list(data.get("post_types", [])),
            total=int(data.get("total", 0)),
            processed=int(data.get("processed", 0)),
            current_offset=int(data.get("current_offset", 0)),
            batch_size=int(data.get("batch_size", 10)),
            failed=int(data.get("failed", 0)),
            batches=int(data.get("batches", 0)),
        )


@dataclass(frozen=True)
class ScanState:
    """Snapshot of the persisted scan state machine."""

    status: ScanStatus
    started_at: float | None = None
    last_completed_at: float | None = None
    notification: Notification | None = None
    generation: int = 0


@dataclass(frozen=True)
class ScheduledBatch:
    """The pending continuation: the next batch to run and when.

    Attributes:
        post_types: Post types of the scan.
        batch_size: Records to fetch.
        offset: Offset to fetch from.
        due_at: Epoch seconds at which the batch may run.
        generation: Scan generation the batch belongs to.
    """

    post_types: tuple[str, ...]
    batch_size: int
    offset: int
    due_at: float
    generation: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "post_types": list(self.post_types),
            "batch_size": self.batch_size,
            "offset": self.offset,
            "due_at": self.due_at,
            "generation": self.generation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduledBatch:
        return cls(
            post_types=tuple(data["post_types"]),
            batch_size=int(data["batch_size"]),
            offset=int(data["offset"]),
            due_at=float(data["due_at"]),
            generation=int(data["generation"]),
        )


@dataclass(frozen=True)
class BatchResult:
    """Outcome of processing one batch.

    Attributes:
        count: Number of records actually mutated.
        ids: Identifiers fetched for this batch, in order.
        failed_ids: Identifiers whose mutation failed.
    """

    count: int
    ids: tuple[int, ...] = ()
    failed_ids: tuple[int, ...] = ()

    @property
    def exhausted(self) -> bool:
        """True when the page was empty: there is no more work."""
        return self.count == 0 and not self.failed_ids


@dataclass(frozen=True)
class StartResult:
    """Outcome of a start request."""

    ok: bool
    message: str
    generation: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "message": self.message}


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress as reported to observers (UI poll, CLI, API)."""

    status: ScanStatus
    percent: float = 0.0
    processed: int = 0
    total: int = 0
    failed: int = 0
    notification: Notification | None = None
    started_at: float | None = None
    last_completed_at: float | None = None
    post_types: list[str] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.status == ScanStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": self.percent,
            "processed": self.processed,
            "total": self.total,
            "failed": self.failed,
            "is_running": self.is_running,
            "notification": (
                self.notification.to_dict() if self.notification else None
            ),
            "started_at": self.started_at,
            "last_completed_at": self.last_completed_at,
            "post_types": list(self.post_types),
        }
