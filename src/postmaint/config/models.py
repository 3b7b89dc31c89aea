"""Configuration data models.

This module defines dataclasses for postmaint configuration options.
"""

from dataclasses import dataclass, field
from pathlib import Path

# Hard bounds for a single batch. A batch runs to completion without
# yielding, so it must stay small enough to never time out the host.
MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 100


@dataclass
class ScanConfig:
    """Configuration for the batch-scan engine."""

    batch_size: int = 10
    """Records processed per batch (1-100)."""

    startup_timeout_seconds: int = 60
    """A running scan with nothing processed after this long is stale."""

    overall_timeout_seconds: int = 300
    """A running scan older than this is stale regardless of progress."""

    inter_batch_delay_seconds: float = 1.0
    """Delay between one batch finishing and the next becoming due."""

    poll_interval_seconds: float = 1.0
    """Longest the worker sleeps between ticks."""

    daily_trigger_enabled: bool = True
    """Start a scan automatically once per daily interval."""

    daily_interval_hours: int = 24

    post_types: list[str] = field(default_factory=lambda: ["post", "page"])
    """Post types used by the daily trigger and as the CLI default."""

    post_status: str = "publish"
    """Only posts with this status are scanned."""

    meta_key: str = "last_scan"
    """Meta key stamped with the scan timestamp on every touched post."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not MIN_BATCH_SIZE <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be between {MIN_BATCH_SIZE} and "
                f"{MAX_BATCH_SIZE}, got {self.batch_size}"
            )
        if self.startup_timeout_seconds < 1:
            raise ValueError(
                "startup_timeout_seconds must be at least 1, "
                f"got {self.startup_timeout_seconds}"
            )
        if self.overall_timeout_seconds < self.startup_timeout_seconds:
            raise ValueError(
                "overall_timeout_seconds must not be less than "
                f"startup_timeout_seconds, got {self.overall_timeout_seconds}"
            )
        if self.inter_batch_delay_seconds < 0:
            raise ValueError(
                "inter_batch_delay_seconds must not be negative, "
                f"got {self.inter_batch_delay_seconds}"
            )
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                "poll_interval_seconds must be positive, "
                f"got {self.poll_interval_seconds}"
            )
        if self.daily_interval_hours < 1:
            raise ValueError(
                "daily_interval_hours must be at least 1, "
                f"got {self.daily_interval_hours}"
            )
        if not self.post_types:
            raise ValueError("post_types must not be empty")


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class ServerConfig:
    """Configuration for the HTTP API."""

    bind: str = "127.0.0.1"
    port: int = 8330

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")


@dataclass
class PostmaintConfig:
    """Complete postmaint configuration."""

    database_path: Path | None = None
    scan: ScanConfig = field(default_factory=ScanConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
