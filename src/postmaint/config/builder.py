"""Configuration builder with explicit layering.

This module provides ConfigBuilder for building PostmaintConfig by composing
multiple configuration sources with explicit precedence handling.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from postmaint.config.env import EnvReader
from postmaint.config.models import (
    LoggingConfig,
    PostmaintConfig,
    ScanConfig,
    ServerConfig,
)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None values indicate "not specified in this source" and will not
    override values from lower-precedence sources.
    """

    # Database
    database_path: Path | None = None

    # Scan config
    scan_batch_size: int | None = None
    scan_startup_timeout_seconds: int | None = None
    scan_overall_timeout_seconds: int | None = None
    scan_inter_batch_delay_seconds: float | None = None
    scan_poll_interval_seconds: float | None = None
    scan_daily_trigger_enabled: bool | None = None
    scan_daily_interval_hours: int | None = None
    scan_post_types: list[str] | None = None
    scan_post_status: str | None = None
    scan_meta_key: str | None = None

    # Logging config
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None

    # Server config
    server_bind: str | None = None
    server_port: int | None = None


class ConfigBuilder:
    """Builds PostmaintConfig by layering ConfigSources with precedence.

    Later sources override earlier ones (for non-None values).

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build()
    """

    def __init__(self) -> None:
        """Initialize the builder with no values set."""
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        """Apply configuration source, overriding existing values.

        Args:
            source: Configuration source to apply.
        """
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self, default_database_path: Path | None = None) -> PostmaintConfig:
        """Build the final PostmaintConfig with defaults for unset values.

        Args:
            default_database_path: Database path used when no source set one.

        Returns:
            Complete PostmaintConfig with all values resolved.

        Raises:
            ValueError: If a resolved value fails model validation.
        """
        scan_defaults = ScanConfig()
        scan = ScanConfig(
            batch_size=self._get("scan_batch_size", scan_defaults.batch_size),
            startup_timeout_seconds=self._get(
                "scan_startup_timeout_seconds",
                scan_defaults.startup_timeout_seconds,
            ),
            overall_timeout_seconds=self._get(
                "scan_overall_timeout_seconds",
                scan_defaults.overall_timeout_seconds,
            ),
            inter_batch_delay_seconds=self._get(
                "scan_inter_batch_delay_seconds",
                scan_defaults.inter_batch_delay_seconds,
            ),
            poll_interval_seconds=self._get(
                "scan_poll_interval_seconds", scan_defaults.poll_interval_seconds
            ),
            daily_trigger_enabled=self._get(
                "scan_daily_trigger_enabled", scan_defaults.daily_trigger_enabled
            ),
            daily_interval_hours=self._get(
                "scan_daily_interval_hours", scan_defaults.daily_interval_hours
            ),
            post_types=list(self._get("scan_post_types", scan_defaults.post_types)),
            post_status=self._get("scan_post_status", scan_defaults.post_status),
            meta_key=self._get("scan_meta_key", scan_defaults.meta_key),
        )

        logging_defaults = LoggingConfig()
        logging_config = LoggingConfig(
            level=self._get("logging_level", logging_defaults.level),
            file=self._get("logging_file", logging_defaults.file),
            format=self._get("logging_format", logging_defaults.format),
            include_stderr=self._get(
                "logging_include_stderr", logging_defaults.include_stderr
            ),
            max_bytes=self._get("logging_max_bytes", logging_defaults.max_bytes),
            backup_count=self._get(
                "logging_backup_count", logging_defaults.backup_count
            ),
        )

        server_defaults = ServerConfig()
        server = ServerConfig(
            bind=self._get("server_bind", server_defaults.bind),
            port=self._get("server_port", server_defaults.port),
        )

        return PostmaintConfig(
            database_path=self._get("database_path", default_database_path),
            scan=scan,
            logging=logging_config,
            server=server,
        )


def _as_path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value)).expanduser()


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create a ConfigSource from a parsed config file.

    Recognized tables: [database], [scan], [logging], [server].

    Args:
        file_config: Parsed TOML document.

    Returns:
        ConfigSource with the values present in the file.
    """
    database = file_config.get("database", {})
    scan = file_config.get("scan", {})
    logging_section = file_config.get("logging", {})
    server = file_config.get("server", {})

    post_types = scan.get("post_types")
    if isinstance(post_types, str):
        post_types = [p.strip() for p in post_types.split(",") if p.strip()]

    return ConfigSource(
        database_path=_as_path(database.get("path")),
        scan_batch_size=scan.get("batch_size"),
        scan_startup_timeout_seconds=scan.get("startup_timeout_seconds"),
        scan_overall_timeout_seconds=scan.get("overall_timeout_seconds"),
        scan_inter_batch_delay_seconds=scan.get("inter_batch_delay_seconds"),
        scan_poll_interval_seconds=scan.get("poll_interval_seconds"),
        scan_daily_trigger_enabled=scan.get("daily_trigger_enabled"),
        scan_daily_interval_hours=scan.get("daily_interval_hours"),
        scan_post_types=post_types,
        scan_post_status=scan.get("post_status"),
        scan_meta_key=scan.get("meta_key"),
        logging_level=logging_section.get("level"),
        logging_file=_as_path(logging_section.get("file")),
        logging_format=logging_section.get("format"),
        logging_include_stderr=logging_section.get("include_stderr"),
        logging_max_bytes=logging_section.get("max_bytes"),
        logging_backup_count=logging_section.get("backup_count"),
        server_bind=server.get("bind"),
        server_port=server.get("port"),
    )


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create a ConfigSource from POSTMAINT_* environment variables.

    Args:
        reader: Environment reader (inject a mapping for tests).

    Returns:
        ConfigSource with the values present in the environment.
    """
    return ConfigSource(
        database_path=reader.get_path("POSTMAINT_DATABASE_PATH"),
        scan_batch_size=reader.get_int("POSTMAINT_BATCH_SIZE"),
        scan_startup_timeout_seconds=reader.get_int(
            "POSTMAINT_STARTUP_TIMEOUT_SECONDS"
        ),
        scan_overall_timeout_seconds=reader.get_int(
            "POSTMAINT_OVERALL_TIMEOUT_SECONDS"
        ),
        scan_inter_batch_delay_seconds=reader.get_float(
            "POSTMAINT_INTER_BATCH_DELAY_SECONDS"
        ),
        scan_poll_interval_seconds=reader.get_float("POSTMAINT_POLL_INTERVAL_SECONDS"),
        scan_daily_trigger_enabled=reader.get_bool("POSTMAINT_DAILY_TRIGGER_ENABLED"),
        scan_daily_interval_hours=reader.get_int("POSTMAINT_DAILY_INTERVAL_HOURS"),
        scan_post_types=reader.get_list("POSTMAINT_POST_TYPES"),
        scan_post_status=reader.get_str("POSTMAINT_POST_STATUS"),
        scan_meta_key=reader.get_str("POSTMAINT_META_KEY"),
        logging_level=reader.get_str("POSTMAINT_LOG_LEVEL"),
        logging_file=reader.get_path("POSTMAINT_LOG_FILE"),
        logging_format=reader.get_str("POSTMAINT_LOG_FORMAT"),
        server_bind=reader.get_str("POSTMAINT_SERVER_BIND"),
        server_port=reader.get_int("POSTMAINT_SERVER_PORT"),
    )
