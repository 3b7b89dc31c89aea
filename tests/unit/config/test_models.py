"""Tests for configuration dataclasses."""

from __future__ import annotations

import pytest

from postmaint.config.models import (
    LoggingConfig,
    PostmaintConfig,
    ScanConfig,
    ServerConfig,
)


class TestScanConfig:
    """Tests for ScanConfig validation."""

    def test_defaults(self) -> None:
        """Defaults mirror the engine's documented behavior."""
        config = ScanConfig()
        assert config.batch_size == 10
        assert config.startup_timeout_seconds == 60
        assert config.overall_timeout_seconds == 300
        assert config.inter_batch_delay_seconds == 1.0
        assert config.daily_trigger_enabled is True
        assert config.daily_interval_hours == 24
        assert config.post_types == ["post", "page"]
        assert config.post_status == "publish"
        assert config.meta_key == "last_scan"

    def test_post_types_default_not_shared(self) -> None:
        """Each instance gets its own post_types list."""
        first = ScanConfig()
        first.post_types.append("product")
        assert ScanConfig().post_types == ["post", "page"]

    @pytest.mark.parametrize("batch_size", [1, 100])
    def test_batch_size_bounds_accepted(self, batch_size: int) -> None:
        """Batch sizes at either bound are valid."""
        assert ScanConfig(batch_size=batch_size).batch_size == batch_size

    @pytest.mark.parametrize("batch_size", [0, 101, -5])
    def test_batch_size_out_of_range(self, batch_size: int) -> None:
        """Batch sizes outside 1-100 are rejected."""
        with pytest.raises(ValueError, match="batch_size"):
            ScanConfig(batch_size=batch_size)

    def test_overall_timeout_below_startup_timeout(self) -> None:
        """The overall timeout cannot be shorter than the startup timeout."""
        with pytest.raises(ValueError, match="overall_timeout_seconds"):
            ScanConfig(startup_timeout_seconds=120, overall_timeout_seconds=60)

    def test_negative_delay(self) -> None:
        """Negative inter-batch delays are rejected."""
        with pytest.raises(ValueError, match="inter_batch_delay_seconds"):
            ScanConfig(inter_batch_delay_seconds=-1)

    def test_zero_delay_allowed(self) -> None:
        """A zero delay schedules batches back to back."""
        assert ScanConfig(inter_batch_delay_seconds=0).inter_batch_delay_seconds == 0

    def test_non_positive_poll_interval(self) -> None:
        """The worker poll interval must be positive."""
        with pytest.raises(ValueError, match="poll_interval_seconds"):
            ScanConfig(poll_interval_seconds=0)

    def test_empty_post_types(self) -> None:
        """At least one post type is required."""
        with pytest.raises(ValueError, match="post_types"):
            ScanConfig(post_types=[])


class TestLoggingConfig:
    """Tests for LoggingConfig validation."""

    def test_invalid_level(self) -> None:
        """Unknown levels are rejected."""
        with pytest.raises(ValueError, match="level"):
            LoggingConfig(level="verbose")

    def test_level_case_insensitive(self) -> None:
        """Levels are accepted regardless of case."""
        assert LoggingConfig(level="DEBUG").level == "DEBUG"

    def test_invalid_format(self) -> None:
        """Only text and json formats exist."""
        with pytest.raises(ValueError, match="format"):
            LoggingConfig(format="xml")


class TestServerConfig:
    """Tests for ServerConfig validation."""

    @pytest.mark.parametrize("port", [0, 65536])
    def test_invalid_port(self, port: int) -> None:
        """Ports outside 1-65535 are rejected."""
        with pytest.raises(ValueError, match="port"):
            ServerConfig(port=port)


def test_postmaint_config_defaults() -> None:
    """The top-level config composes default sections."""
    config = PostmaintConfig()
    assert config.database_path is None
    assert config.scan == ScanConfig()
    assert config.server.bind == "127.0.0.1"
