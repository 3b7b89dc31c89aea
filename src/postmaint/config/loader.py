"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (POSTMAINT_*)
3. Config file (~/.postmaint/config.toml)
4. Default values

Environment variables:
- POSTMAINT_DATA_DIR: Path to the data directory (overrides ~/.postmaint/)
- POSTMAINT_CONFIG_PATH: Path to config file (overrides default location)
- POSTMAINT_DATABASE_PATH: Path to database file
- POSTMAINT_BATCH_SIZE: Records per batch (1-100)
- POSTMAINT_STARTUP_TIMEOUT_SECONDS / POSTMAINT_OVERALL_TIMEOUT_SECONDS
- POSTMAINT_INTER_BATCH_DELAY_SECONDS / POSTMAINT_POLL_INTERVAL_SECONDS
- POSTMAINT_DAILY_TRIGGER_ENABLED / POSTMAINT_DAILY_INTERVAL_HOURS
- POSTMAINT_POST_TYPES: Comma-separated post types
- POSTMAINT_LOG_LEVEL / POSTMAINT_LOG_FILE / POSTMAINT_LOG_FORMAT
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from pathlib import Path

from postmaint.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from postmaint.config.env import EnvReader
from postmaint.config.models import PostmaintConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".postmaint"
CONFIG_FILE_NAME = "config.toml"
DATABASE_FILE_NAME = "postmaint.db"

# Cache for loaded config files (path -> (parsed dict, mtime))
_config_cache: dict[Path, tuple[dict, float]] = {}
_config_cache_lock = threading.Lock()


class ConfigFileError(Exception):
    """Raised when a config file exists but cannot be parsed."""


def get_data_dir() -> Path:
    """Get the postmaint data directory.

    Holds the config file and, by default, the database.
    Can be overridden by the POSTMAINT_DATA_DIR environment variable.

    Returns:
        Path to the data directory (~/.postmaint/ by default).
    """
    env_path = os.environ.get("POSTMAINT_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DATA_DIR


def get_default_config_path() -> Path:
    """Get the default config file path.

    Can be overridden by the POSTMAINT_CONFIG_PATH environment variable.
    """
    env_path = os.environ.get("POSTMAINT_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_data_dir() / CONFIG_FILE_NAME


def get_default_db_path() -> Path:
    """Return the default database path (<data dir>/postmaint.db)."""
    return get_data_dir() / DATABASE_FILE_NAME


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load configuration from a TOML file.

    Results are cached with mtime-based invalidation.

    Args:
        path: Path to config file. If None, uses default location.
        strict: If True, raise ConfigFileError on parse failures.
                If False (default), return empty dict on errors.

    Returns:
        Parsed configuration dict. Empty dict if file doesn't exist.

    Raises:
        ConfigFileError: When strict=True and the file cannot be parsed.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        try:
            with path.open("rb") as f:
                result = tomllib.load(f)
        except (tomllib.TOMLDecodeError, OSError) as e:
            if strict:
                raise ConfigFileError(f"Failed to parse {path}: {e}") from e
            logger.warning("Failed to load config file %s: %s", path, e)
            return {}

        logger.debug("Loaded config from %s", path)
        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Clear the config file cache. Primarily useful for testing."""
    with _config_cache_lock:
        _config_cache.clear()


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    database_path: Path | None = None,
    cli_source: ConfigSource | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> PostmaintConfig:
    """Get postmaint configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides POSTMAINT_CONFIG_PATH).
        database_path: CLI override for database path.
        cli_source: Additional CLI overrides.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise ConfigFileError on config file parse failures.

    Returns:
        PostmaintConfig with merged configuration.

    Raises:
        ConfigFileError: When strict=True and the config file cannot be parsed.
        ValueError: When a merged value fails validation.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path, strict=strict)

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    if cli_source is not None:
        builder.apply(cli_source)
    builder.apply(ConfigSource(database_path=database_path))

    return builder.build(default_database_path=get_default_db_path())
