"""Configuration management for postmaint.

This module provides configuration loading with precedence handling:
1. CLI flags (highest priority)
2. Environment variables (POSTMAINT_*)
3. Config file (~/.postmaint/config.toml)
4. Default values (lowest priority)
"""

from postmaint.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from postmaint.config.env import EnvReader
from postmaint.config.loader import (
    ConfigFileError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    get_default_db_path,
    load_config_file,
)
from postmaint.config.models import (
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    LoggingConfig,
    PostmaintConfig,
    ScanConfig,
    ServerConfig,
)

__all__ = [
    # Models
    "LoggingConfig",
    "PostmaintConfig",
    "ScanConfig",
    "ServerConfig",
    "MAX_BATCH_SIZE",
    "MIN_BATCH_SIZE",
    # Loader
    "ConfigFileError",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "get_default_db_path",
    "load_config_file",
    # Layering
    "EnvReader",
    "ConfigBuilder",
    "ConfigSource",
    "source_from_env",
    "source_from_file",
]
