"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Key/value storage (SQLite)
- Logging and console output (Loguru, Rich)
"""

from .config import (
    Config,
    LoggingConfig,
    PlaybackConfig,
    PlayerConfig,
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .database import (
    delete_value,
    get_database_path,
    get_db_connection,
    init_database,
    read_value,
    set_database_path,
    write_value,
)
from .output import get_console, log, setup_from_config, setup_loguru

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "PlaybackConfig",
    "PlayerConfig",
    "ensure_directories",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    # Database
    "delete_value",
    "get_database_path",
    "get_db_connection",
    "init_database",
    "read_value",
    "set_database_path",
    "write_value",
    # Output
    "get_console",
    "log",
    "setup_from_config",
    "setup_loguru",
]
