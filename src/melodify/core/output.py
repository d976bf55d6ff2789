"""
Unified output system using Loguru.
File sink for everything, optional stderr sink, and a console echo for CLI messages.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console

from .config import LoggingConfig, get_data_dir

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"

_console: Console | None = None


def get_log_file_path() -> Path:
    """Get the default path to the log file."""
    return get_data_dir() / "melodify.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    console_output: bool = False,
) -> None:
    """
    Configure loguru sinks.

    Args:
        log_file: Path to log file (default: ~/.local/share/melodify/melodify.log)
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        console_output: Also log to stderr
    """
    log_file = log_file if log_file else get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level,
        format=LOG_FORMAT,
        enqueue=False,
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def setup_from_config(config: LoggingConfig) -> None:
    """Configure logging from the [logging] config section."""
    setup_loguru(
        Path(config.log_file) if config.log_file else None,
        level=config.level,
        console_output=config.console_output,
    )


def log(message: str, level: str = "info", style: Optional[str] = None) -> None:
    """
    Write to the log file AND echo to the console.

    Use this instead of print() for user-facing messages that should also be logged.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
        style: Optional Rich style for the console echo
    """
    log_func = getattr(logger, level)
    log_func(message)
    get_console().print(message, style=style)


def get_console() -> Console:
    """Shared Rich console for CLI output (created lazily)."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console
