"""
Configuration management for Melodify
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

VALID_REPEAT_MODES = ("OFF", "ONE", "ALL")
MIN_POLL_INTERVAL = 0.05

_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")


@dataclass
class PlayerConfig:
    """Configuration for the mpv transport."""

    mpv_path: str = "mpv"
    mpv_socket_path: Optional[str] = None
    volume: float = 0.8  # 0.0 - 1.0
    poll_interval: float = 0.25  # seconds between transport polls


@dataclass
class PlaybackConfig:
    """Configuration for sequencing and error recovery."""

    retry_delay_seconds: float = 1.5
    max_consecutive_errors: int = 5
    duration_tolerance_seconds: float = 1.0
    repeat_mode: str = "OFF"  # OFF, ONE, ALL
    shuffle: bool = False

    def validate(self) -> None:
        """Validate playback configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.repeat_mode not in VALID_REPEAT_MODES:
            raise ValueError(
                f"Invalid repeat mode: {self.repeat_mode!r}. "
                f"Valid modes are: {VALID_REPEAT_MODES}"
            )
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must not be negative")
        if self.max_consecutive_errors < 0:
            raise ValueError("max_consecutive_errors must not be negative")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # default: ~/.local/share/melodify/melodify.log
    console_output: bool = False  # Also output to stderr (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "melodify"
    return Path.home() / ".config" / "melodify"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in the project root (marked by pyproject.toml).

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/melodify (or ~/.config/melodify)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "melodify"
    return Path.home() / ".local" / "share" / "melodify"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Melodify Configuration

[player]
# mpv executable used as the playback transport
mpv_path = "mpv"

# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/melodify-mpv"

# Initial volume (0.0 - 1.0)
volume = 0.8

# Seconds between transport status polls
poll_interval = 0.25

[playback]
# Pause before auto-skipping a track that failed to play
retry_delay_seconds = 1.5

# Stop playback after this many failed tracks in a row
max_consecutive_errors = 5

# Reported durations within this many seconds of the stored one are ignored
duration_tolerance_seconds = 1.0

# Repeat mode at session start (OFF, ONE, ALL)
repeat_mode = "OFF"

# Start with shuffle enabled
shuffle = false

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/melodify/melodify.log)
# log_file = "/path/to/custom/melodify.log"

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def _parse_bool(value: object, default: bool) -> bool:
    """Read a TOML boolean, also accepting quoted "true"/"false" style strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    logger.warning(f"Invalid boolean value {value!r}, using {default}")
    return default


def _parse_config(toml_data: dict) -> Config:
    config = Config()

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_path=player_data.get("mpv_path", config.player.mpv_path),
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=min(1.0, max(0.0, float(player_data.get("volume", config.player.volume)))),
            poll_interval=max(
                MIN_POLL_INTERVAL,
                float(player_data.get("poll_interval", config.player.poll_interval)),
            ),
        )

    if "playback" in toml_data:
        playback_data = toml_data["playback"]
        config.playback = PlaybackConfig(
            retry_delay_seconds=float(
                playback_data.get(
                    "retry_delay_seconds", config.playback.retry_delay_seconds
                )
            ),
            max_consecutive_errors=int(
                playback_data.get(
                    "max_consecutive_errors", config.playback.max_consecutive_errors
                )
            ),
            duration_tolerance_seconds=max(
                0.0,
                float(
                    playback_data.get(
                        "duration_tolerance_seconds",
                        config.playback.duration_tolerance_seconds,
                    )
                ),
            ),
            repeat_mode=str(
                playback_data.get("repeat_mode", config.playback.repeat_mode)
            ).upper(),
            shuffle=_parse_bool(
                playback_data.get("shuffle", config.playback.shuffle), config.playback.shuffle
            ),
        )
        try:
            config.playback.validate()
        except ValueError as e:
            logger.warning(f"Invalid playback configuration: {e}")
            logger.warning("Using default playback configuration.")
            config.playback = PlaybackConfig()

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=_parse_bool(
                logging_data.get("console_output", config.logging.console_output),
                config.logging.console_output,
            ),
        )

    return config


def _apply_env_overrides(config: Config) -> Config:
    mpv_path = os.environ.get("MELODIFY_MPV_PATH")
    if mpv_path:
        config.player.mpv_path = mpv_path

    log_level = os.environ.get("MELODIFY_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    return config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MELODIFY_MPV_PATH
    - MELODIFY_LOG_LEVEL
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Error loading configuration from {config_path}: {e}")
        logger.warning("Using default configuration.")
        return _apply_env_overrides(Config())

    return _apply_env_overrides(_parse_config(toml_data))


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
