"""Tests for TOML configuration loading."""

import pytest

from melodify.core.config import (
    MIN_POLL_INTERVAL,
    Config,
    PlaybackConfig,
    create_default_config,
    get_data_dir,
    load_config,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the user's config dir and MELODIFY_* variables out of the tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("MELODIFY_MPV_PATH", "MELODIFY_LOG_LEVEL"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def write_config(tmp_path, text):
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


class TestLoadConfig:
    def test_missing_file_creates_default(self, tmp_path):
        path = tmp_path / "new" / "config.toml"

        config = load_config(path)

        assert path.exists()
        assert path.read_text() == create_default_config()
        assert config == Config()

    def test_default_file_parses_to_defaults(self, tmp_path):
        path = write_config(tmp_path, create_default_config())
        assert load_config(path) == Config()

    def test_reads_sections(self, tmp_path):
        path = write_config(
            tmp_path,
            """
[player]
mpv_path = "/usr/local/bin/mpv"
volume = 0.3

[playback]
retry_delay_seconds = 0.5
max_consecutive_errors = 2
repeat_mode = "all"
shuffle = true

[logging]
level = "debug"
console_output = true
""",
        )

        config = load_config(path)

        assert config.player.mpv_path == "/usr/local/bin/mpv"
        assert config.player.volume == 0.3
        assert config.playback.retry_delay_seconds == 0.5
        assert config.playback.max_consecutive_errors == 2
        assert config.playback.repeat_mode == "ALL"
        assert config.playback.shuffle is True
        assert config.logging.level == "DEBUG"
        assert config.logging.console_output is True

    def test_volume_is_clamped(self, tmp_path):
        path = write_config(tmp_path, "[player]\nvolume = 3\n")
        assert load_config(path).player.volume == 1.0

    @pytest.mark.parametrize(
        "value,expected",
        [
            ('"false"', False),
            ('"False"', False),
            ('"no"', False),
            ('"true"', True),
            ("true", True),
            ("0", False),
        ],
    )
    def test_shuffle_accepts_quoted_booleans(self, tmp_path, value, expected):
        path = write_config(tmp_path, f"[playback]\nshuffle = {value}\n")
        assert load_config(path).playback.shuffle is expected

    def test_unrecognised_boolean_uses_default(self, tmp_path):
        path = write_config(tmp_path, '[playback]\nshuffle = "sometimes"\n')
        assert load_config(path).playback.shuffle is False

    def test_poll_interval_and_tolerance_are_clamped(self, tmp_path):
        path = write_config(
            tmp_path,
            "[player]\npoll_interval = 0\n[playback]\nduration_tolerance_seconds = -4\n",
        )
        config = load_config(path)
        assert config.player.poll_interval == MIN_POLL_INTERVAL
        assert config.playback.duration_tolerance_seconds == 0.0

    def test_invalid_playback_section_uses_defaults(self, tmp_path):
        path = write_config(tmp_path, '[playback]\nrepeat_mode = "sometimes"\n')
        assert load_config(path).playback == PlaybackConfig()

    def test_malformed_toml_uses_defaults(self, tmp_path):
        path = write_config(tmp_path, "[player\nvolume = ")
        assert load_config(path) == Config()

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MELODIFY_MPV_PATH", "/opt/mpv")
        monkeypatch.setenv("MELODIFY_LOG_LEVEL", "warning")
        path = write_config(tmp_path, '[player]\nmpv_path = "mpv"\n')

        config = load_config(path)

        assert config.player.mpv_path == "/opt/mpv"
        assert config.logging.level == "WARNING"

    def test_dotenv_file(self, tmp_path, monkeypatch):
        env_dir = tmp_path / "xdg" / "melodify"
        env_dir.mkdir(parents=True)
        (env_dir / ".env").write_text("MELODIFY_MPV_PATH=/from/dotenv/mpv\n")
        path = write_config(tmp_path, "")

        assert load_config(path).player.mpv_path == "/from/dotenv/mpv"


class TestPlaybackConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"repeat_mode": "SOMETIMES"},
            {"retry_delay_seconds": -1},
            {"max_consecutive_errors": -1},
        ],
    )
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ValueError):
            PlaybackConfig(**kwargs).validate()

    def test_defaults_are_valid(self):
        PlaybackConfig().validate()


def test_data_dir_follows_xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    assert get_data_dir() == tmp_path / "melodify"
