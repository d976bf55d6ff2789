"""Tests for loguru setup and console echo."""

import pytest
from loguru import logger

from melodify.core.config import LoggingConfig
from melodify.core.output import log, setup_from_config, setup_loguru


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()


def test_setup_writes_log_file(tmp_path):
    log_file = tmp_path / "logs" / "melodify.log"

    setup_loguru(log_file, level="DEBUG")
    logger.debug("debug line")

    text = log_file.read_text()
    assert "Loguru initialized" in text
    assert "debug line" in text


def test_level_filters_file(tmp_path):
    log_file = tmp_path / "melodify.log"

    setup_loguru(log_file, level="WARNING")
    logger.info("quiet")
    logger.warning("loud")

    text = log_file.read_text()
    assert "quiet" not in text
    assert "loud" in text


def test_setup_from_config(tmp_path):
    log_file = tmp_path / "custom.log"

    setup_from_config(LoggingConfig(level="INFO", log_file=str(log_file)))
    logger.info("configured")

    assert "configured" in log_file.read_text()


def test_log_echoes_to_console(tmp_path, capsys):
    log_file = tmp_path / "melodify.log"
    setup_loguru(log_file)

    log("Created playlist p-1: Road Trip")

    assert "Created playlist p-1: Road Trip" in capsys.readouterr().out
    assert "Created playlist p-1: Road Trip" in log_file.read_text()
