import logging

import pytest

from kokudo_sticker.config import Settings, settings
from kokudo_sticker.logging_setup import get_logger, setup_logging


def test_log_level_from_settings(monkeypatch):
    logger = get_logger()
    previous = logger.level
    monkeypatch.setattr(settings, "log_level", "DEBUG")
    try:
        assert setup_logging() is logger
        assert logger.level == logging.DEBUG
        assert logger.handlers
        fmt = logger.handlers[0].formatter._fmt
        assert "%(name)s" in fmt
    finally:
        logger.setLevel(previous)


def test_log_level_is_normalized_and_checked(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    assert Settings().log_level == "WARNING"
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(ValueError):
        Settings()
