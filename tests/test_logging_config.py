"""
Tests for logging setup.
"""

import logging
import logging.handlers

import pytest
from rich.logging import RichHandler

from mqtt_file_uploader.logging_config import NOISY_LOGGERS, setup_logging


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    noisy_levels = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield root_logger
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name, noisy_level in noisy_levels.items():
        logging.getLogger(name).setLevel(noisy_level)


class TestSetupLogging:
    def test_console_and_file_handlers(self, make_settings, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "nested" / "uploader.log"
        settings = make_settings(log_file_path=str(log_file), log_retention_days=7)

        setup_logging(settings)

        handlers = restore_root_logger.handlers
        assert len(handlers) == 2
        assert any(isinstance(h, RichHandler) for h in handlers)
        file_handlers = [
            h for h in handlers if isinstance(h, logging.handlers.TimedRotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == 7
        assert log_file.parent.is_dir()

    def test_level_applied(self, make_settings, restore_root_logger):
        setup_logging(make_settings(log_level="debug"))

        assert restore_root_logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in restore_root_logger.handlers)

    def test_repeated_setup_does_not_duplicate_handlers(self, make_settings, restore_root_logger):
        settings = make_settings()
        setup_logging(settings)
        setup_logging(settings)

        assert len(restore_root_logger.handlers) == 2

    def test_messages_reach_log_file(self, make_settings, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "uploader.log"
        setup_logging(make_settings(log_file_path=str(log_file)))

        logging.getLogger("mqtt_file_uploader.test").warning("File deleted: report.txt")
        for handler in restore_root_logger.handlers:
            handler.flush()

        content = log_file.read_text(encoding="utf-8")
        assert "WARNING" in content
        assert "File deleted: report.txt" in content

    def test_third_party_loggers_quieted(self, make_settings, restore_root_logger):
        setup_logging(make_settings(log_level="DEBUG"))

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
