"""
Tests for logging setup.
"""

import logging
import sys

import pytest
import structlog

from omniaccount.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:

    def test_logs_to_stderr(self, restore_root_logger):
        setup_logging("INFO")

        root = restore_root_logger
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr
        assert root.level == logging.INFO

    def test_debug_uses_console_renderer(self, restore_root_logger):
        setup_logging("debug")

        formatter = restore_root_logger.handlers[0].formatter
        assert restore_root_logger.level == logging.DEBUG
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in formatter.processors)

    def test_json_by_default(self, restore_root_logger):
        setup_logging("WARNING")

        formatter = restore_root_logger.handlers[0].formatter
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in formatter.processors)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging("chatty")
        assert restore_root_logger.level == logging.INFO
