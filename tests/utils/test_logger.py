"""Tests for the logger module."""

import logging
from unittest.mock import patch

from modledger.util.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    ColorFormatter,
    PromptToolkitHandler,
    get_log_filepath,
    get_logger,
    handle_exception,
    setup_logger,
    should_use_color,
)


def make_record(level, msg):
    return logging.LogRecord(
        name="test", level=level, pathname="test.py", lineno=10,
        msg=msg, args=(), exc_info=None, func="test_func",
    )


class TestShouldUseColor:
    @patch("sys.stderr.isatty")
    def test_tty(self, mock_isatty):
        mock_isatty.return_value = True
        assert should_use_color() is True

    @patch("sys.stderr.isatty")
    def test_no_tty(self, mock_isatty):
        mock_isatty.return_value = False
        assert should_use_color() is False

    @patch("sys.stderr.isatty")
    def test_exception(self, mock_isatty):
        mock_isatty.side_effect = Exception("Error")
        assert should_use_color() is False


def test_color_formatter_wraps_in_level_color():
    formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    formatted = formatter.format(make_record(logging.ERROR, "Error message"))

    assert formatted.startswith("\033[31m")
    assert "Error message" in formatted


def test_setup_logger_is_idempotent():
    logger1 = setup_logger("modledger_test_logger")
    logger2 = setup_logger("modledger_test_logger")

    assert logger1 is logger2
    assert logger1.level == logging.DEBUG
    assert logger1.propagate is False
    assert any(isinstance(handler, PromptToolkitHandler) for handler in logger1.handlers)
    assert len(logger1.handlers) == 2


def test_log_filepath_is_stable_per_process():
    assert get_log_filepath() == get_log_filepath()
    assert get_log_filepath().suffix == ".log"


def test_get_logger_writes_without_error():
    get_logger("modledger_test_integration").info("[TEST] hello %s", "world")


def test_handle_exception_defers_keyboard_interrupt():
    with patch("sys.__excepthook__") as default_hook:
        handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)
    default_hook.assert_called_once()


def test_handle_exception_logs_other_errors():
    with patch("logging.error") as log_error:
        error = ValueError("boom")
        handle_exception(ValueError, error, None)
    log_error.assert_called_once()
