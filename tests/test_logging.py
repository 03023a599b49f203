"""Tests for the Rich logging setup."""

import logging

from rich.logging import RichHandler

from codeforge.logging import configure_logging, get_logger


def test_configure_logging_installs_rich_handler_and_quiets_http_libraries():
    configure_logging("debug")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(isinstance(handler, RichHandler) for handler in root.handlers)
    assert logging.getLogger("urllib3").level == logging.WARNING
    assert logging.getLogger("requests").level == logging.WARNING


def test_unknown_level_falls_back_to_info():
    configure_logging("chatty")

    assert logging.getLogger().level == logging.INFO


def test_get_logger_defaults_to_package_logger():
    assert get_logger().name == "codeforge"
    assert get_logger("codeforge.base").name == "codeforge.base"
