"""Tests for logging setup."""

import logging

from commit_tracer.tracer_logging import LOGGER_NAME, get_logger, setup_logging


class TestGetLogger:
    def test_package_logger(self):
        assert get_logger().name == LOGGER_NAME

    def test_module_logger_is_child(self):
        logger = get_logger("commit_tracer.integrations.cache")
        assert logger.name == "commit_tracer.integrations.cache"
        assert logger.parent is get_logger() or logger.parent.name.startswith(LOGGER_NAME)

    def test_single_handler(self):
        get_logger()
        get_logger("x")
        assert len(get_logger().handlers) == 1


class TestSetupLogging:
    def test_verbose_sets_debug(self):
        try:
            assert setup_logging(verbose=True).level == logging.DEBUG
        finally:
            setup_logging(logging.INFO)

    def test_level_by_name(self):
        try:
            assert setup_logging("warning").level == logging.WARNING
        finally:
            setup_logging(logging.INFO)
