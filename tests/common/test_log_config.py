"""Tests for nomenclator/common/log_config.py"""

import logging
import sys

import pytest

from nomenclator.common.log_config import PACKAGE_LOGGER, console_level, setup_logging


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)
    logging.getLogger("urllib3").setLevel(logging.NOTSET)


@pytest.mark.parametrize("verbose, quiet, expected", [
    (False, False, logging.INFO),
    (True, False, logging.DEBUG),
    (False, True, logging.WARNING),
    (True, True, logging.DEBUG),
])
def test_console_level(verbose, quiet, expected):
    assert console_level(verbose, quiet) == expected


class TestConsole:
    def test_single_stderr_handler(self):
        package_logger = setup_logging(quiet=True)
        assert package_logger is logging.getLogger("nomenclator")
        assert [h.stream for h in package_logger.handlers] == [sys.stderr]
        assert package_logger.level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self):
        setup_logging()
        package_logger = setup_logging(verbose=True)
        assert len(package_logger.handlers) == 1
        assert package_logger.handlers[0].level == logging.DEBUG

    def test_child_loggers_inherit_level(self):
        setup_logging(quiet=True)
        child = logging.getLogger("nomenclator.pipeline.runner")
        assert child.getEffectiveLevel() == logging.WARNING

    def test_urllib3_quiet_unless_verbose(self):
        setup_logging()
        assert logging.getLogger("urllib3").level == logging.WARNING
        setup_logging(verbose=True)
        assert logging.getLogger("urllib3").level == logging.DEBUG


class TestLogFile:
    def test_file_receives_debug_while_console_stays_quiet(self, tmp_path):
        path = tmp_path / "logs" / "build.log"
        package_logger = setup_logging(quiet=True, log_file=path)

        console, file_handler = package_logger.handlers
        assert console.level == logging.WARNING
        assert package_logger.level == logging.DEBUG

        logging.getLogger("nomenclator.normalization.normalizer").debug("Releasing %d staged rows", 3)
        file_handler.flush()
        assert "DEBUG [MainThread] nomenclator.normalization.normalizer:" in path.read_text(encoding="utf-8")
        assert "Releasing 3 staged rows" in path.read_text(encoding="utf-8")

    def test_setup_again_closes_file(self, tmp_path):
        package_logger = setup_logging(log_file=tmp_path / "build.log")
        file_handler = package_logger.handlers[1]
        setup_logging()
        assert file_handler.stream is None
