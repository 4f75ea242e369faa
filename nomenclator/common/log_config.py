"""
Logging Configuration

Handlers live on the package logger only, so library users keep control of
the root logger. The console handler writes to stderr and leaves stdout to
the run summary; an optional log file records every DEBUG line of a build.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "nomenclator"

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s:%(lineno)d %(message)s"

# Third-party loggers only worth seeing with --verbose
NOISY_LOGGERS = ("urllib3",)


def console_level(verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    return logging.WARNING if quiet else logging.INFO


def _replace_handlers(package_logger: logging.Logger) -> None:
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()


def setup_logging(verbose: bool = False, quiet: bool = False,
                  log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Install the handlers of a command-line run on the "nomenclator" logger.

    Calling it again drops the handlers of the previous call.

    Args:
        verbose: Console shows DEBUG
        quiet: Console shows WARNING and above
        log_file: Also write DEBUG and above to this file (parents are created)

    Returns:
        The package logger
    """
    level = console_level(verbose, quiet)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    _replace_handlers(package_logger)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    package_logger.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        package_logger.addHandler(file_handler)

    # The logger must let through what its most detailed handler wants
    package_logger.setLevel(logging.DEBUG if log_file is not None else level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
    return package_logger
