"""Logging configuration for Campus Calendar."""

import logging
import sys
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

LOGGER_NAME = "campus_calendar"

# HTTP client chatter from the REST backend
NOISE_LOGGERS = ("urllib3", "requests")

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {name}")
    return level


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the ``campus_calendar`` logger.

    Console output goes to stdout; module names are included only at DEBUG.
    The optional log file always receives DEBUG records. HTTP client
    libraries are kept at WARNING unless DEBUG is requested.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path; parent directories are created

    Returns:
        Configured logger instance

    Raises:
        ConfigurationError: If the level name is unknown
    """
    console_level = _level(level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else console_level)

    # Reconfiguring (e.g. --verbose after startup) must not duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(VERBOSE_FORMAT if console_level <= logging.DEBUG else CONSOLE_FORMAT)
    )
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    for name in NOISE_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if console_level <= logging.DEBUG else logging.WARNING
        )

    return logger
