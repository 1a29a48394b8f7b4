import logging

import pytest

from campus_calendar.utils.exceptions import ConfigurationError
from campus_calendar.utils.logging import setup_logging


pytestmark = pytest.mark.usefixtures("restore_logger")


def test_console_only():
    logger = setup_logging("warning")
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_reconfiguring_does_not_duplicate_handlers():
    setup_logging("INFO")
    logger = setup_logging("DEBUG")
    assert len(logger.handlers) == 1
    assert logging.getLogger("urllib3").level == logging.DEBUG


def test_file_handler_gets_debug_records(tmp_path):
    log_file = tmp_path / "logs" / "campus.log"
    logger = setup_logging("INFO", log_file)

    logging.getLogger("campus_calendar.dashboard.fetcher").debug("discarded fetch 3")
    for handler in logger.handlers:
        handler.flush()

    assert "discarded fetch 3" in log_file.read_text()
    assert logger.handlers[0].level == logging.INFO


def test_unknown_level():
    with pytest.raises(ConfigurationError):
        setup_logging("LOUD")
