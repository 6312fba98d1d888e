"""Pytest fixtures for logging tests."""

import logging

import pytest

from cardcomm.config import LoggingConfig
from cardcomm.observability import LoggerManager


@pytest.fixture
def log_record() -> logging.LogRecord:
    """Create a basic log record."""
    return logging.LogRecord(
        name="cardcomm.card.reader",
        level=logging.DEBUG,
        pathname="reader.py",
        lineno=42,
        msg="[stub] >> %s",
        args=("00B0000004",),
        exc_info=None,
    )


@pytest.fixture
def manager():
    """Create a JSON logger manager, shut down after the test."""
    mgr = LoggerManager(LoggingConfig(level="INFO", format="json"))
    yield mgr
    if mgr.is_configured:
        mgr.shutdown()


@pytest.fixture(autouse=True)
def reset_cardcomm_levels():
    """Restore the cardcomm logger levels changed by a test."""
    yield
    for name in ("cardcomm", "cardcomm.card.reader", "cardcomm.stub"):
        logging.getLogger(name).setLevel(logging.NOTSET)
