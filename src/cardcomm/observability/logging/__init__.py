"""Structured logging module.

This module provides JSON and text log output for the cardcomm loggers.
"""

from cardcomm.observability.logging.manager import LoggerManager, get_logger
from cardcomm.observability.logging.structured import StructuredFormatter, TextFormatter

__all__ = ["LoggerManager", "StructuredFormatter", "TextFormatter", "get_logger"]
