"""Observability package for the card API.

Provides structured JSON or text logging for the ``cardcomm`` logger
hierarchy. Readers log APDU traffic at DEBUG level and selection and
communication failures at INFO and WARNING.

Example:
    >>> from cardcomm.config import LoggingConfig
    >>> from cardcomm.observability import LoggerManager
    >>>
    >>> manager = LoggerManager(LoggingConfig(level="INFO", format="text", apdu_trace=True))
    >>> manager.configure()
    >>> manager.set_level("stub", "DEBUG")
"""

from cardcomm.observability.logging import LoggerManager, StructuredFormatter, TextFormatter

__all__ = [
    "LoggerManager",
    "StructuredFormatter",
    "TextFormatter",
]
