"""Structured JSON log formatter.

This module provides a JSON formatter whose extra fields may carry card
API objects (APDUs, card responses): they are encoded through their
``to_dict()`` representation, byte buffers as uppercase hex.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cardcomm.utils.json_util import to_json


class StructuredFormatter(logging.Formatter):
    """JSON log formatter with structured output.

    Produces log entries in JSON format with:
    - ISO 8601 timestamps
    - Log level
    - Logger name (component)
    - Message
    - Thread name when enabled, to tell concurrent reader calls apart
    - Extra fields
    - Exception info

    Example output:
        {
            "timestamp": "2024-01-15T10:30:45.123456+00:00",
            "level": "DEBUG",
            "logger": "cardcomm.card.reader",
            "message": "[stub] >> 00A4040007A000000151000000",
            "thread": "MainThread",
            "apdu": {"apdu": "00A4040007A000000151000000", "isCase4": true}
        }
    """

    # Attributes of every LogRecord, never copied as extra fields
    STANDARD_FIELDS = {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }

    def __init__(
        self,
        include_thread: bool = True,
        include_source_location: bool = False,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the structured formatter.

        Args:
            include_thread: Include the name of the emitting thread.
            include_source_location: Include file, function, and line number.
            extra_fields: Static fields to include in every log entry.
        """
        super().__init__()
        self.include_thread = include_thread
        self.include_source_location = include_source_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON-encoded log entry.
        """
        return to_json(self._build_log_entry(record))

    def _build_log_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_thread:
            entry["thread"] = record.threadName

        if self.include_source_location:
            entry["source"] = {
                "file": record.filename,
                "function": record.funcName,
                "line": record.lineno,
            }

        if record.exc_info:
            entry["exception"] = self._format_exception(record)

        entry.update(self.extra_fields)

        # Dynamic extra fields from the record
        for key, value in record.__dict__.items():
            if key not in self.STANDARD_FIELDS and not key.startswith("_"):
                entry[key] = value

        return entry

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat(timespec="microseconds")

    def _format_exception(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Format exception information.

        Communication exceptions also report the number of APDU responses
        received before the failure.
        """
        exc_type, exc_value, exc_tb = record.exc_info
        info: Dict[str, Any] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "traceback": traceback.format_exception(exc_type, exc_value, exc_tb)
            if exc_tb
            else None,
        }
        card_response = getattr(exc_value, "card_response", None)
        if card_response is not None:
            info["partial_responses"] = len(card_response.apdu_responses)
        return info


class TextFormatter(logging.Formatter):
    """Human-readable text formatter.

    Produces log entries in traditional text format:
        2024-01-15T10:30:45.123Z DEBUG    [cardcomm.card.reader] [stub] << 9000
    """

    def __init__(
        self,
        include_thread: bool = False,
        include_source_location: bool = False,
    ) -> None:
        """Initialize the text formatter.

        Args:
            include_thread: Include the thread name in the output.
            include_source_location: Include file:line in the output.
        """
        super().__init__()
        self.include_thread = include_thread
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as text."""
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        parts = [timestamp, record.levelname.ljust(8), f"[{record.name}]"]

        if self.include_thread:
            parts.append(f"({record.threadName})")

        if self.include_source_location:
            parts.append(f"[{record.filename}:{record.lineno}]")

        parts.append(record.getMessage())

        result = " ".join(parts)

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result
