"""Configuration module.

This module provides the configuration dataclasses of the card API:
logging output and reader behavior. Every configuration can be built
programmatically or from ``CARDCOMM_`` environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

CONCURRENCY_SERIALIZE = "serialize"
CONCURRENCY_FAIL_FAST = "fail_fast"

_LOG_FORMATS = ("json", "text")
_CONCURRENCY_POLICIES = (CONCURRENCY_SERIALIZE, CONCURRENCY_FAIL_FAST)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "yes", "1")


@dataclass
class LoggingConfig:
    """Configuration for structured logging.

    Attributes:
        apdu_trace: Log every APDU exchanged by readers (DEBUG on
            ``cardcomm.card.reader``) whatever the global level.
    """

    level: str = "INFO"
    format: str = "json"  # or "text"
    output_file: Optional[str] = None
    apdu_trace: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Create configuration from environment variables."""
        return cls(
            level=os.getenv("CARDCOMM_LOG_LEVEL", "INFO").upper(),
            format=os.getenv("CARDCOMM_LOG_FORMAT", "json").lower(),
            output_file=os.getenv("CARDCOMM_LOG_FILE"),
            apdu_trace=_env_flag("CARDCOMM_LOG_APDU_TRACE", "false"),
        )

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"Invalid log level: {self.level}")
        if self.format not in _LOG_FORMATS:
            raise ValueError(f"Invalid log format: {self.format} (expected json or text)")


@dataclass
class ReaderConfig:
    """Configuration of the generic reader behavior.

    Attributes:
        concurrency: Policy applied when a second transmission starts on a
            reader already transmitting: "serialize" waits for the first one,
            "fail_fast" raises InvalidStateError.
        auto_get_response: Issue GET RESPONSE automatically on SW1=61 and
            for case 4 commands answered by a bare 9000.
        max_get_response: Maximum number of chained GET RESPONSE commands
            for one APDU; a card still answering 61xx beyond it is treated
            as a card failure.
    """

    concurrency: str = CONCURRENCY_SERIALIZE
    auto_get_response: bool = True
    max_get_response: int = 16

    @classmethod
    def from_env(cls) -> "ReaderConfig":
        """Create configuration from environment variables."""
        return cls(
            concurrency=os.getenv("CARDCOMM_READER_CONCURRENCY", CONCURRENCY_SERIALIZE).lower(),
            auto_get_response=_env_flag("CARDCOMM_READER_AUTO_GET_RESPONSE", "true"),
            max_get_response=int(os.getenv("CARDCOMM_READER_MAX_GET_RESPONSE", "16")),
        )

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.concurrency not in _CONCURRENCY_POLICIES:
            raise ValueError(
                f"Invalid reader concurrency policy: {self.concurrency} "
                f"(expected one of {', '.join(_CONCURRENCY_POLICIES)})"
            )
        if self.max_get_response < 1:
            raise ValueError(f"Invalid max_get_response: {self.max_get_response} (must be >= 1)")


@dataclass
class CardcommConfig:
    """Complete configuration.

    Environment Variables:
        CARDCOMM_LOG_LEVEL: Log level - DEBUG, INFO, WARNING, ERROR (default: INFO)
        CARDCOMM_LOG_FORMAT: Log format - json or text (default: json)
        CARDCOMM_LOG_FILE: Log file path (optional, defaults to stderr)
        CARDCOMM_LOG_APDU_TRACE: Trace APDU exchanges - true or false (default: false)
        CARDCOMM_READER_CONCURRENCY: serialize or fail_fast (default: serialize)
        CARDCOMM_READER_AUTO_GET_RESPONSE: true or false (default: true)
        CARDCOMM_READER_MAX_GET_RESPONSE: Chained GET RESPONSE limit (default: 16)

    Example:
        >>> config = CardcommConfig.from_env()
        >>> config.validate()
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    reader: ReaderConfig = field(default_factory=ReaderConfig)

    @classmethod
    def from_env(cls) -> "CardcommConfig":
        """Create complete configuration from environment variables."""
        return cls(
            logging=LoggingConfig.from_env(),
            reader=ReaderConfig.from_env(),
        )

    def validate(self) -> None:
        """Validate all sub-configurations.

        Raises:
            ValueError: If configuration is invalid.
        """
        self.logging.validate()
        self.reader.validate()
