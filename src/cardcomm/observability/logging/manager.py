"""Log output setup for the card API.

Readers log every APDU they exchange on ``cardcomm.card.reader`` at DEBUG
level. LoggerManager installs one handler on the ``cardcomm`` hierarchy
and turns that APDU trace on or off independently of the global level,
so a service can run at INFO while still recording card traffic.
"""

import logging
import sys
from typing import Optional

from cardcomm.config import LoggingConfig
from cardcomm.observability.logging.structured import StructuredFormatter, TextFormatter

ROOT_LOGGER_NAME = "cardcomm"
READER_LOGGER_NAME = "cardcomm.card.reader"


class LoggerManager:
    """Owns the cardcomm log handler and the APDU trace switch.

    Example:
        >>> manager = LoggerManager(LoggingConfig(level="INFO", apdu_trace=True))
        >>> manager.configure()
        >>> # reader.transmit_card_request(...) now logs ">>" / "<<" lines
        >>> manager.set_apdu_trace(False)
    """

    def __init__(self, config: Optional[LoggingConfig] = None) -> None:
        self.config = config or LoggingConfig()
        self.config.validate()
        self._handler: Optional[logging.Handler] = None

    @property
    def is_configured(self) -> bool:
        return self._handler is not None

    @property
    def apdu_trace(self) -> bool:
        """Whether APDU exchanges reach the handler."""
        return logging.getLogger(READER_LOGGER_NAME).level == logging.DEBUG

    def configure(self) -> None:
        """Attach the handler and apply the configured levels.

        Calling it again before shutdown() has no effect.
        """
        if self._handler is not None:
            return

        if self.config.output_file:
            handler: logging.Handler = logging.FileHandler(self.config.output_file)
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            StructuredFormatter() if self.config.format == "json" else TextFormatter()
        )

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(_level(self.config.level))
        root.addHandler(handler)
        # Card traces must not leak into the application's own handlers
        root.propagate = False
        self._handler = handler

        self.set_apdu_trace(self.config.apdu_trace)

    def shutdown(self) -> None:
        """Detach the handler and give the hierarchy back to the root logger."""
        if self._handler is None:
            return

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.removeHandler(self._handler)
        root.propagate = True
        self._handler.close()
        self._handler = None
        logging.getLogger(READER_LOGGER_NAME).setLevel(logging.NOTSET)

    def set_apdu_trace(self, enabled: bool) -> None:
        """Turn the reader APDU trace on or off.

        When off, the reader logger inherits the global level again.
        """
        logging.getLogger(READER_LOGGER_NAME).setLevel(
            logging.DEBUG if enabled else logging.NOTSET
        )

    def set_level(self, component: str, level: str) -> None:
        """Set the level of one component, e.g. "stub" or "card.reader"."""
        logging.getLogger(_qualify(component)).setLevel(_level(level))

    def get_level(self, component: str) -> str:
        """Get the effective level name of a component."""
        return logging.getLevelName(logging.getLogger(_qualify(component)).getEffectiveLevel())


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _qualify(name: str) -> str:
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the cardcomm hierarchy.

    Example:
        >>> get_logger("stub").info("Card inserted")
    """
    return logging.getLogger(_qualify(name))
