"""Scripted in-memory card.

The card answers each command by looking up its hex encoding in a
response table, falling back to a default status word. It can be
removed, re-inserted, or torn after a given number of commands.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from cardcomm.card.exceptions import CardIOError, InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE = "6D00"  # INS not supported


def _normalize_hex(value: str, name: str) -> str:
    if not isinstance(value, str):
        raise InvalidArgumentError(f"'{name}' must be a hex string, got {type(value).__name__}.")
    normalized = value.replace(" ", "").upper()
    try:
        bytes.fromhex(normalized)
    except ValueError as e:
        raise InvalidArgumentError(f"'{name}' is not a valid hex string: {value}") from e
    return normalized


class StubCardLoadError(Exception):
    """Raised when loading a card script fails."""

    def __init__(self, file_path: str, message: str):
        self.file_path = file_path
        super().__init__(f"Failed to load '{file_path}': {message}")


class StubCard:
    """A card answering from a table of hex command/response pairs.

    Attributes:
        atr: Power-on data of the card.
        is_present: Whether the card is in the reader.
        commands: Hex encoding of every command received, in order.
    """

    def __init__(
        self,
        atr: str,
        responses: Optional[Dict[str, str]] = None,
        default_response: str = DEFAULT_RESPONSE,
    ):
        self._atr = bytes.fromhex(_normalize_hex(atr, "atr"))
        self._responses: Dict[str, str] = {}
        self._default_response = _normalize_hex(default_response, "default_response")
        if len(self._default_response) < 4:
            raise InvalidArgumentError("'default_response' must hold at least SW1SW2.")
        for command, response in (responses or {}).items():
            self.add_response(command, response)
        self._present = True
        self._remaining_before_tear: Optional[int] = None
        self.commands: List[str] = []

    @property
    def atr(self) -> bytes:
        return self._atr

    @property
    def is_present(self) -> bool:
        return self._present

    def add_response(self, command: str, response: str) -> None:
        """Script the response to a command (both hex, spaces ignored)."""
        key = _normalize_hex(command, "command")
        value = _normalize_hex(response, "response")
        if len(value) < 4:
            raise InvalidArgumentError(f"Response to {key} must hold at least SW1SW2.")
        self._responses[key] = value

    def insert(self) -> None:
        self._present = True
        self._remaining_before_tear = None
        logger.info("Stub card inserted")

    def remove(self) -> None:
        self._present = False
        logger.info("Stub card removed")

    def tear_after(self, count: int) -> None:
        """Remove the card once it has answered ``count`` more commands."""
        if count < 0:
            raise InvalidArgumentError(f"Argument 'count' has a value [{count}] less than [0].")
        self._remaining_before_tear = count

    def process_apdu(self, apdu: bytes) -> bytes:
        """Answer a command.

        Raises:
            CardIOError: If the card is absent or has just been torn.
        """
        if not self._present:
            raise CardIOError("No card present")
        if self._remaining_before_tear is not None:
            if self._remaining_before_tear == 0:
                self._present = False
                self._remaining_before_tear = None
                logger.info("Stub card torn")
                raise CardIOError("Card torn during command")
            self._remaining_before_tear -= 1

        command = apdu.hex().upper()
        self.commands.append(command)
        return bytes.fromhex(self._responses.get(command, self._default_response))


def load_stub_card(file_path: Union[str, Path]) -> StubCard:
    """Load a card script from a YAML file.

    The file holds an ``atr`` hex string, an optional ``responses`` mapping
    of hex commands to hex responses and an optional ``default_response``.
    Hex values must be quoted so that YAML does not read them as numbers.

    Raises:
        FileNotFoundError: If the file does not exist.
        StubCardLoadError: If the file cannot be read or parsed.
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StubCardLoadError(str(file_path), f"Invalid YAML: {e}") from e
    except IOError as e:
        raise StubCardLoadError(str(file_path), f"IO error: {e}") from e

    if not isinstance(data, dict):
        raise StubCardLoadError(str(file_path), "YAML root must be a dictionary")
    if "atr" not in data:
        raise StubCardLoadError(str(file_path), "Missing field 'atr'")

    responses = data.get("responses") or {}
    if not isinstance(responses, dict):
        raise StubCardLoadError(str(file_path), "'responses' must be a mapping")

    try:
        card = StubCard(
            data["atr"],
            responses,
            data.get("default_response", DEFAULT_RESPONSE),
        )
    except InvalidArgumentError as e:
        raise StubCardLoadError(str(file_path), e.message) from e

    logger.debug(f"Loaded stub card with {len(responses)} responses from {file_path}")
    return card
