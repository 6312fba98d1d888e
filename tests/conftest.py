"""
Pytest configuration and fixtures for cardcomm tests.

This module provides shared fixtures for exercising the reader processing
without hardware: a scripted reader replaying raw responses or transport
errors, and stub cards and readers.
"""

from typing import List, Optional

import pytest

from cardcomm.card import (
    AbstractProxyReader,
    AnswerToReset,
    ApduResponse,
    CardSelector,
    ReaderIOError,
    SelectionStatus,
)
from cardcomm.config import ReaderConfig
from cardcomm.stub import StubCard, StubCardSelector, StubReader


SAMPLE_ATR = "3B9F96801FC78031E073FE211B63F100"
ISD_AID = "A000000151000000"
SELECT_ISD = "00A4040008A00000015100000000"
ISD_FCI = "6F108408A000000151000000A5049F6501FF9000"


# ============================================================================
# Scripted Reader
# ============================================================================

class ScriptedReader(AbstractProxyReader):
    """Reader replaying a script of hex responses or transport errors."""

    def __init__(self, script=None, config: Optional[ReaderConfig] = None, name: str = "scripted"):
        super().__init__(name, config)
        self.script = list(script or [])
        self.selections: list = []
        self.sent: List[bytes] = []
        self.logical_open = True
        self.logical_closes = 0
        self.physical_closes = 0
        self.fail_close = False

    def _transmit_apdu(self, apdu: bytes) -> bytes:
        self.sent.append(apdu)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return bytes.fromhex(item)

    def _process_selection(self, card_selector: CardSelector) -> SelectionStatus:
        item = self.selections.pop(0)
        if isinstance(item, Exception):
            raise item
        if item.has_matched:
            self.logical_open = True
        return item

    def _is_logical_channel_open(self) -> bool:
        return self.logical_open

    def _close_logical_channel(self) -> None:
        self.logical_open = False
        self.logical_closes += 1

    def _close_physical_channel(self) -> None:
        if self.fail_close:
            raise ReaderIOError("Reader unplugged")
        self.logical_open = False
        self.physical_closes += 1


def selection_status(has_matched: bool, fci: Optional[str] = None) -> SelectionStatus:
    """Build a selection status with the sample ATR."""
    return SelectionStatus(
        AnswerToReset(bytes.fromhex(SAMPLE_ATR)),
        ApduResponse.from_hex(fci) if fci else None,
        has_matched,
    )


@pytest.fixture
def scripted_reader():
    """
    Factory for ScriptedReader instances.

    Returns:
        ScriptedReader class, called with the response script.
    """
    return ScriptedReader


@pytest.fixture
def make_status():
    """Factory for SelectionStatus built on the sample ATR."""
    return selection_status


# ============================================================================
# Stub Card / Reader
# ============================================================================

@pytest.fixture
def stub_card() -> StubCard:
    """
    Stub card hosting an ISD and a readable binary file.

    Returns:
        StubCard: Card answering SELECT ISD, READ BINARY and UPDATE BINARY
    """
    return StubCard(
        SAMPLE_ATR,
        {
            SELECT_ISD: ISD_FCI,
            "00B0000004": "010203049000",
            "00D60000020102": "9000",
        },
    )


@pytest.fixture
def stub_reader(stub_card) -> StubReader:
    """Stub reader with the stub card inserted."""
    return StubReader("Stub Reader 0", stub_card)


@pytest.fixture
def isd_selector() -> StubCardSelector:
    """Selector matching the stub card ATR and its ISD."""
    return StubCardSelector(power_on_data_regex="3B9F.*", aid=ISD_AID)
