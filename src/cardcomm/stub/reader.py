"""Reader driving a StubCard.

The physical channel opens on the first exchange with a present card.
Selection checks the ATR against the selector's regular expression, then
sends ``SELECT`` by AID when the selector names one.
"""

import logging
import re
from typing import Optional

from cardcomm.card.apdu import ApduRequest
from cardcomm.card.exceptions import CardIOError, InvalidArgumentError, ReaderIOError
from cardcomm.card.reader import AbstractProxyReader
from cardcomm.card.selection import AnswerToReset, CardSelector, SelectionStatus
from cardcomm.config import ReaderConfig
from cardcomm.stub.card import StubCard
from cardcomm.stub.selector import StubCardSelector

logger = logging.getLogger(__name__)

INS_SELECT = 0xA4
P1_SELECT_BY_DF_NAME = 0x04


class StubReader(AbstractProxyReader):
    """In-memory reader.

    Example:
        >>> reader = StubReader("stub", StubCard("3B00", {"00B0000002": "01029000"}))
        >>> request = CardRequest([ApduRequest(0x00, 0xB0, 0x00, 0x00, le=0x02)])
        >>> reader.transmit_card_request(request, ChannelControl.KEEP_OPEN)
    """

    def __init__(
        self,
        name: str,
        card: Optional[StubCard] = None,
        config: Optional[ReaderConfig] = None,
    ):
        super().__init__(name, config)
        self._card = card
        self._reader_failure = False
        self._physical_channel_open = False
        self._logical_channel_open = False

    @property
    def card(self) -> Optional[StubCard]:
        return self._card

    @property
    def is_physical_channel_open(self) -> bool:
        return self._physical_channel_open

    def is_card_present(self) -> bool:
        return self._card is not None and self._card.is_present

    def insert_card(self, card: StubCard) -> None:
        """Put a card in the reader, replacing any previous one."""
        self._card = card
        card.insert()
        self._physical_channel_open = False
        self._logical_channel_open = False

    def remove_card(self) -> None:
        """Take the card out of the reader."""
        if self._card is not None:
            self._card.remove()
        self._card = None
        self._physical_channel_open = False
        self._logical_channel_open = False

    def fail_reader(self, failing: bool = True) -> None:
        """Make every reader operation fail (reader unplugged) or recover."""
        self._reader_failure = failing
        logger.info(f"[{self.name}] reader {'failing' if failing else 'recovered'}")

    # =========================================================================
    # Transport Interface
    # =========================================================================

    def _check_reader(self) -> None:
        if self._reader_failure:
            raise ReaderIOError(f"Reader '{self.name}' is not responding")

    def _connect(self) -> StubCard:
        self._check_reader()
        if not self.is_card_present():
            self._physical_channel_open = False
            self._logical_channel_open = False
            raise CardIOError("No card present")
        self._physical_channel_open = True
        return self._card

    def _transmit_apdu(self, apdu: bytes) -> bytes:
        card = self._connect()
        try:
            return card.process_apdu(apdu)
        except CardIOError:
            self._physical_channel_open = False
            self._logical_channel_open = False
            raise

    def _process_selection(self, card_selector: CardSelector) -> SelectionStatus:
        if not isinstance(card_selector, StubCardSelector):
            raise InvalidArgumentError(
                f"Unsupported card selector: {type(card_selector).__name__}",
                "StubReader only accepts StubCardSelector.",
            )

        card = self._connect()
        atr = AnswerToReset(card.atr)

        regex = card_selector.power_on_data_regex
        if regex is not None and not re.fullmatch(regex, atr.to_hex()):
            logger.debug(f"[{self.name}] ATR {atr.to_hex()} rejected by {regex}")
            return SelectionStatus(atr, None, False)

        fci = None
        if card_selector.aid is not None:
            select = ApduRequest(
                0x00, INS_SELECT, P1_SELECT_BY_DF_NAME, 0x00, bytes.fromhex(card_selector.aid), 0x00
            ).set_name("SELECT")
            fci = self._process_apdu_request(select)
            if fci.status_code not in card_selector.successful_selection_status_codes:
                return SelectionStatus(atr, fci, False)

        self._logical_channel_open = True
        return SelectionStatus(atr, fci, True)

    def _is_logical_channel_open(self) -> bool:
        return self._logical_channel_open

    def _close_logical_channel(self) -> None:
        self._logical_channel_open = False

    def _close_physical_channel(self) -> None:
        self._check_reader()
        self._logical_channel_open = False
        self._physical_channel_open = False
