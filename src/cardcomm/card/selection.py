"""Card selection model.

A selection scenario is an ordered list of selection cases, each made of
a card selector targeting a card profile and an optional card request to
send once the logical channel is open, plus two policies: whether to stop
at the first matching case, and what to do with the physical channel at
the end of the scenario.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol

from cardcomm.card.apdu import ApduResponse, ByteBuffer, as_bytes
from cardcomm.card.exceptions import InvalidArgumentError, InvalidStateError
from cardcomm.card.request import CardRequest, CardResponse
from cardcomm.utils.assertion import Assert
from cardcomm.utils.json_util import to_json


# =============================================================================
# Policies
# =============================================================================


class ChannelControl(Enum):
    """Physical channel management policy."""

    KEEP_OPEN = "keep_open"  # Leave the physical channel open
    CLOSE_AFTER = "close_after"  # Close it, or start a removal sequence


class MultiSelectionProcessing(Enum):
    """Processing policy of a multi-case selection scenario."""

    FIRST_MATCH = "first_match"  # Stop at the first matching case
    PROCESS_ALL = "process_all"  # Run every case and collect all results


# =============================================================================
# Selection Status
# =============================================================================


class CardSelector(Protocol):
    """Opaque card profile descriptor.

    The card API stores and forwards selectors without inspecting them;
    only concrete readers know how to interpret the selectors they accept.
    """


class AnswerToReset:
    """The power-on data returned by the card (ATR)."""

    __slots__ = ("_bytes",)

    def __init__(self, atr: ByteBuffer):
        Assert.get_instance().not_null(atr, "atr")
        self._bytes = as_bytes(atr, "atr")

    @property
    def value(self) -> bytes:
        return self._bytes

    def to_hex(self) -> str:
        """Get ATR as hex string."""
        return self._bytes.hex().upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"atr": self.to_hex()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnswerToReset):
            return NotImplemented
        return self._bytes == other._bytes

    def __hash__(self) -> int:
        return hash(self._bytes)

    def __repr__(self) -> str:
        return f"AnswerToReset({self.to_hex()})"


class SelectionStatus:
    """Outcome of the activation of a card profile.

    Note: ATR and FCI are optional but cannot both be None.

    Attributes:
        atr: Power-on data (optional).
        fci: Response to the SELECT command (optional).
        has_matched: Whether the card matched the selection.
    """

    def __init__(
        self,
        atr: Optional[AnswerToReset],
        fci: Optional[ApduResponse],
        has_matched: bool,
    ):
        if atr is None and fci is None:
            raise InvalidStateError("ATR and FCI are both null.")
        self._atr = atr
        self._fci = fci
        self._has_matched = bool(has_matched)

    @property
    def atr(self) -> Optional[AnswerToReset]:
        return self._atr

    @property
    def fci(self) -> Optional[ApduResponse]:
        return self._fci

    @property
    def has_matched(self) -> bool:
        return self._has_matched

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "atr": self._atr.to_hex() if self._atr is not None else None,
            "fci": self._fci.to_dict() if self._fci is not None else None,
            "hasMatched": self._has_matched,
        }

    def __str__(self) -> str:
        return "SELECTION_STATUS = " + to_json(self)


# =============================================================================
# Selection Request / Response
# =============================================================================


class CardSelectionRequest:
    """A selection case: a card selector and an optional card request.

    The card request, when present, is sent once the selection has
    succeeded, typically to continue a transaction on the logical channel
    just opened.
    """

    def __init__(
        self,
        card_selector: CardSelector,
        card_request: Optional[CardRequest] = None,
    ):
        Assert.get_instance().not_null(card_selector, "card_selector")
        self._card_selector = card_selector
        self._card_request = card_request

    @property
    def card_selector(self) -> CardSelector:
        return self._card_selector

    @property
    def card_request(self) -> Optional[CardRequest]:
        return self._card_request

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        selector = self._card_selector
        return {
            "cardSelector": selector.to_dict() if hasattr(selector, "to_dict") else repr(selector),
            "cardRequest": self._card_request.to_dict() if self._card_request is not None else None,
        }

    def __str__(self) -> str:
        return "CARD_SELECTION_REQUEST = " + to_json(self)


class CardSelectionResponse:
    """The data obtained from a card in response to a selection case."""

    def __init__(self, selection_status: SelectionStatus, card_response: CardResponse):
        Assert.get_instance().not_null(selection_status, "selection_status").not_null(
            card_response, "card_response"
        )
        self._selection_status = selection_status
        self._card_response = card_response

    @property
    def selection_status(self) -> SelectionStatus:
        return self._selection_status

    @property
    def card_response(self) -> CardResponse:
        return self._card_response

    @property
    def has_matched(self) -> bool:
        return self._selection_status.has_matched

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "selectionStatus": self._selection_status.to_dict(),
            "cardResponse": self._card_response.to_dict(),
        }

    def __str__(self) -> str:
        return "CARD_SELECTION_RESPONSE = " + to_json(self)


# =============================================================================
# Selection Scenario
# =============================================================================


class CardSelectionScenario:
    """A selection scenario: ordered selection cases and two policies.

    The cases should be ordered according to the cards expected by the
    application; the first case of the list is processed first.

    Example:
        >>> scenario = CardSelectionScenario(
        ...     [CardSelectionRequest(selector_a), CardSelectionRequest(selector_b)],
        ...     MultiSelectionProcessing.FIRST_MATCH,
        ...     ChannelControl.KEEP_OPEN,
        ... )
    """

    def __init__(
        self,
        card_selection_requests: Iterable[CardSelectionRequest],
        multi_selection_processing: MultiSelectionProcessing,
        channel_control: ChannelControl,
    ):
        Assert.get_instance().not_null(card_selection_requests, "card_selection_requests")
        requests = tuple(card_selection_requests)
        Assert.get_instance().not_empty(requests, "card_selection_requests").not_null(
            multi_selection_processing, "multi_selection_processing"
        ).not_null(channel_control, "channel_control")
        self._card_selection_requests = requests
        try:
            self._multi_selection_processing = MultiSelectionProcessing(multi_selection_processing)
        except ValueError as e:
            raise InvalidArgumentError(
                f"Unknown multi selection processing: {multi_selection_processing!r}",
                hint=f"Use one of {[m.value for m in MultiSelectionProcessing]}",
            ) from e
        try:
            self._channel_control = ChannelControl(channel_control)
        except ValueError as e:
            raise InvalidArgumentError(
                f"Unknown channel control: {channel_control!r}",
                hint=f"Use one of {[c.value for c in ChannelControl]}",
            ) from e

    @property
    def card_selection_requests(self) -> List[CardSelectionRequest]:
        return list(self._card_selection_requests)

    @property
    def multi_selection_processing(self) -> MultiSelectionProcessing:
        return self._multi_selection_processing

    @property
    def channel_control(self) -> ChannelControl:
        return self._channel_control

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cardSelectionRequests": [r.to_dict() for r in self._card_selection_requests],
            "multiSelectionProcessing": self._multi_selection_processing.name,
            "channelControl": self._channel_control.name,
        }

    def __str__(self) -> str:
        return "CARD_SELECTION_SCENARIO = " + to_json(self)
