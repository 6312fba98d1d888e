"""Card request and card response.

A ``CardRequest`` groups an ordered list of APDU requests with the status
code verification policy; a ``CardResponse`` carries the APDU responses
received for it and the end state of the exchange.
"""

from typing import Any, Dict, Iterable, List

from cardcomm.card.apdu import ApduRequest, ApduResponse
from cardcomm.utils.assertion import Assert
from cardcomm.utils.json_util import to_json


class CardRequest:
    """An ordered list of APDU requests and the status code check policy.

    When status code verification is enabled, the transmission of the APDUs
    is interrupted as soon as a response status code is not expected.

    Attributes:
        apdu_requests: The APDU requests, in transmission order.
    """

    def __init__(
        self,
        apdu_requests: Iterable[ApduRequest],
        is_status_codes_verification_enabled: bool = False,
    ):
        Assert.get_instance().not_null(apdu_requests, "apdu_requests")
        requests = tuple(apdu_requests)
        Assert.get_instance().not_empty(requests, "apdu_requests")
        self._apdu_requests = requests
        self._verification_enabled = bool(is_status_codes_verification_enabled)

    @property
    def apdu_requests(self) -> List[ApduRequest]:
        return list(self._apdu_requests)

    def _is_status_codes_verification_enabled(self) -> bool:
        return self._verification_enabled

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "apduRequests": [r.to_dict() for r in self._apdu_requests],
            "isStatusCodesVerificationEnabled": self._verification_enabled,
        }

    def __str__(self) -> str:
        return "CARD_REQUEST = " + to_json(self)


class CardResponse:
    """The responses received following a card request.

    Attributes:
        apdu_responses: Responses received, in order. May be shorter than
            the request when the exchange was interrupted.
        is_logical_channel_open: Whether the logical channel is still open.
        is_complete: Whether every APDU of the request produced a response.
    """

    def __init__(
        self,
        apdu_responses: Iterable[ApduResponse],
        is_logical_channel_open: bool,
        is_complete: bool,
    ):
        Assert.get_instance().not_null(apdu_responses, "apdu_responses")
        self._apdu_responses = tuple(apdu_responses)
        self._is_logical_channel_open = bool(is_logical_channel_open)
        self._is_complete = bool(is_complete)

    @classmethod
    def empty(cls, is_logical_channel_open: bool) -> "CardResponse":
        """Build a response for an exchange without APDUs."""
        return cls([], is_logical_channel_open, True)

    @property
    def apdu_responses(self) -> List[ApduResponse]:
        return list(self._apdu_responses)

    @property
    def is_logical_channel_open(self) -> bool:
        return self._is_logical_channel_open

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "apduResponses": [r.to_dict() for r in self._apdu_responses],
            "isLogicalChannelOpen": self._is_logical_channel_open,
            "isComplete": self._is_complete,
        }

    def __str__(self) -> str:
        return "CARD_RESPONSE = " + to_json(self)
