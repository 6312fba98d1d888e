"""Card communication core.

This package provides the value objects exchanged with a smart card and
the reader contract used to exchange them.

Core Components:
    - ApduRequest / ApduResponse: ISO 7816-4 command and response APDUs
    - CardRequest / CardResponse: Ordered APDU batches and their results
    - CardSelectionScenario: Multi-case card selection
    - ProxyReader / AbstractProxyReader: Reader contract and generic processing

Example:
    ```python
    from cardcomm.card import ApduRequest, CardRequest, ChannelControl

    request = CardRequest(
        [ApduRequest(0x00, 0xA4, 0x04, 0x00, bytes.fromhex("A000000151000000"), 0x00)],
        is_status_codes_verification_enabled=True,
    )
    response = reader.transmit_card_request(request, ChannelControl.CLOSE_AFTER)
    print(response.apdu_responses[0].status_code)
    ```
"""

from cardcomm.card.exceptions import (
    AbstractApduException,
    AbstractCommunicationException,
    CardApiError,
    CardCommunicationException,
    CardIOError,
    InvalidArgumentError,
    InvalidStateError,
    ReaderCommunicationException,
    ReaderIOError,
    UnexpectedStatusCodeException,
)

from cardcomm.card.status import (
    SUCCESSFUL_STATUS_CODE,
    StatusWordDecoder,
)

from cardcomm.card.apdu import (
    ApduRequest,
    ApduResponse,
)

from cardcomm.card.request import (
    CardRequest,
    CardResponse,
)

from cardcomm.card.selection import (
    AnswerToReset,
    CardSelectionRequest,
    CardSelectionResponse,
    CardSelectionScenario,
    CardSelector,
    ChannelControl,
    MultiSelectionProcessing,
    SelectionStatus,
)

from cardcomm.card.reader import (
    AbstractProxyReader,
    ProxyReader,
)


__all__ = [
    # Exceptions
    "CardApiError",
    "InvalidArgumentError",
    "InvalidStateError",
    "AbstractCommunicationException",
    "ReaderCommunicationException",
    "AbstractApduException",
    "CardCommunicationException",
    "UnexpectedStatusCodeException",
    "ReaderIOError",
    "CardIOError",
    # Status words
    "SUCCESSFUL_STATUS_CODE",
    "StatusWordDecoder",
    # APDU
    "ApduRequest",
    "ApduResponse",
    # Card request
    "CardRequest",
    "CardResponse",
    # Selection
    "AnswerToReset",
    "CardSelector",
    "CardSelectionRequest",
    "CardSelectionResponse",
    "CardSelectionScenario",
    "ChannelControl",
    "MultiSelectionProcessing",
    "SelectionStatus",
    # Reader
    "ProxyReader",
    "AbstractProxyReader",
]
