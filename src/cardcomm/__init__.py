"""cardcomm - Smart card communication API.

Value objects, reader contract and selection model used to talk to
ISO 7816 smart cards, independent of any transport.

Subpackages:
    - card: APDUs, card requests, selection and the reader contract
    - stub: In-memory card and reader driven by YAML card scripts
    - observability: Structured logging

Example:
    ```python
    from cardcomm import ApduRequest, CardRequest, ChannelControl
    from cardcomm.stub import StubReader, load_stub_card

    reader = StubReader("stub", load_stub_card("cards/isd.yaml"))
    response = reader.transmit_card_request(
        CardRequest([ApduRequest(0x00, 0xB0, 0x00, 0x00, le=0x10)]),
        ChannelControl.CLOSE_AFTER,
    )
    ```
"""

from cardcomm.properties import VERSION

# The card package must be initialized before cardcomm.utils
from cardcomm.card import (
    AbstractProxyReader,
    ApduRequest,
    ApduResponse,
    CardCommunicationException,
    CardRequest,
    CardResponse,
    CardSelectionRequest,
    CardSelectionResponse,
    CardSelectionScenario,
    ChannelControl,
    MultiSelectionProcessing,
    ProxyReader,
    ReaderCommunicationException,
    SelectionStatus,
    UnexpectedStatusCodeException,
)

__version__ = VERSION

__all__ = [
    "VERSION",
    "__version__",
    "AbstractProxyReader",
    "ApduRequest",
    "ApduResponse",
    "CardCommunicationException",
    "CardRequest",
    "CardResponse",
    "CardSelectionRequest",
    "CardSelectionResponse",
    "CardSelectionScenario",
    "ChannelControl",
    "MultiSelectionProcessing",
    "ProxyReader",
    "ReaderCommunicationException",
    "SelectionStatus",
    "UnexpectedStatusCodeException",
]
