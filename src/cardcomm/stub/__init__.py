"""In-memory card and reader.

A ``StubCard`` answers commands from a script of hex command/response
pairs; a ``StubReader`` drives it through the generic reader processing.
Card scripts can be kept in YAML files:

    atr: "3B9F96801FC78031E073FE211B63F100"
    default_response: "6D00"
    responses:
      "00A4040007A000000151000000": "6F108407A0000001510000A5049F6501FF9000"
      "00B0000010": "0102030405060708090A0B0C0D0E0F109000"

Example:
    ```python
    from cardcomm.stub import StubReader, StubCardSelector, load_stub_card

    reader = StubReader("stub", load_stub_card("cards/isd.yaml"))
    ```
"""

from cardcomm.stub.card import StubCard, StubCardLoadError, load_stub_card
from cardcomm.stub.reader import StubReader
from cardcomm.stub.selector import StubCardSelector

__all__ = [
    "StubCard",
    "StubCardLoadError",
    "StubCardSelector",
    "StubReader",
    "load_stub_card",
]
