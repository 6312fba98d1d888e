"""ISO 7816-4 APDU value objects.

This module defines the command (``ApduRequest``) and response
(``ApduResponse``) units exchanged with a card. Both hold the wire-level
encoding of the APDU as immutable ``bytes``; nothing is re-encoded on read.

Example:
    ```python
    from cardcomm.card import ApduRequest, ApduResponse

    # Case 4: SELECT by AID, Le forced to 00
    select = ApduRequest(0x00, 0xA4, 0x04, 0x00, bytes.fromhex("A0000001"), 0x00)
    assert select.apdu.hex().upper() == "00A4040004A000000100"
    assert select.is_case4

    response = ApduResponse(bytes.fromhex("DEADBEEF9000"))
    assert response.status_code == 0x9000
    assert response.data_out == bytes.fromhex("DEADBEEF")
    ```
"""

from typing import Any, Dict, Iterable, Optional, Set, Union

from cardcomm.card.exceptions import InvalidArgumentError
from cardcomm.card.status import SUCCESSFUL_STATUS_CODE
from cardcomm.utils.assertion import Assert
from cardcomm.utils.json_util import to_json

ByteBuffer = Union[bytes, bytearray, Iterable[int]]

HEADER_LENGTH = 4
MAX_SHORT_DATA_LENGTH = 255


def as_bytes(data: ByteBuffer, name: str) -> bytes:
    """Convert a byte buffer to immutable bytes."""
    if isinstance(data, bytes):
        return data
    try:
        return bytes(data)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Argument '{name}' is not a byte buffer: {e}") from e


# =============================================================================
# APDU Request
# =============================================================================


class ApduRequest:
    """An ISO 7816-4 command APDU.

    The ISO 7816 case is inferred from the provided arguments:

    - ``data_in is None, le is None``: case 1, ``CLA INS P1 P2 00``
    - ``data_in is None, le is not None``: case 2, ``CLA INS P1 P2 Le``
    - ``data_in is not None, le is None``: case 3, ``CLA INS P1 P2 Lc data``
    - ``data_in is not None, le == 0``: case 4, ``CLA INS P1 P2 Lc data 00``

    Only the case 4 indication is retained. In case 4, Le is always 0x00,
    leaving the transport layer in charge of recovering the exact length
    of the outgoing data.

    Attributes:
        apdu: Raw command bytes.
        is_case4: Whether the command has both ingoing and outgoing data.
        successful_status_codes: Status codes accepted for this command, or
            None to accept only 9000.
        name: Optional free-text name used in logs.
    """

    def __init__(
        self,
        cla: int,
        ins: int,
        p1: int,
        p2: int,
        data_in: Optional[ByteBuffer] = None,
        le: Optional[int] = None,
    ):
        if data_in is not None and le is not None and le != 0:
            raise InvalidArgumentError(
                "Le must be equal to 0 when not null and ingoing data are present.",
                "Case 4 APDUs always use Le=00; the expected length is negotiated by the reader.",
            )

        assertion = Assert.get_instance()
        assertion.is_in_range(cla, 0, 0xFF, "cla")
        assertion.is_in_range(ins, 0, 0xFF, "ins")
        assertion.is_in_range(p1, 0, 0xFF, "p1")
        assertion.is_in_range(p2, 0, 0xFF, "p2")
        if le is not None:
            assertion.is_in_range(le, 0, 0xFF, "le")

        apdu = bytearray([cla, ins, p1, p2])

        if data_in is not None:
            data = as_bytes(data_in, "data_in")
            assertion.is_in_range(len(data), 1, MAX_SHORT_DATA_LENGTH, "data_in.length")
            apdu.append(len(data))
            apdu.extend(data)
            # Case 4: Le forced to 00. Case 3: no Le.
            self._is_case4 = le is not None
            if self._is_case4:
                apdu.append(0x00)
        else:
            # Case 2: Le only. Case 1: P3 = 00.
            apdu.append(le if le is not None else 0x00)
            self._is_case4 = False

        self._apdu = bytes(apdu)
        self._successful_status_codes: Optional[Set[int]] = None
        self._name: Optional[str] = None

    @classmethod
    def from_bytes(cls, apdu: ByteBuffer, is_case4: bool) -> "ApduRequest":
        """Build a request from a pre-formed command buffer.

        Args:
            apdu: Raw command bytes (at least 5 bytes).
            is_case4: True if the command is a case 4 APDU; the last byte
                must then be Le=00.

        Returns:
            New ApduRequest.

        Raises:
            InvalidArgumentError: If the buffer is too short or inconsistent
                with the case 4 indication.
        """
        Assert.get_instance().not_null(apdu, "apdu")
        raw = as_bytes(apdu, "apdu")
        Assert.get_instance().greater_or_equal(len(raw), HEADER_LENGTH + 1, "apdu.length")
        if is_case4 and raw[-1] != 0x00:
            raise InvalidArgumentError(
                f"Case 4 APDU must end with Le=00, got {raw[-1]:02X}."
            )

        request = cls.__new__(cls)
        request._apdu = raw
        request._is_case4 = bool(is_case4)
        request._successful_status_codes = None
        request._name = None
        return request

    @classmethod
    def from_hex(cls, hex_str: str, is_case4: bool = False) -> "ApduRequest":
        """Build a request from a hex string (spaces ignored)."""
        try:
            raw = bytes.fromhex(hex_str.replace(" ", ""))
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid APDU hex string '{hex_str}': {e}") from e
        return cls.from_bytes(raw, is_case4)

    @property
    def apdu(self) -> bytes:
        """Get the command bytes to be sent to the card."""
        return self._apdu

    @property
    def is_case4(self) -> bool:
        """Check if the command is an ISO 7816 case 4 APDU."""
        return self._is_case4

    @property
    def cla(self) -> int:
        return self._apdu[0]

    @property
    def ins(self) -> int:
        return self._apdu[1]

    @property
    def successful_status_codes(self) -> Optional[Set[int]]:
        """Get the accepted status codes, None if not set."""
        return self._successful_status_codes

    def set_successful_status_codes(self, successful_status_codes: Iterable[int]) -> "ApduRequest":
        """Set the status codes considered successful for this command.

        Replaces the default 9000 criterion entirely.

        Args:
            successful_status_codes: A non-empty collection of 16-bit status codes.

        Returns:
            This request, for chaining.
        """
        codes = set(successful_status_codes) if successful_status_codes is not None else None
        Assert.get_instance().not_empty(codes, "successful_status_codes")
        for code in codes:
            Assert.get_instance().is_in_range(code, 0, 0xFFFF, "successful_status_code")
        self._successful_status_codes = codes
        return self

    @property
    def name(self) -> Optional[str]:
        """Get the request name, None if not set."""
        return self._name

    def set_name(self, name: str) -> "ApduRequest":
        """Name the request to make logs easier to read.

        Returns:
            This request, for chaining.
        """
        self._name = name
        return self

    def is_status_code_successful(self, status_code: int) -> bool:
        """Check a response status code against this request's policy."""
        if self._successful_status_codes is None:
            return status_code == SUCCESSFUL_STATUS_CODE
        return status_code in self._successful_status_codes

    def to_hex(self) -> str:
        """Convert to hex string."""
        return self._apdu.hex().upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self._name,
            "apdu": self.to_hex(),
            "isCase4": self._is_case4,
            "successfulStatusCodes": (
                sorted(f"{code:04X}" for code in self._successful_status_codes)
                if self._successful_status_codes is not None
                else None
            ),
        }

    def __str__(self) -> str:
        return "APDU_REQUEST = " + to_json(self)

    def __repr__(self) -> str:
        return f"ApduRequest({self.to_hex()}, is_case4={self._is_case4})"


# =============================================================================
# APDU Response
# =============================================================================


class ApduResponse:
    """An ISO 7816-4 response APDU.

    Attributes:
        apdu: Raw response bytes, data followed by SW1 SW2.
        status_code: SW1SW2 as a 16-bit integer.
    """

    __slots__ = ("_apdu", "_status_code")

    def __init__(self, apdu: ByteBuffer):
        Assert.get_instance().not_null(apdu, "apdu")
        raw = as_bytes(apdu, "apdu")
        Assert.get_instance().greater_or_equal(len(raw), 2, "apdu.length")
        self._apdu = raw
        self._status_code = ((raw[-2] << 8) | raw[-1]) & 0xFFFF

    @classmethod
    def from_hex(cls, hex_str: str) -> "ApduResponse":
        """Build a response from a hex string (spaces ignored)."""
        try:
            raw = bytes.fromhex(hex_str.replace(" ", ""))
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid response hex string '{hex_str}': {e}") from e
        return cls(raw)

    @property
    def apdu(self) -> bytes:
        """Get the raw response bytes, including SW1SW2."""
        return self._apdu

    @property
    def status_code(self) -> int:
        """Get the status word SW1SW2."""
        return self._status_code

    @property
    def sw1(self) -> int:
        return self._status_code >> 8

    @property
    def sw2(self) -> int:
        return self._status_code & 0xFF

    @property
    def data_out(self) -> bytes:
        """Get the response data, excluding SW1SW2."""
        return self._apdu[:-2]

    def is_successful(self, successful_status_codes: Optional[Iterable[int]] = None) -> bool:
        """Check if the status code is in the given set (default: 9000 only)."""
        if successful_status_codes is None:
            return self._status_code == SUCCESSFUL_STATUS_CODE
        return self._status_code in set(successful_status_codes)

    def to_hex(self) -> str:
        """Convert response to hex string."""
        return self._apdu.hex().upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "apdu": self.to_hex(),
            "statusCode": f"{self._status_code:04X}",
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApduResponse):
            return NotImplemented
        return self._apdu == other._apdu

    def __hash__(self) -> int:
        return hash(self._apdu)

    def __str__(self) -> str:
        return "APDU_RESPONSE = " + to_json(self)

    def __repr__(self) -> str:
        return f"ApduResponse({self.to_hex()})"
