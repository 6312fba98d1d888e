"""ISO 7816-4 status words.

Provides the default successful status code and a decoder producing
human-readable messages for logs and exception texts.
"""

from typing import Dict

SUCCESSFUL_STATUS_CODE = 0x9000


class StatusWordDecoder:
    """Decoder for ISO 7816-4 status words."""

    STATUS_WORDS: Dict[int, str] = {
        # Success
        0x9000: "Success",
        # Warnings (62xx)
        0x6200: "Warning: No information given",
        0x6281: "Warning: Part of returned data may be corrupted",
        0x6282: "Warning: End of file/record before Le bytes",
        0x6283: "Warning: Selected file invalidated",
        0x6284: "Warning: FCI not formatted correctly",
        # Warnings (63xx)
        0x6300: "Warning: No information given",
        0x6381: "Warning: File filled up by last write",
        # Execution errors (64xx, 65xx)
        0x6400: "Error: Execution error",
        0x6500: "Error: No information given",
        0x6581: "Error: Memory failure",
        # Wrong length (67xx)
        0x6700: "Error: Wrong length",
        # CLA errors (68xx)
        0x6800: "Error: Functions in CLA not supported",
        0x6881: "Error: Logical channel not supported",
        0x6882: "Error: Secure messaging not supported",
        # Command not allowed (69xx)
        0x6900: "Error: Command not allowed",
        0x6981: "Error: Command incompatible with file structure",
        0x6982: "Error: Security status not satisfied",
        0x6983: "Error: Authentication method blocked",
        0x6984: "Error: Reference data not usable",
        0x6985: "Error: Conditions of use not satisfied",
        0x6986: "Error: Command not allowed (no current EF)",
        # Wrong parameters (6Axx)
        0x6A00: "Error: No information given",
        0x6A80: "Error: Incorrect parameters in data field",
        0x6A81: "Error: Function not supported",
        0x6A82: "Error: File or application not found",
        0x6A83: "Error: Record not found",
        0x6A84: "Error: Not enough memory space",
        0x6A86: "Error: Incorrect parameters P1-P2",
        0x6A88: "Error: Referenced data not found",
        0x6B00: "Error: Wrong parameters P1-P2",
        0x6D00: "Error: Instruction not supported or invalid",
        0x6E00: "Error: Class not supported",
        0x6F00: "Error: No precise diagnosis",
    }

    @classmethod
    def decode(cls, status_code: int) -> str:
        """Decode a status word to a human-readable message.

        Args:
            status_code: SW1SW2 as a 16-bit integer.

        Returns:
            Human-readable status message.
        """
        status_code &= 0xFFFF
        if status_code in cls.STATUS_WORDS:
            return cls.STATUS_WORDS[status_code]

        sw1 = status_code >> 8
        sw2 = status_code & 0xFF
        if sw1 == 0x61:
            return f"More data available ({sw2} bytes)"
        if sw1 == 0x6C:
            return f"Wrong Le ({sw2} bytes available)"
        if sw1 == 0x63 and (sw2 & 0xF0) == 0xC0:
            return f"Verification failed ({sw2 & 0x0F} retries remaining)"

        base = cls.STATUS_WORDS.get(status_code & 0xFF00)
        if base is not None:
            return f"{base} (SW2={sw2:02X})"
        return f"Unknown status: {status_code:04X}"
