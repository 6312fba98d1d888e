"""Exception hierarchy for the card communication layer.

This module defines the construction-time errors raised by the value
objects, the communication exceptions surfaced by readers, and the
transport-level errors raised by concrete reader implementations.

Communication exceptions raised while a card request is in progress embed
the card response collected so far, so that callers can recover whatever
was observed before the failure (card tearing, removal, timeout).
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from cardcomm.card.request import CardResponse


class CardApiError(Exception):
    """Base exception for all card API errors.

    Attributes:
        message: Human-readable error description.
        hint: Optional troubleshooting hint.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


# =============================================================================
# Construction Errors
# =============================================================================


class InvalidArgumentError(CardApiError, ValueError):
    """Raised when a value object is built from inconsistent arguments."""


class InvalidStateError(CardApiError, RuntimeError):
    """Raised when an object or a reader is not in a usable state.

    This occurs when:
    - A selection status is built with neither ATR nor FCI
    - A fail-fast reader receives a concurrent transmission
    """


# =============================================================================
# Communication Exceptions
# =============================================================================


class AbstractCommunicationException(CardApiError):
    """Base of the exceptions raised when an exchange with a reader fails.

    Attributes:
        card_response: Responses received before the failure, if any.
    """

    def __init__(
        self,
        message: str,
        card_response: Optional["CardResponse"] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message, hint)
        self.card_response = card_response


class ReaderCommunicationException(AbstractCommunicationException):
    """Raised when the communication with the reader itself has failed.

    The card state is unknown. Responses collected before the failure, if
    any, are still attached for diagnostic purposes.
    """

    def __init__(
        self,
        message: str,
        card_response: Optional["CardResponse"] = None,
    ):
        hint = (
            "Check that:\n"
            "  - The reader is still connected\n"
            "  - The reader driver/service is running\n"
            "Reconnecting the reader before retrying is usually required."
        )
        super().__init__(message, card_response, hint)


class AbstractApduException(AbstractCommunicationException):
    """Base of the exceptions carrying the card responses received so far."""

    def __init__(
        self,
        card_response: "CardResponse",
        message: str,
        hint: Optional[str] = None,
    ):
        super().__init__(message, card_response, hint)


class CardCommunicationException(AbstractApduException):
    """Raised when the communication with the card failed mid-batch.

    Typical causes are card tearing, card removal or a timeout. All the
    responses received before the failure are attached.
    """

    def __init__(self, card_response: "CardResponse", message: str):
        hint = "The card may have been removed from the field; partial responses are attached."
        super().__init__(card_response, message, hint)


class UnexpectedStatusCodeException(AbstractApduException):
    """Raised when a response status word is not in its permitted set.

    Only raised when the card request enabled status code verification.
    The attached card response includes the offending response.

    Attributes:
        apdu_index: Index of the offending APDU in the card request.
        status_code: The unexpected status word.
    """

    def __init__(
        self,
        card_response: "CardResponse",
        message: str,
        apdu_index: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(card_response, message)
        self.apdu_index = apdu_index
        self.status_code = status_code


# =============================================================================
# Transport Errors
# =============================================================================


class ReaderIOError(CardApiError):
    """Raised by a reader implementation when its transport has failed."""


class CardIOError(CardApiError):
    """Raised by a reader implementation when the card stopped answering."""
