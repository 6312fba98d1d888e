"""Reader contract and generic card request processing.

``ProxyReader`` is the behavioral surface of the card API: a reader able
to transmit card requests and having control over the physical channel.

``AbstractProxyReader`` implements that contract on top of a small
transport interface that concrete readers provide (``_transmit_apdu``,
channel management, selection). It owns the parts that must behave the
same for every transport:

- APDUs are sent strictly in list order and responses kept in that order
- Transport failures are mapped to communication exceptions carrying the
  responses received so far
- Status code verification aborts the batch at the first unexpected
  status word
- The channel control policy is applied after the last APDU or upon failure
- Selection scenarios follow the first-match / process-all policy

Example:
    ```python
    from cardcomm.card import ApduRequest, CardRequest, ChannelControl

    request = CardRequest([ApduRequest(0x00, 0xB0, 0x00, 0x00, le=0x10)], True)
    try:
        response = reader.transmit_card_request(request, ChannelControl.KEEP_OPEN)
    except CardCommunicationException as e:
        # Card removed: recover what was received before the failure
        partial = e.card_response.apdu_responses
    ```
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from cardcomm.card.apdu import ApduRequest, ApduResponse
from cardcomm.card.exceptions import (
    AbstractApduException,
    AbstractCommunicationException,
    CardCommunicationException,
    CardIOError,
    InvalidStateError,
    ReaderCommunicationException,
    ReaderIOError,
    UnexpectedStatusCodeException,
)
from cardcomm.card.request import CardRequest, CardResponse
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
from cardcomm.card.status import SUCCESSFUL_STATUS_CODE, StatusWordDecoder
from cardcomm.config import CONCURRENCY_FAIL_FAST, ReaderConfig
from cardcomm.utils.assertion import Assert

logger = logging.getLogger(__name__)

INS_GET_RESPONSE = 0xC0
SW1_MORE_DATA = 0x61
SW1_WRONG_LE = 0x6C


# =============================================================================
# Reader Contract
# =============================================================================


class ProxyReader(ABC):
    """Reader able to transmit card requests and control the physical channel.

    Both operations are blocking and run to completion on the calling thread.
    """

    @abstractmethod
    def transmit_card_request(
        self,
        card_request: CardRequest,
        channel_control: ChannelControl,
    ) -> CardResponse:
        """Transmit a card request and apply the channel control policy.

        The APDUs of the card request are sent to the card in order; their
        responses are added to a new list. In case of a communication error,
        the responses to the previous APDUs are attached to the exception,
        allowing the caller to be tolerant to card tearing.

        Args:
            card_request: The card request.
            channel_control: The channel control policy to apply.

        Returns:
            The card response.

        Raises:
            ReaderCommunicationException: If the communication with the reader failed.
            CardCommunicationException: If the communication with the card failed.
            UnexpectedStatusCodeException: If a status code was not expected and
                the card request enabled status code verification.
        """

    @abstractmethod
    def release_channel(self) -> None:
        """Release the communication channel previously established with the card.

        Raises:
            ReaderCommunicationException: If the communication with the reader failed.
        """


# =============================================================================
# Generic Reader
# =============================================================================


class AbstractProxyReader(ProxyReader):
    """Generic ProxyReader built on a minimal transport interface.

    Concurrency policy: calls on one instance are serialized by a lock
    (``ReaderConfig.concurrency == "serialize"``, the default), or a call
    made while another is in progress raises InvalidStateError
    (``"fail_fast"``).

    Subclasses implement:
        _transmit_apdu: Exchange raw bytes with the card.
        _process_selection: Interpret a card selector and open the logical channel.
        _is_logical_channel_open: Logical channel state.
        _close_logical_channel: Close the logical channel (no I/O failure expected).
        _close_physical_channel: Close the physical channel.
    """

    def __init__(self, name: str, config: Optional[ReaderConfig] = None):
        Assert.get_instance().not_empty(name, "name")
        self._name = name
        self._config = config or ReaderConfig()
        self._config.validate()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        """Get the reader name."""
        return self._name

    @property
    def config(self) -> ReaderConfig:
        return self._config

    # =========================================================================
    # Transport Interface
    # =========================================================================

    @abstractmethod
    def _transmit_apdu(self, apdu: bytes) -> bytes:
        """Send a command to the card and return its raw response.

        Raises:
            ReaderIOError: If the communication with the reader failed.
            CardIOError: If the communication with the card failed.
        """

    @abstractmethod
    def _process_selection(self, card_selector: CardSelector) -> SelectionStatus:
        """Try to activate the card profile described by the selector.

        On a match, the logical channel must be left open.

        Raises:
            ReaderIOError: If the communication with the reader failed.
            CardIOError: If the communication with the card failed.
        """

    @abstractmethod
    def _is_logical_channel_open(self) -> bool:
        """Check if the logical channel is open."""

    @abstractmethod
    def _close_logical_channel(self) -> None:
        """Close the logical channel."""

    @abstractmethod
    def _close_physical_channel(self) -> None:
        """Close the physical channel.

        Raises:
            ReaderIOError: If the communication with the reader failed.
        """

    # =========================================================================
    # ProxyReader
    # =========================================================================

    def transmit_card_request(
        self,
        card_request: CardRequest,
        channel_control: ChannelControl,
    ) -> CardResponse:
        """Transmit a card request and apply the channel control policy.

        See ProxyReader.transmit_card_request.
        """
        Assert.get_instance().not_null(card_request, "card_request").not_null(
            channel_control, "channel_control"
        )
        with self._exclusive("transmit_card_request"):
            return self._transmit_card_request(card_request, channel_control)

    def release_channel(self) -> None:
        """Release the logical and physical channels.

        Raises:
            ReaderCommunicationException: If the communication with the reader failed.
        """
        with self._exclusive("release_channel"):
            self._release_channel()

    def transmit_card_selection_scenario(
        self,
        card_selection_scenario: CardSelectionScenario,
    ) -> List[CardSelectionResponse]:
        """Process a card selection scenario.

        Selection cases are processed in order. A case that fails to
        communicate with the card yields a non-matching response and does
        not end the scenario. With FIRST_MATCH, processing stops at the
        first matching case; with PROCESS_ALL every case is processed and
        the logical channel is closed between cases. The scenario's channel
        control policy is applied at the end.

        Args:
            card_selection_scenario: The selection scenario.

        Returns:
            One card selection response per processed case, in order.

        Raises:
            ReaderCommunicationException: If the communication with the reader failed.
        """
        Assert.get_instance().not_null(card_selection_scenario, "card_selection_scenario")
        with self._exclusive("transmit_card_selection_scenario"):
            return self._transmit_card_selection_scenario(card_selection_scenario)

    # =========================================================================
    # Internals
    # =========================================================================

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        """Apply the concurrency policy around an operation."""
        if self._config.concurrency == CONCURRENCY_FAIL_FAST:
            if not self._lock.acquire(blocking=False):
                raise InvalidStateError(
                    f"Reader '{self._name}' is busy - cannot perform {operation}",
                    "This reader does not serialize concurrent calls.",
                )
        else:
            self._lock.acquire()
        try:
            yield
        finally:
            self._lock.release()

    def _transmit_card_request(
        self,
        card_request: CardRequest,
        channel_control: ChannelControl,
    ) -> CardResponse:
        """Transmit a card request (lock held)."""
        try:
            apdu_responses = self._transmit_apdu_requests(card_request)
        except AbstractCommunicationException:
            self._apply_channel_control(channel_control, on_error=True)
            raise

        self._apply_channel_control(channel_control)
        return CardResponse(apdu_responses, self._is_logical_channel_open(), True)

    def _transmit_apdu_requests(self, card_request: CardRequest) -> List[ApduResponse]:
        """Send the APDUs of a card request in order."""
        verification_enabled = card_request._is_status_codes_verification_enabled()
        apdu_responses: List[ApduResponse] = []

        for index, apdu_request in enumerate(card_request.apdu_requests):
            try:
                apdu_response = self._process_apdu_request(apdu_request)
            except ReaderIOError as e:
                logger.warning(f"[{self._name}] reader failure at APDU #{index}: {e.message}")
                raise ReaderCommunicationException(
                    f"Reader communication failure while transmitting APDU #{index}: {e.message}",
                    CardResponse(apdu_responses, self._is_logical_channel_open(), False),
                ) from e
            except CardIOError as e:
                logger.warning(f"[{self._name}] card failure at APDU #{index}: {e.message}")
                self._close_logical_channel()
                raise CardCommunicationException(
                    CardResponse(apdu_responses, False, False),
                    f"Card communication failure while transmitting APDU #{index}: {e.message}",
                ) from e

            apdu_responses.append(apdu_response)

            if verification_enabled and not apdu_request.is_status_code_successful(
                apdu_response.status_code
            ):
                status_code = apdu_response.status_code
                label = f" ({apdu_request.name})" if apdu_request.name else ""
                raise UnexpectedStatusCodeException(
                    CardResponse(apdu_responses, self._is_logical_channel_open(), False),
                    f"Unexpected status code {status_code:04X} for APDU #{index}{label}: "
                    f"{StatusWordDecoder.decode(status_code)}",
                    apdu_index=index,
                    status_code=status_code,
                )

        return apdu_responses

    def _process_apdu_request(self, apdu_request: ApduRequest) -> ApduResponse:
        """Exchange one APDU, handling GET RESPONSE and wrong Le retries."""
        label = f" [{apdu_request.name}]" if apdu_request.name else ""
        apdu_response = self._exchange(apdu_request.apdu, label)

        if not self._config.auto_get_response:
            return apdu_response

        if apdu_response.sw1 == SW1_MORE_DATA:
            # T=0: response data pending, possibly in several chunks
            data = b""
            exchanges = 0
            while apdu_response.sw1 == SW1_MORE_DATA:
                if exchanges == self._config.max_get_response:
                    raise CardIOError(
                        f"Card still reports more data after {exchanges} GET RESPONSE commands"
                    )
                exchanges += 1
                data += apdu_response.data_out
                apdu_response = self._get_response(apdu_request.cla, apdu_response.sw2)
            if data:
                apdu_response = ApduResponse(data + apdu_response.apdu)

        elif (
            apdu_request.is_case4
            and len(apdu_response.apdu) == 2
            and apdu_response.status_code == SUCCESSFUL_STATUS_CODE
        ):
            # Case 4 answered without data: recover it with Le=00
            apdu_response = self._get_response(apdu_request.cla, 0x00)

        elif apdu_response.sw1 == SW1_WRONG_LE and len(apdu_request.apdu) == 5:
            # Case 2 with a wrong Le: resend with the length given by the card
            retry = apdu_request.apdu[:4] + bytes([apdu_response.sw2])
            apdu_response = self._exchange(retry, label)

        return apdu_response

    def _get_response(self, cla: int, le: int) -> ApduResponse:
        return self._exchange(bytes([cla, INS_GET_RESPONSE, 0x00, 0x00, le]), " [GET RESPONSE]")

    def _exchange(self, apdu: bytes, label: str = "") -> ApduResponse:
        logger.debug(f"[{self._name}]{label} >> {apdu.hex().upper()}")
        response = ApduResponse(self._transmit_apdu(apdu))
        logger.debug(f"[{self._name}]{label} << {response.to_hex()}")
        return response

    def _release_channel(self) -> None:
        """Close the logical and physical channels (lock held)."""
        self._close_logical_channel()
        try:
            self._close_physical_channel()
        except ReaderIOError as e:
            raise ReaderCommunicationException(
                f"Failed to release the physical channel of reader '{self._name}': {e.message}"
            ) from e
        logger.debug(f"[{self._name}] physical channel released")

    def _apply_channel_control(self, channel_control: ChannelControl, on_error: bool = False) -> None:
        """Release the channel when required by the policy.

        When an exception is already propagating, a release failure is
        logged instead of replacing it.
        """
        if channel_control is not ChannelControl.CLOSE_AFTER:
            return
        try:
            self._release_channel()
        except ReaderCommunicationException as e:
            if not on_error:
                raise
            logger.warning(f"[{self._name}] channel release failed after error: {e.message}")

    def _transmit_card_selection_scenario(
        self,
        scenario: CardSelectionScenario,
    ) -> List[CardSelectionResponse]:
        """Process a selection scenario (lock held)."""
        selection_requests = scenario.card_selection_requests
        first_match = scenario.multi_selection_processing is MultiSelectionProcessing.FIRST_MATCH
        selection_responses: List[CardSelectionResponse] = []

        try:
            for index, selection_request in enumerate(selection_requests):
                selection_response = self._process_card_selection_request(selection_request)
                selection_responses.append(selection_response)
                logger.info(
                    f"[{self._name}] selection case #{index}: "
                    f"{'matched' if selection_response.has_matched else 'not matched'}"
                )

                if selection_response.has_matched and first_match:
                    break
                if index < len(selection_requests) - 1:
                    self._close_logical_channel()
        except ReaderCommunicationException:
            self._apply_channel_control(scenario.channel_control, on_error=True)
            raise

        self._apply_channel_control(scenario.channel_control)
        return selection_responses

    def _process_card_selection_request(
        self,
        selection_request: CardSelectionRequest,
    ) -> CardSelectionResponse:
        """Process one selection case (lock held)."""
        try:
            selection_status = self._process_selection(selection_request.card_selector)
        except ReaderIOError as e:
            raise ReaderCommunicationException(
                f"Reader communication failure during selection: {e.message}"
            ) from e
        except CardIOError as e:
            logger.warning(f"[{self._name}] card failure during selection: {e.message}")
            self._close_logical_channel()
            # No power-on data observed: an empty ATR stands for it
            return CardSelectionResponse(
                SelectionStatus(AnswerToReset(b""), None, False),
                CardResponse([], False, False),
            )

        if not selection_status.has_matched:
            return CardSelectionResponse(
                selection_status, CardResponse.empty(self._is_logical_channel_open())
            )

        card_request = selection_request.card_request
        if card_request is None:
            return CardSelectionResponse(
                selection_status, CardResponse.empty(self._is_logical_channel_open())
            )

        try:
            card_response = self._transmit_card_request(card_request, ChannelControl.KEEP_OPEN)
        except AbstractApduException as e:
            logger.warning(f"[{self._name}] selection card request interrupted: {e.message}")
            card_response = e.card_response

        return CardSelectionResponse(selection_status, card_response)
