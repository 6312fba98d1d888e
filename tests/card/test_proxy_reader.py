"""
Unit tests for the generic reader processing.

Tests AbstractProxyReader through a scripted transport: ordered
transmission, partial responses on failure, status code verification,
GET RESPONSE handling, channel control, concurrency policy and
selection scenarios.
"""

import logging
import threading

import pytest

from cardcomm.card import (
    ApduRequest,
    CardCommunicationException,
    CardIOError,
    CardRequest,
    CardSelectionRequest,
    CardSelectionScenario,
    ChannelControl,
    InvalidArgumentError,
    InvalidStateError,
    MultiSelectionProcessing,
    ReaderCommunicationException,
    ReaderIOError,
    UnexpectedStatusCodeException,
)
from cardcomm.config import ReaderConfig

READ_BINARY = ApduRequest(0x00, 0xB0, 0x00, 0x00, le=0x04)
UPDATE_BINARY = ApduRequest(0x00, 0xD6, 0x00, 0x00, b"\x01\x02")
SELECT_ISD = ApduRequest(0x00, 0xA4, 0x04, 0x00, bytes.fromhex("A000000151000000"), 0x00)


def three_apdus(verify=False):
    return CardRequest([READ_BINARY, UPDATE_BINARY, READ_BINARY], verify)


class TestTransmitCardRequest:
    """Test ordered transmission."""

    def test_responses_in_order(self, scripted_reader):
        """Test that every APDU is sent in order and answered."""
        reader = scripted_reader(["010203049000", "9000", "050607089000"])
        response = reader.transmit_card_request(three_apdus(), ChannelControl.KEEP_OPEN)

        assert reader.sent == [READ_BINARY.apdu, UPDATE_BINARY.apdu, READ_BINARY.apdu]
        assert [r.to_hex() for r in response.apdu_responses] == [
            "010203049000",
            "9000",
            "050607089000",
        ]
        assert response.is_complete
        assert response.is_logical_channel_open

    def test_null_arguments_rejected(self, scripted_reader):
        reader = scripted_reader([])
        with pytest.raises(InvalidArgumentError):
            reader.transmit_card_request(None, ChannelControl.KEEP_OPEN)
        with pytest.raises(InvalidArgumentError):
            reader.transmit_card_request(three_apdus(), None)

    def test_name_required(self, scripted_reader):
        with pytest.raises(InvalidArgumentError):
            scripted_reader([], name="")


class TestPartialResponses:
    """Test responses attached to communication exceptions."""

    def test_card_failure_keeps_previous_responses(self, scripted_reader):
        """Test that a card failure at APDU k attaches k responses."""
        reader = scripted_reader(["010203049000", CardIOError("Card removed")])

        with pytest.raises(CardCommunicationException) as exc_info:
            reader.transmit_card_request(three_apdus(), ChannelControl.KEEP_OPEN)

        card_response = exc_info.value.card_response
        assert [r.to_hex() for r in card_response.apdu_responses] == ["010203049000"]
        assert not card_response.is_complete
        assert not card_response.is_logical_channel_open
        assert isinstance(exc_info.value.__cause__, CardIOError)
        assert len(reader.sent) == 2

    def test_card_failure_on_first_apdu(self, scripted_reader):
        reader = scripted_reader([CardIOError("No card")])

        with pytest.raises(CardCommunicationException) as exc_info:
            reader.transmit_card_request(three_apdus(), ChannelControl.KEEP_OPEN)

        assert exc_info.value.card_response.apdu_responses == []

    def test_reader_failure(self, scripted_reader):
        """Test that a reader failure is not reported as a card failure."""
        reader = scripted_reader(["9000", ReaderIOError("Reader unplugged")])

        with pytest.raises(ReaderCommunicationException) as exc_info:
            reader.transmit_card_request(three_apdus(), ChannelControl.KEEP_OPEN)

        assert len(exc_info.value.card_response.apdu_responses) == 1
        assert not exc_info.value.card_response.is_complete
        assert isinstance(exc_info.value.__cause__, ReaderIOError)


class TestStatusCodeVerification:
    """Test status code verification."""

    def test_unexpected_status_stops_batch(self, scripted_reader):
        """Test that the offending response is included and the rest not sent."""
        reader = scripted_reader(["010203049000", "6A82", "9000"])

        with pytest.raises(UnexpectedStatusCodeException) as exc_info:
            reader.transmit_card_request(three_apdus(verify=True), ChannelControl.KEEP_OPEN)

        error = exc_info.value
        assert [r.to_hex() for r in error.card_response.apdu_responses] == [
            "010203049000",
            "6A82",
        ]
        assert not error.card_response.is_complete
        assert error.apdu_index == 1
        assert error.status_code == 0x6A82
        assert "6A82" in error.message
        assert len(reader.sent) == 2

    def test_verification_disabled(self, scripted_reader):
        """Test that unexpected status codes are returned when not verified."""
        reader = scripted_reader(["6A82", "6A82", "6A82"])
        response = reader.transmit_card_request(three_apdus(), ChannelControl.KEEP_OPEN)

        assert [r.status_code for r in response.apdu_responses] == [0x6A82] * 3
        assert response.is_complete

    def test_custom_successful_codes(self, scripted_reader):
        """Test that a per-APDU set of codes is honored."""
        tolerant = ApduRequest(0x00, 0xB0, 0x00, 0x00, le=0x04).set_successful_status_codes(
            {0x9000, 0x6282}
        )
        reader = scripted_reader(["01026282"])
        response = reader.transmit_card_request(
            CardRequest([tolerant], True), ChannelControl.KEEP_OPEN
        )

        assert response.apdu_responses[0].status_code == 0x6282


class TestGetResponse:
    """Test automatic GET RESPONSE and wrong Le handling."""

    def test_more_data_available(self, scripted_reader):
        """Test that SW1=61 triggers GET RESPONSE with Le=SW2."""
        reader = scripted_reader(["6102", "AABB9000"])
        response = reader.transmit_card_request(
            CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN
        )

        assert reader.sent[1] == bytes.fromhex("00C0000002")
        assert response.apdu_responses[0].to_hex() == "AABB9000"

    def test_chained_more_data(self, scripted_reader):
        """Test that chunks are accumulated across several GET RESPONSE."""
        reader = scripted_reader(["01026102", "03046101", "059000"])
        response = reader.transmit_card_request(
            CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN
        )

        assert reader.sent[1:] == [bytes.fromhex("00C0000002"), bytes.fromhex("00C0000001")]
        assert response.apdu_responses[0].to_hex() == "01020304059000"

    def test_case4_bare_success(self, scripted_reader):
        """Test that a case 4 command answered by 9000 alone fetches its data."""
        reader = scripted_reader(["9000", "6F009000"])
        response = reader.transmit_card_request(
            CardRequest([SELECT_ISD]), ChannelControl.KEEP_OPEN
        )

        assert reader.sent[1] == bytes.fromhex("00C0000000")
        assert response.apdu_responses[0].to_hex() == "6F009000"

    def test_case4_with_data_not_followed(self, scripted_reader):
        reader = scripted_reader(["6F009000"])
        reader.transmit_card_request(CardRequest([SELECT_ISD]), ChannelControl.KEEP_OPEN)

        assert len(reader.sent) == 1

    def test_more_data_chain_is_bounded(self, scripted_reader):
        """Test that a card endlessly answering 61xx fails the batch."""
        reader = scripted_reader(
            ["010203049000", "6101", "6101", "6101", "6101"],
            config=ReaderConfig(max_get_response=2),
        )

        with pytest.raises(CardCommunicationException) as exc_info:
            reader.transmit_card_request(
                CardRequest([READ_BINARY, READ_BINARY]), ChannelControl.KEEP_OPEN
            )

        card_response = exc_info.value.card_response
        assert [r.to_hex() for r in card_response.apdu_responses] == ["010203049000"]
        assert not card_response.is_complete
        assert isinstance(exc_info.value.__cause__, CardIOError)
        assert reader.sent[2:] == [bytes.fromhex("00C0000001")] * 2
        assert len(reader.sent) == 4

    def test_wrong_le_resent(self, scripted_reader):
        """Test that SW1=6C on a case 2 command resends it with Le=SW2."""
        reader = scripted_reader(["6C02", "01029000"])
        response = reader.transmit_card_request(
            CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN
        )

        assert reader.sent[1] == bytes.fromhex("00B0000002")
        assert response.apdu_responses[0].to_hex() == "01029000"

    def test_disabled(self, scripted_reader):
        """Test that raw status words are returned when disabled."""
        reader = scripted_reader(["6102"], config=ReaderConfig(auto_get_response=False))
        response = reader.transmit_card_request(
            CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN
        )

        assert response.apdu_responses[0].to_hex() == "6102"
        assert len(reader.sent) == 1

    def test_traffic_logged_at_debug(self, scripted_reader, caplog):
        """Test that commands and responses are traced."""
        reader = scripted_reader(["6102", "AABB9000"])
        with caplog.at_level(logging.DEBUG, logger="cardcomm.card.reader"):
            reader.transmit_card_request(CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN)

        messages = [record.getMessage() for record in caplog.records]
        assert "[scripted] >> 00B0000004" in messages
        assert "[scripted] [GET RESPONSE] << AABB9000" in messages


class TestChannelControl:
    """Test physical channel management."""

    def test_keep_open(self, scripted_reader):
        reader = scripted_reader(["9000"])
        reader.transmit_card_request(CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN)

        assert reader.physical_closes == 0

    def test_close_after(self, scripted_reader):
        reader = scripted_reader(["9000"])
        response = reader.transmit_card_request(
            CardRequest([READ_BINARY]), ChannelControl.CLOSE_AFTER
        )

        assert reader.physical_closes == 1
        assert not response.is_logical_channel_open

    def test_close_after_on_failure(self, scripted_reader):
        """Test that the channel is released when the batch fails."""
        reader = scripted_reader(["9000", CardIOError("Card removed")])

        with pytest.raises(CardCommunicationException):
            reader.transmit_card_request(three_apdus(), ChannelControl.CLOSE_AFTER)

        assert reader.physical_closes == 1

    def test_release_failure_does_not_hide_original_error(self, scripted_reader):
        reader = scripted_reader([CardIOError("Card removed")])
        reader.fail_close = True

        with pytest.raises(CardCommunicationException):
            reader.transmit_card_request(three_apdus(), ChannelControl.CLOSE_AFTER)

    def test_release_failure_after_success(self, scripted_reader):
        reader = scripted_reader(["9000"])
        reader.fail_close = True

        with pytest.raises(ReaderCommunicationException):
            reader.transmit_card_request(CardRequest([READ_BINARY]), ChannelControl.CLOSE_AFTER)

    def test_release_channel(self, scripted_reader):
        reader = scripted_reader([])
        reader.release_channel()

        assert reader.physical_closes == 1
        assert not reader.logical_open

    def test_release_channel_reader_failure(self, scripted_reader):
        reader = scripted_reader([])
        reader.fail_close = True

        with pytest.raises(ReaderCommunicationException) as exc_info:
            reader.release_channel()
        assert isinstance(exc_info.value.__cause__, ReaderIOError)


class TestConcurrency:
    """Test the concurrency policy."""

    def test_fail_fast_rejects_concurrent_call(self, scripted_reader):
        """Test that a busy fail-fast reader raises InvalidStateError."""
        reader = scripted_reader(["9000"], config=ReaderConfig(concurrency="fail_fast"))
        reader._lock.acquire()
        try:
            with pytest.raises(InvalidStateError):
                reader.transmit_card_request(CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN)
        finally:
            reader._lock.release()

        assert reader.sent == []

    def test_serialize_waits_for_current_call(self, scripted_reader):
        """Test that a serializing reader blocks until the lock is free."""
        reader = scripted_reader(["9000"])
        results = []

        reader._lock.acquire()
        worker = threading.Thread(
            target=lambda: results.append(
                reader.transmit_card_request(CardRequest([READ_BINARY]), ChannelControl.KEEP_OPEN)
            )
        )
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert results == []

        reader._lock.release()
        worker.join(timeout=5)
        assert len(results) == 1
        assert results[0].is_complete

    def test_invalid_policy_rejected(self, scripted_reader):
        with pytest.raises(ValueError):
            scripted_reader([], config=ReaderConfig(concurrency="parallel"))


class TestSelectionScenario:
    """Test selection scenario processing."""

    def scenario(self, count, processing, channel_control=ChannelControl.KEEP_OPEN, card_request=None):
        return CardSelectionScenario(
            [CardSelectionRequest(f"selector-{i}", card_request) for i in range(count)],
            processing,
            channel_control,
        )

    def test_first_match_stops_at_match(self, scripted_reader, make_status):
        reader = scripted_reader([])
        reader.selections = [make_status(False), make_status(True), make_status(True)]

        responses = reader.transmit_card_selection_scenario(
            self.scenario(3, MultiSelectionProcessing.FIRST_MATCH)
        )

        assert [r.has_matched for r in responses] == [False, True]
        assert len(reader.selections) == 1
        assert reader.logical_open
        assert responses[1].card_response.is_logical_channel_open

    def test_process_all(self, scripted_reader, make_status):
        """Test that every case runs, closing the logical channel in between."""
        reader = scripted_reader([])
        reader.selections = [make_status(True), make_status(False), make_status(True)]

        responses = reader.transmit_card_selection_scenario(
            self.scenario(3, MultiSelectionProcessing.PROCESS_ALL)
        )

        assert [r.has_matched for r in responses] == [True, False, True]
        assert reader.logical_closes == 2

    def test_card_failure_yields_non_matching_case(self, scripted_reader, make_status):
        """Test that a card failure does not end the scenario."""
        reader = scripted_reader([])
        reader.selections = [CardIOError("Card mute"), make_status(True)]

        responses = reader.transmit_card_selection_scenario(
            self.scenario(2, MultiSelectionProcessing.FIRST_MATCH)
        )

        assert [r.has_matched for r in responses] == [False, True]
        assert responses[0].selection_status.atr.value == b""
        assert not responses[0].card_response.is_complete

    def test_reader_failure_propagates(self, scripted_reader, make_status):
        reader = scripted_reader([])
        reader.selections = [make_status(False), ReaderIOError("Reader unplugged")]

        with pytest.raises(ReaderCommunicationException):
            reader.transmit_card_selection_scenario(
                self.scenario(2, MultiSelectionProcessing.FIRST_MATCH)
            )

    def test_card_request_sent_after_match(self, scripted_reader, make_status):
        reader = scripted_reader(["010203049000"])
        reader.selections = [make_status(True, "6F009000")]

        responses = reader.transmit_card_selection_scenario(
            self.scenario(1, MultiSelectionProcessing.FIRST_MATCH, card_request=CardRequest([READ_BINARY]))
        )

        assert responses[0].selection_status.fci.to_hex() == "6F009000"
        assert responses[0].card_response.apdu_responses[0].to_hex() == "010203049000"
        assert reader.sent == [READ_BINARY.apdu]

    def test_card_request_not_sent_without_match(self, scripted_reader, make_status):
        reader = scripted_reader([])
        reader.selections = [make_status(False)]

        responses = reader.transmit_card_selection_scenario(
            self.scenario(1, MultiSelectionProcessing.FIRST_MATCH, card_request=CardRequest([READ_BINARY]))
        )

        assert responses[0].card_response.apdu_responses == []
        assert reader.sent == []

    def test_card_request_failure_keeps_partial_response(self, scripted_reader, make_status):
        reader = scripted_reader(["6A82"])
        reader.selections = [make_status(True)]

        responses = reader.transmit_card_selection_scenario(
            self.scenario(
                1, MultiSelectionProcessing.FIRST_MATCH, card_request=CardRequest([READ_BINARY], True)
            )
        )

        card_response = responses[0].card_response
        assert responses[0].has_matched
        assert card_response.apdu_responses[0].status_code == 0x6A82
        assert not card_response.is_complete

    def test_close_after(self, scripted_reader, make_status):
        reader = scripted_reader([])
        reader.selections = [make_status(True)]

        reader.transmit_card_selection_scenario(
            self.scenario(1, MultiSelectionProcessing.FIRST_MATCH, ChannelControl.CLOSE_AFTER)
        )

        assert reader.physical_closes == 1
