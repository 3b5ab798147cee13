"""
Unit tests for the one-shot handshake attempt.
"""

import threading
import time

import pytest

from httpupgrade.handshake.attempt import HandshakeAttempt
from httpupgrade.handshake.result import HandshakeResult, RejectReason


class TestHandshakeAttempt:
    """Tests for HandshakeAttempt."""

    def test_generates_secret_key(self):
        """Test that each attempt gets its own key."""
        assert HandshakeAttempt().secret_key != HandshakeAttempt().secret_key

    def test_uses_given_key(self):
        """Test that an explicit key is kept."""
        assert HandshakeAttempt("AAAAAAAAAAAAAAAAAAAAAA==").secret_key == "AAAAAAAAAAAAAAAAAAAAAA=="

    def test_first_conclusion_wins(self):
        """Test that only the first result is stored."""
        attempt = HandshakeAttempt()

        assert attempt.conclude(HandshakeResult.accepted()) is True
        assert attempt.conclude(HandshakeResult.rejected(RejectReason.ACCEPT_MISMATCH)) is False

        assert attempt.concluded
        assert attempt.result.upgraded

    def test_wait_returns_result(self):
        """Test that wait() returns the concluded result."""
        attempt = HandshakeAttempt()
        attempt.conclude(HandshakeResult.rejected(RejectReason.MISSING_ACCEPT_HEADER))

        result = attempt.wait(0.1)

        assert result.reason == RejectReason.MISSING_ACCEPT_HEADER

    def test_wait_times_out(self):
        """Test that an unanswered attempt is rejected with TIMEOUT."""
        attempt = HandshakeAttempt()

        result = attempt.wait(0.05)

        assert not result.upgraded
        assert result.reason == RejectReason.TIMEOUT
        assert attempt.concluded

    def test_late_conclusion_after_timeout_is_ignored(self):
        """Test that a response after the timeout does not change the result."""
        attempt = HandshakeAttempt()
        attempt.wait(0.01)

        assert attempt.conclude(HandshakeResult.accepted()) is False
        assert attempt.result.reason == RejectReason.TIMEOUT

    def test_released_from_another_thread(self):
        """Test that a conclusion on another thread wakes the waiter."""
        attempt = HandshakeAttempt()

        def conclude_later():
            time.sleep(0.05)
            attempt.conclude(HandshakeResult.accepted())

        threading.Thread(target=conclude_later).start()

        assert attempt.wait(5.0).upgraded

    def test_concurrent_conclusions(self):
        """Test that exactly one of many racing conclusions succeeds."""
        attempt = HandshakeAttempt()
        outcomes = []
        start = threading.Event()

        def race(result):
            start.wait()
            outcomes.append(attempt.conclude(result))

        threads = [
            threading.Thread(target=race, args=(HandshakeResult.rejected(RejectReason.TRANSPORT_FAILURE),))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        start.set()
        for thread in threads:
            thread.join()

        assert outcomes.count(True) == 1


class TestHandshakeResult:
    """Tests for HandshakeResult."""

    def test_accepted(self):
        """Test the upgraded result."""
        result = HandshakeResult.accepted()
        assert result.upgraded
        assert result.reason is None
        assert str(result) == "Upgraded"

    def test_rejected_str(self):
        """Test the rejected result's text form."""
        result = HandshakeResult.rejected(RejectReason.TIMEOUT, "no answer")
        assert str(result) == "Rejected(timeout): no answer"

    def test_with_stream(self):
        """Test attaching a stream to an upgraded result."""
        stream = object()
        result = HandshakeResult.accepted().with_stream(stream)
        assert result.stream is stream
        assert result == HandshakeResult.accepted()

    def test_rejected_cannot_carry_stream(self):
        """Test that a rejected result never carries a stream."""
        with pytest.raises(ValueError):
            HandshakeResult.rejected(RejectReason.TIMEOUT).with_stream(object())
