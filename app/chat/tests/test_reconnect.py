"""Tests for the client reconnect policy."""

import pytest

from chat.reconnect import DEFAULT_POLICY, ReconnectPolicy


class TestDelay:
    def test_delays_double_until_the_cap(self):
        policy = ReconnectPolicy(base_delay=1, max_delay=10, max_attempts=6)

        assert policy.schedule() == [1, 2, 4, 8, 10, 10]

    def test_first_attempt_waits_the_base_delay(self):
        assert DEFAULT_POLICY.delay_for(0) == DEFAULT_POLICY.base_delay

    def test_negative_attempt_is_rejected(self):
        with pytest.raises(ValueError):
            DEFAULT_POLICY.delay_for(-1)


class TestShouldRetry:
    def test_normal_close_is_not_retried(self):
        """
        A 1000 close means the server or client ended the session on purpose.

        Why it matters: retrying a deliberate close would reopen sessions
        users just logged out of.
        """
        assert DEFAULT_POLICY.should_retry(1000, 0) is False

    def test_abnormal_close_is_retried(self):
        assert DEFAULT_POLICY.should_retry(1006, 0) is True

    def test_drop_without_close_frame_is_retried(self):
        assert DEFAULT_POLICY.should_retry(None, 0) is True

    def test_gives_up_after_max_attempts(self):
        policy = ReconnectPolicy(max_attempts=3)

        assert policy.should_retry(1006, 2) is True
        assert policy.should_retry(1006, 3) is False


class TestAsDict:
    def test_exposes_every_parameter(self):
        assert set(DEFAULT_POLICY.as_dict()) == {
            "base_delay",
            "max_delay",
            "max_attempts",
            "normal_close_code",
        }
