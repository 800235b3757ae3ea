"""Tests for client-side pacing."""

import threading
from unittest.mock import MagicMock

import pytest

from randrpc import PacingCancelledError, PacingExceededError, PacingState


class FakeClock:
    """Manually advanced monotonic clock. Sleeping advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _pacing(max_blocking_time: float = 3.0) -> tuple[PacingState, FakeClock]:
    clock = FakeClock()
    return PacingState(max_blocking_time=max_blocking_time, clock=clock, sleep=clock.sleep), clock


# =============================================================================
# Exceptions
# =============================================================================


class TestPacingExceededError:
    """Tests for PacingExceededError."""

    def test_is_a_timeout_error(self):
        assert issubclass(PacingExceededError, TimeoutError)

    def test_exposes_required_wait_and_max_blocking_time(self):
        error = PacingExceededError(required_wait=5.0, max_blocking_time=3.0)

        assert error.required_wait == 5.0
        assert error.max_blocking_time == 3.0
        assert "5.000s" in str(error)
        assert "3.000s" in str(error)


# =============================================================================
# PacingState
# =============================================================================


class TestPacingState:
    """Tests for PacingState."""

    def test_initial_state_requires_no_wait(self):
        pacing, clock = _pacing()

        assert pacing.advisory_delay == 0.0
        assert pacing.last_exchange_at == clock.now
        assert pacing.time_until_next_allowed() == 0.0

    def test_negative_max_blocking_time_is_rejected(self):
        with pytest.raises(AssertionError):
            PacingState(max_blocking_time=-1)

    def test_time_until_next_allowed_subtracts_elapsed_time(self):
        """advisoryDelay=200ms, exchange 50ms ago: ~150ms left."""
        pacing, clock = _pacing()
        pacing.record_exchange(advisory_delay=0.2)
        clock.advance(0.05)

        assert pacing.time_until_next_allowed() == pytest.approx(0.15)

    def test_wait_until_allowed_sleeps_for_remaining_delay(self):
        pacing, clock = _pacing()
        pacing.record_exchange(advisory_delay=0.2)
        clock.advance(0.05)

        waited = pacing.wait_until_allowed()

        assert waited == pytest.approx(0.15)
        assert clock.sleeps == [pytest.approx(0.15)]
        assert pacing.time_until_next_allowed() == pytest.approx(0.0, abs=1e-9)

    def test_wait_until_allowed_returns_immediately_when_delay_elapsed(self):
        pacing, clock = _pacing()
        pacing.record_exchange(advisory_delay=0.2)
        clock.advance(0.5)

        assert pacing.wait_until_allowed() == 0.0
        assert clock.sleeps == []

    def test_wait_longer_than_max_blocking_time_is_refused_without_sleeping(self):
        """advisoryDelay=5000ms with maxBlockingTime=3000ms."""
        pacing, clock = _pacing(max_blocking_time=3.0)
        pacing.record_exchange(advisory_delay=5.0)

        with pytest.raises(PacingExceededError) as exc_info:
            pacing.wait_until_allowed()

        assert exc_info.value.required_wait == pytest.approx(5.0)
        assert exc_info.value.max_blocking_time == 3.0
        assert clock.sleeps == []

    def test_refused_wait_does_not_touch_state(self):
        pacing, clock = _pacing(max_blocking_time=3.0)
        pacing.record_exchange(advisory_delay=5.0)
        last_exchange_at = pacing.last_exchange_at

        with pytest.raises(PacingExceededError):
            pacing.wait_until_allowed()

        assert pacing.advisory_delay == 5.0
        assert pacing.last_exchange_at == last_exchange_at

    def test_wait_equal_to_max_blocking_time_is_allowed(self):
        pacing, clock = _pacing(max_blocking_time=1.0)
        pacing.record_exchange(advisory_delay=1.0)

        assert pacing.wait_until_allowed() == pytest.approx(1.0)

    def test_zero_max_blocking_time_refuses_any_wait(self):
        pacing, _ = _pacing(max_blocking_time=0.0)
        pacing.record_exchange(advisory_delay=0.001)

        with pytest.raises(PacingExceededError):
            pacing.wait_until_allowed()

    def test_record_exchange_replaces_previous_delay(self):
        pacing, _ = _pacing()
        pacing.record_exchange(advisory_delay=2.0)
        pacing.record_exchange(advisory_delay=0.5)

        assert pacing.advisory_delay == 0.5
        assert pacing.time_until_next_allowed() == pytest.approx(0.5)

    def test_record_exchange_rejects_negative_delay(self):
        pacing, _ = _pacing()

        with pytest.raises(AssertionError):
            pacing.record_exchange(advisory_delay=-1)

    def test_record_failed_exchange_keeps_delay_and_refreshes_timestamp(self):
        pacing, clock = _pacing()
        pacing.record_exchange(advisory_delay=1.0)
        clock.advance(0.8)

        pacing.record_failed_exchange()

        assert pacing.advisory_delay == 1.0
        assert pacing.last_exchange_at == clock.now
        assert pacing.time_until_next_allowed() == pytest.approx(1.0)

    def test_reset_forgets_advice(self):
        pacing, _ = _pacing()
        pacing.record_exchange(advisory_delay=10.0)

        pacing.reset()

        assert pacing.advisory_delay == 0.0
        assert pacing.time_until_next_allowed() == 0.0


class TestPacingCancellation:
    """Tests for cancelling a pacing wait."""

    def test_set_event_raises_pacing_cancelled_error(self):
        pacing, _ = _pacing()
        pacing.record_exchange(advisory_delay=1.0)
        cancel_event = MagicMock(spec=threading.Event)
        cancel_event.wait.return_value = True

        with pytest.raises(PacingCancelledError):
            pacing.wait_until_allowed(cancel_event=cancel_event)

        cancel_event.wait.assert_called_once()
        assert cancel_event.wait.call_args[0][0] == pytest.approx(1.0)

    def test_cancelled_wait_does_not_record_exchange(self):
        pacing, _ = _pacing()
        pacing.record_exchange(advisory_delay=1.0)
        last_exchange_at = pacing.last_exchange_at
        cancel_event = MagicMock(spec=threading.Event)
        cancel_event.wait.return_value = True

        with pytest.raises(PacingCancelledError):
            pacing.wait_until_allowed(cancel_event=cancel_event)

        assert pacing.advisory_delay == 1.0
        assert pacing.last_exchange_at == last_exchange_at

    def test_unset_event_waits_the_full_delay(self):
        pacing, clock = _pacing()
        pacing.record_exchange(advisory_delay=0.3)
        cancel_event = MagicMock(spec=threading.Event)
        cancel_event.wait.return_value = False

        waited = pacing.wait_until_allowed(cancel_event=cancel_event)

        assert waited == pytest.approx(0.3)
        assert clock.sleeps == []

    def test_real_event_interrupts_wait(self):
        pacing = PacingState(max_blocking_time=5.0)
        pacing.record_exchange(advisory_delay=5.0)
        cancel_event = threading.Event()
        cancel_event.set()

        with pytest.raises(PacingCancelledError) as exc_info:
            pacing.wait_until_allowed(cancel_event=cancel_event)

        assert exc_info.value.remaining > 0
