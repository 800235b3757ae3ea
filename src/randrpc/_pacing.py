"""
Client-side pacing for the randrpc SDK.

The random.org API returns an `advisoryDelay` with every successful reply:
the minimum time the client should wait before its next request. This module
keeps that advice together with the time of the last exchange, and decides
whether the next request may go out now, must wait, or must be refused.

Unlike a generic rate limiter, there is a single pending delay, and each
response replaces it (it is never accumulated).

Example:
    >>> from randrpc._pacing import PacingState
    >>> pacing = PacingState(max_blocking_time=3.0)
    >>> pacing.record_exchange(advisory_delay=0.2)
    >>> pacing.wait_until_allowed()  # Sleeps ~200ms, then returns
"""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class PacingExceededError(TimeoutError):
    """
    Raised when the advised wait is longer than the configured tolerance.

    The request is refused before any network call is made, instead of
    blocking the caller for longer than `max_blocking_time`. It is never
    retried internally: callers decide whether to try again later.

    Attributes:
        required_wait: Seconds the server still asks the client to wait.
        max_blocking_time: The configured maximum blocking time in seconds.

    Example:
        >>> try:
        ...     client.generate_integers(IntegersRequest(n=5, min=1, max=6))
        ... except PacingExceededError as e:
        ...     print(f"Try again in {e.required_wait:.1f}s")
    """

    def __init__(self, required_wait: float, max_blocking_time: float):
        self.required_wait = required_wait
        self.max_blocking_time = max_blocking_time
        super().__init__(
            f"Advised waiting time is higher than the maximal blocking time: "
            f"required_wait={required_wait:.3f}s, max_blocking_time={max_blocking_time:.3f}s"
        )


class PacingCancelledError(Exception):
    """Raised when a pacing wait is interrupted through its cancel event."""

    def __init__(self, remaining: float):
        self.remaining = remaining
        super().__init__(f"Pacing wait cancelled with {remaining:.3f}s remaining")


# =============================================================================
# Pacing State
# =============================================================================


class PacingState:
    """
    Tracks the server's advisory delay and the time of the last exchange.

    The wait before the next request is computed as
    `advisory_delay - (now - last_exchange_at)`:

    - `<= 0`: no wait.
    - `0 < wait <= max_blocking_time`: the caller sleeps for `wait`.
    - `> max_blocking_time`: `PacingExceededError` is raised without blocking.

    Reads and updates are thread-safe. Callers that need the whole
    check-wait-send-record sequence to be atomic (see `RpcDispatcher`) must
    hold their own lock around it.

    Args:
        max_blocking_time: Maximum seconds a caller may be blocked. Default 3s.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        max_blocking_time: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        assert max_blocking_time is not None, "max_blocking_time cannot be None."
        assert max_blocking_time >= 0, "max_blocking_time cannot be negative."

        self.max_blocking_time = max_blocking_time
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

        self._last_exchange_at = clock()
        self._advisory_delay = 0.0

    @property
    def last_exchange_at(self) -> float:
        """Monotonic timestamp (seconds) of the last completed exchange."""
        with self._lock:
            return self._last_exchange_at

    @property
    def advisory_delay(self) -> float:
        """The currently advised delay in seconds."""
        with self._lock:
            return self._advisory_delay

    def time_until_next_allowed(self) -> float:
        """
        Return how many seconds remain before the next request is allowed.

        Returns:
            A non-negative number of seconds (0.0 when no wait is required).
        """
        with self._lock:
            elapsed = self._clock() - self._last_exchange_at
            return max(0.0, self._advisory_delay - elapsed)

    def wait_until_allowed(self, cancel_event: threading.Event | None = None) -> float:
        """
        Block until the next request is allowed.

        Args:
            cancel_event: Optional event that interrupts the wait when set.

        Returns:
            The number of seconds waited (0.0 if no wait was needed).

        Raises:
            PacingExceededError: If the required wait exceeds max_blocking_time.
                Raised before any sleeping happens.
            PacingCancelledError: If cancel_event is set during the wait.
        """
        wait = self.time_until_next_allowed()
        if wait <= 0:
            return 0.0

        if wait > self.max_blocking_time:
            logger.debug(
                f"Pacing | ❌ Refusing to wait {wait:.3f}s (max_blocking_time={self.max_blocking_time:.3f}s)"
            )
            raise PacingExceededError(required_wait=wait, max_blocking_time=self.max_blocking_time)

        logger.debug(f"Pacing | ⏳ Waiting {wait:.3f}s as advised by the server...")
        if cancel_event is None:
            self._sleep(wait)
        elif cancel_event.wait(wait):
            logger.debug("Pacing | ⚠️ Wait cancelled by caller.")
            raise PacingCancelledError(remaining=self.time_until_next_allowed())
        return wait

    def record_exchange(self, advisory_delay: float) -> None:
        """
        Record a completed exchange with the server's new advice.

        The advisory delay is replaced, never combined with the previous one.

        Args:
            advisory_delay: Seconds the server advises to wait (0 on error replies).
        """
        assert advisory_delay is not None, "advisory_delay cannot be None."
        assert advisory_delay >= 0, "advisory_delay cannot be negative."

        with self._lock:
            self._advisory_delay = float(advisory_delay)
            self._last_exchange_at = self._clock()
        logger.debug(f"Pacing | Exchange recorded (advisory_delay={advisory_delay:.3f}s)")

    def record_failed_exchange(self) -> None:
        """
        Record a round trip that produced no decodable reply.

        Only the timestamp is refreshed. The previous advice still applies,
        since the server sent no new one.
        """
        with self._lock:
            self._last_exchange_at = self._clock()

    def reset(self) -> None:
        """Forget any pending advice, as if the state had just been created."""
        with self._lock:
            self._advisory_delay = 0.0
            self._last_exchange_at = self._clock()
