"""Circuit breaker pattern implementation for upstream calls."""
import threading
import time
from typing import Any, Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar('T')


class CircuitBreaker:
    """
    Implements the Circuit Breaker pattern to prevent cascading failures.

    A slow or failing ledger node gets hammered harder when every request
    keeps calling it. The breaker stops calls once failures exceed a
    threshold, giving the node time to recover.

    Circuit states:
    - CLOSED: Normal operation, calls pass through to the service
    - OPEN: Service calls are blocked entirely to allow recovery
    - HALF-OPEN: One trial call at a time checks whether the service recovered
    """

    STATE_CLOSED = 'closed'
    STATE_OPEN = 'open'
    STATE_HALF_OPEN = 'half-open'

    class CircuitBreakerError(Exception):
        """Exception raised when a circuit is open."""
        pass

    def __init__(self, failure_threshold=5, recovery_timeout=60,
                 half_open_success_threshold=1, clock: Callable[[], float] = time.monotonic):
        """
        Initialize a new Circuit Breaker.

        Args:
            failure_threshold: Number of failures before opening the circuit
            recovery_timeout: Time in seconds to wait before attempting recovery
            half_open_success_threshold: Number of successful calls needed to close circuit
            clock: Time source, replaceable in tests
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_success_threshold = half_open_success_threshold
        self._clock = clock

        # Internal state
        self.state = self.STATE_CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = 0.0
        self._trial_in_flight = False
        self._lock = threading.RLock()

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Await the protected coroutine function with circuit breaker protection.

        Args:
            func: The coroutine function to call
            *args, **kwargs: Arguments to pass to the function

        Returns:
            The result of the function call

        Raises:
            CircuitBreakerError: If the circuit is open, or half-open with a
                trial call already in flight
            Exception: Any exception raised by the function
        """
        trial = self._before_call(func.__name__)

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self._record_failure(func.__name__, e)
            raise
        else:
            self._record_success(func.__name__)
            return result
        finally:
            # Also reached when the trial is cancelled
            if trial:
                self._end_trial()

    def _before_call(self, name: str) -> bool:
        """Admit or reject a call. Returns True when the call is the half-open trial."""
        with self._lock:
            if self.state == self.STATE_CLOSED:
                return False

            if self.state == self.STATE_OPEN:
                elapsed = self._clock() - self.last_failure_time
                if elapsed < self.recovery_timeout:
                    logger.warning("circuit_breaker_open",
                                   func=name,
                                   seconds_remaining=self.recovery_timeout - elapsed)
                    raise self.CircuitBreakerError(
                        f"Circuit is open for {name}, too many failures."
                    )
                logger.info("circuit_breaker_half_open",
                            func=name,
                            recovery_timeout=self.recovery_timeout)
                self.state = self.STATE_HALF_OPEN
                self.success_count = 0

            if self._trial_in_flight:
                raise self.CircuitBreakerError(
                    f"Circuit is half-open for {name}, a trial call is in flight."
                )
            self._trial_in_flight = True
            return True

    def _end_trial(self) -> None:
        with self._lock:
            self._trial_in_flight = False

    def _record_success(self, name: str) -> None:
        with self._lock:
            if self.state == self.STATE_HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.half_open_success_threshold:
                    logger.info("circuit_breaker_closed",
                                func=name,
                                success_count=self.success_count)
                    self.state = self.STATE_CLOSED
                    self.failure_count = 0
            elif self.state == self.STATE_CLOSED:
                self.failure_count = 0

    def _record_failure(self, name: str, error: Exception) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = self._clock()

            if self.state == self.STATE_CLOSED and self.failure_count >= self.failure_threshold:
                logger.warning("circuit_breaker_tripped",
                               func=name,
                               failure_count=self.failure_count,
                               exception=str(error))
                self.state = self.STATE_OPEN
            elif self.state == self.STATE_HALF_OPEN:
                logger.warning("circuit_breaker_recovery_failed",
                               func=name,
                               exception=str(error))
                self.state = self.STATE_OPEN

    def get_state(self):
        """Get the current state of the circuit breaker."""
        with self._lock:
            return {
                'state': self.state,
                'failure_count': self.failure_count,
                'success_count': self.success_count,
                'last_failure_time': self.last_failure_time
            }
