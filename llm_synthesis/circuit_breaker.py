"""Consecutive-failure circuit breaker for outbound LLM calls.

States:
    CLOSED     attempts pass through.
    OPEN       attempts are rejected until ``reset_timeout`` has elapsed
               since the last failure.
    HALF_OPEN  one trial attempt is admitted; success closes the circuit,
               failure re-opens it with a fresh failure timestamp.

One breaker instance is shared by every caller of a backend process.
State changes happen in synchronous code only, so concurrent coroutines
on one event loop never observe a half-applied transition.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class ServiceHealthState:
    """Point-in-time view of the shared service health."""

    is_healthy: bool
    last_failure_timestamp: float
    consecutive_failures: int
    circuit_open: bool


class CircuitOpenError(Exception):
    """Raised when an attempt is short-circuited by an open breaker.

    Attributes:
        retry_after_seconds: Remaining cool-down before a trial call is
            admitted.
    """

    def __init__(self, retry_after_seconds: float) -> None:
        self.retry_after_seconds = max(0.0, retry_after_seconds)
        wait = math.ceil(self.retry_after_seconds)
        super().__init__(
            "AI service is temporarily unavailable due to repeated failures. "
            f"Please try again in {wait} seconds."
        )


class CircuitBreaker:
    """Explicit CLOSED / OPEN / HALF_OPEN state machine.

    Usage::

        breaker = CircuitBreaker(failure_threshold=5, reset_timeout=15.0)

        trial = breaker.before_attempt()   # raises CircuitOpenError when open
        try:
            result = await call_model()
        except RetryableError:
            breaker.record_failure(trial=trial)
            raise
        breaker.record_success()
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "llm",
    ) -> None:
        self._name = name
        self._failure_threshold = max(1, failure_threshold)
        self._reset_timeout = max(0.0, reset_timeout)
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time = 0.0
        self._is_healthy = True
        self._active_trial: Optional[int] = None
        self._trial_counter = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    @property
    def reset_timeout(self) -> float:
        return self._reset_timeout

    def retry_after(self) -> float:
        """Seconds left before an open circuit admits a trial attempt."""
        if self._state is CircuitState.CLOSED:
            return 0.0
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self._reset_timeout - elapsed)

    def before_attempt(self) -> Optional[int]:
        """Admit or reject the next attempt.

        Returns:
            A trial token when this attempt is the single half-open trial,
            otherwise ``None``. Only the holder of the token may release
            the trial slot.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling
                down, or a trial attempt is already in flight.
        """
        if self._state is CircuitState.CLOSED:
            return None

        remaining = self.retry_after()
        if self._state is CircuitState.OPEN and remaining > 0:
            raise CircuitOpenError(remaining)

        if self._active_trial is not None:
            raise CircuitOpenError(0.0)

        self._trial_counter += 1
        self._active_trial = self._trial_counter
        self._state = CircuitState.HALF_OPEN
        logger.info(
            "Circuit breaker %s half-open; admitting trial attempt after %d failures",
            self._name,
            self._consecutive_failures,
        )
        return self._active_trial

    def raise_if_open(self) -> None:
        """Reject while cooling down, without admitting a trial attempt."""
        if self._state is CircuitState.OPEN:
            remaining = self.retry_after()
            if remaining > 0:
                raise CircuitOpenError(remaining)

    def record_success(self) -> None:
        if self._state is not CircuitState.CLOSED:
            logger.info("Circuit breaker %s closed; service recovered", self._name)
        elif self._consecutive_failures > 0:
            logger.info(
                "AI service recovered after %d consecutive failures",
                self._consecutive_failures,
            )
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._is_healthy = True
        self._active_trial = None

    def record_failure(self, trial: Optional[int] = None) -> None:
        """Count a retryable failure.

        A failed trial frees its slot. A failure from an attempt admitted
        earlier still re-opens a half-open circuit but leaves the running
        trial's slot taken.
        """
        self._consecutive_failures += 1
        self._last_failure_time = self._clock()
        self._is_healthy = False

        owns_trial = self._owns_trial(trial)
        if owns_trial:
            self._active_trial = None

        if self._state is CircuitState.HALF_OPEN or owns_trial:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s re-opened after failed attempt (%d consecutive failures)",
                self._name,
                self._consecutive_failures,
            )
        elif (
            self._state is CircuitState.CLOSED
            and self._consecutive_failures >= self._failure_threshold
        ):
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s opened after %d consecutive failures (threshold: %d)",
                self._name,
                self._consecutive_failures,
                self._failure_threshold,
            )

    def release_trial(self, trial: Optional[int]) -> None:
        """Give back a trial slot whose attempt ended without a verdict.

        Non-retryable errors say nothing about backend health, so the
        circuit returns to OPEN without a fresh failure timestamp and the
        next caller may try again. Tokens other than the active trial's
        are ignored.
        """
        if not self._owns_trial(trial):
            return
        self._active_trial = None
        if self._state is CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN

    def _owns_trial(self, trial: Optional[int]) -> bool:
        return trial is not None and trial == self._active_trial

    def reset(self) -> None:
        """Restore the healthy state. Operator override."""
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time = 0.0
        self._is_healthy = True
        self._active_trial = None
        logger.info("Circuit breaker %s manually reset", self._name)

    def snapshot(self) -> ServiceHealthState:
        return ServiceHealthState(
            is_healthy=self._is_healthy,
            last_failure_timestamp=self._last_failure_time,
            consecutive_failures=self._consecutive_failures,
            circuit_open=self._state is not CircuitState.CLOSED,
        )

    def get_status(self) -> Dict[str, Any]:
        """Status payload for health endpoints."""
        health = self.snapshot()
        return {
            "name": self._name,
            "state": self._state.value,
            "is_healthy": health.is_healthy,
            "consecutive_failures": health.consecutive_failures,
            "circuit_open": health.circuit_open,
            "failure_threshold": self._failure_threshold,
            "reset_timeout_seconds": self._reset_timeout,
            "retry_after_seconds": self.retry_after(),
        }
