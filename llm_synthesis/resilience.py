"""Resilient execution of outbound LLM calls.

Wraps an async operation with:
    - a result cache keyed by a hash of the input (hits skip everything else),
    - a shared consecutive-failure circuit breaker,
    - exponential-backoff retries for overload-style failures,
    - ordered fallback across several backend configurations.

Only failures whose message or status code looks transient are retried.
Everything else surfaces at once as ``PermanentServiceError``.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from llm_synthesis.cache import ResultCache
from llm_synthesis.circuit_breaker import CircuitBreaker, CircuitOpenError
from llm_synthesis.retry import LLMRetryExhaustedError
from llm_synthesis.validator import LLMOutputValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MESSAGE_MARKERS = (
    "overload",
    "service unavailable",
    "rate limit",
    "timeout",
    "timed out",
)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

_STATUS_CODE_PATTERN = re.compile(r"\b(?:429|502|503|504)\b")

# Malformed model output says nothing about backend health.
_NON_RETRYABLE_ERRORS = (LLMOutputValidationError, LLMRetryExhaustedError)


class TransientServiceError(Exception):
    """Raised when retryable failures exhaust the attempt budget.

    Attributes:
        attempts: Attempts made by this call.
        consecutive_failures: Shared consecutive-failure count afterwards.
    """

    def __init__(self, attempts: int, consecutive_failures: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.consecutive_failures = consecutive_failures
        self.last_error = last_error
        super().__init__(
            f"AI service is currently overloaded and unavailable after {attempts} attempt(s) "
            f"({consecutive_failures} consecutive failures). Please try again shortly."
        )


class PermanentServiceError(Exception):
    """Raised for failures that retrying cannot fix (bad credentials, bad request)."""

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"AI service request failed: {cause}")


def is_retryable_error(exc: BaseException) -> bool:
    """Classify an error as transient by status code or message markers.

    Output validation failures are never transient, whatever their
    message happens to contain. Status codes in a message only count as
    whole numbers, so ``"(char 5020)"`` is not a 502.
    """
    if isinstance(exc, _NON_RETRYABLE_ERRORS):
        return False
    status_code = getattr(exc, "status_code", None)
    if status_code in RETRYABLE_STATUS_CODES:
        return True
    message = str(exc).lower()
    if _STATUS_CODE_PATTERN.search(message):
        return True
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


@dataclass(frozen=True)
class FallbackTarget:
    """One backend configuration in a fallback chain."""

    name: str
    operation: Callable[[], Awaitable[Any]]


class ResilientCaller:
    """Retry + circuit breaker + cache + fallback around async operations.

    Build one instance per backend process and pass it to every caller;
    the breaker it holds is the shared health signal.
    """

    def __init__(
        self,
        breaker: CircuitBreaker,
        cache: Optional[ResultCache] = None,
        max_retries: int = 4,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter_ratio: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._breaker = breaker
        self._cache = cache
        self._max_retries = max(0, max_retries)
        self._base_delay = max(0.0, base_delay)
        self._max_delay = max(0.0, max_delay)
        self._jitter_ratio = max(0.0, jitter_ratio)
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def cache(self) -> Optional[ResultCache]:
        return self._cache

    def backoff_delay(self, retry_index: int) -> float:
        """Delay before retry ``retry_index`` (0-based), jitter included."""
        delay = min(self._base_delay * (2 ** retry_index), self._max_delay)
        return delay + self._rng.uniform(0.0, self._jitter_ratio * delay)

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        cache_key: Optional[str] = None,
    ) -> T:
        """Run one operation with cache, circuit breaker and retries.

        Raises:
            CircuitOpenError: The shared circuit is open.
            PermanentServiceError: The operation failed with a
                non-retryable error.
            TransientServiceError: Retryable failures exhausted all retries.
        """
        return await self.call_with_fallback(
            [FallbackTarget(name="default", operation=operation)],
            cache_key=cache_key,
        )

    async def call_with_fallback(
        self,
        targets: Sequence[FallbackTarget],
        cache_key: Optional[str] = None,
    ) -> Any:
        """Run the first target, moving down the list on retryable failures.

        Attempt ``k`` uses target ``min(k, len(targets) - 1)``. Moving to
        the next target is immediate; backoff only applies when the last
        target is retried. The attempt budget is ``1 + max_retries``
        regardless of the number of targets.
        """
        if not targets:
            raise ValueError("At least one fallback target is required.")

        if cache_key is not None and self._cache is not None:
            hit, cached = self._cache.get(cache_key)
            if hit:
                logger.info("LLM result served from cache key=%s", cache_key[:12])
                return cached

        total_attempts = 1 + self._max_retries
        last_index = len(targets) - 1
        retries_on_last_target = 0
        last_error: Optional[Exception] = None

        for attempt in range(total_attempts):
            target = targets[min(attempt, last_index)]
            trial = self._breaker.before_attempt()

            try:
                result = await target.operation()
            except asyncio.CancelledError:
                self._breaker.release_trial(trial)
                raise
            except Exception as exc:  # noqa: BLE001
                if not is_retryable_error(exc):
                    self._breaker.release_trial(trial)
                    logger.error(
                        "LLM call failed with non-retryable error target=%s error=%s",
                        target.name,
                        exc,
                    )
                    raise PermanentServiceError(exc) from exc

                last_error = exc
                self._breaker.record_failure(trial=trial)
                logger.warning(
                    "LLM call failed target=%s attempt=%d/%d consecutive_failures=%d error=%s",
                    target.name,
                    attempt + 1,
                    total_attempts,
                    self._breaker.consecutive_failures,
                    exc,
                )

                if attempt + 1 >= total_attempts:
                    break
                self._breaker.raise_if_open()

                if attempt < last_index:
                    logger.info(
                        "Falling back from target=%s to target=%s",
                        target.name,
                        targets[attempt + 1].name,
                    )
                    continue

                delay = self.backoff_delay(retries_on_last_target)
                retries_on_last_target += 1
                logger.info(
                    "Retrying target=%s after %.2fs (%d/%d)",
                    target.name,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                await self._sleep(delay)
                continue

            self._breaker.record_success()
            if attempt > 0:
                logger.info(
                    "LLM call succeeded target=%s attempt=%d/%d",
                    target.name,
                    attempt + 1,
                    total_attempts,
                )
            if cache_key is not None and self._cache is not None:
                self._cache.set(cache_key, result)
            return result

        raise TransientServiceError(
            attempts=total_attempts,
            consecutive_failures=self._breaker.consecutive_failures,
            last_error=last_error,
        ) from last_error
