"""
Central retry policy for calls to external services.

Only ServiceTransientError is retried; every other exception propagates on
the first attempt. The last error is re-raised unchanged once attempts run out.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type
import logging

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ideation_system.exceptions import ConfigurationError, ServiceTransientError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    retry_on: Tuple[Type[BaseException], ...] = (ServiceTransientError,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ConfigurationError("backoff values must not be negative")

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_TRIES,
            backoff_base=settings.RETRY_BACKOFF_BASE_SECONDS,
            backoff_max=settings.RETRY_BACKOFF_MAX_SECONDS,
        )


NO_RETRY = RetryPolicy(max_attempts=1)


async def with_retry(
    fn: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> Tuple[Any, int]:
    """Await ``fn()`` under ``policy``. Returns ``(value, attempts)``."""

    def _before_sleep(retry_state):
        exc = retry_state.outcome.exception()
        logger.warning(f"Attempt {retry_state.attempt_number}/{policy.max_attempts} failed: {exc}; retrying")
        if on_retry is not None:
            on_retry(retry_state.attempt_number, exc)

    attempts = 0
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.backoff_base, max=policy.backoff_max),
        retry=retry_if_exception_type(policy.retry_on),
        before_sleep=_before_sleep,
        reraise=True,
    ):
        with attempt:
            attempts = attempt.retry_state.attempt_number
            value = await fn()
    return value, attempts
