"""
Retry logic with exponential backoff and jitter.

RetryPolicy wraps a fallible coroutine and retries it only while the failure
is classified as rate limiting. Daily quota exhaustion and every other error
fail on first occurrence.
"""

import asyncio
import functools
import random
import re
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from shared.config import settings
from shared.errors import ErrorKind, PipelineError, RetryableError
from shared.logging import get_logger

T = TypeVar("T")
logger = get_logger("retry")

# Upper bound of the random jitter added to every backoff delay (seconds)
MAX_JITTER = 1.0

_DAILY_LIMIT_MARKERS = ("perday", "per day", "per_day", "daily", "limit: 0")
_RATE_LIMIT_MARKERS = ("resource_exhausted", "quota", "rate limit", "too many requests")


class RetryState(BaseModel):
    """Transient per-request retry bookkeeping."""

    attempt_number: int = Field(default=0, ge=0)
    last_error_kind: Optional[ErrorKind] = None


def classify_message(message: str, status_code: Optional[int] = None) -> ErrorKind:
    """
    Classify a raw backend error message.

    Fallback adapter for errors that arrive as free text: the backend sends
    no structured retry-after hint.

    Args:
        message: Error text (response body or exception message)
        status_code: HTTP status code if known

    Returns:
        RATE_LIMITED, DAILY_QUOTA_EXHAUSTED or OTHER
    """
    text = (message or "").lower()
    if any(marker in text for marker in _DAILY_LIMIT_MARKERS):
        return ErrorKind.DAILY_QUOTA_EXHAUSTED
    if status_code == 429 or re.search(r"\b429\b", text):
        return ErrorKind.RATE_LIMITED
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.OTHER


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map an exception onto the closed error taxonomy.

    Pipeline errors carry their kind; anything else is classified from its
    message and an optional status_code attribute.
    """
    if isinstance(error, PipelineError):
        return error.kind
    return classify_message(str(error), getattr(error, "status_code", None))


def is_retryable(error: BaseException) -> bool:
    """Only rate limiting consumes a retry attempt."""
    if isinstance(error, RetryableError):
        return True
    return classify_error(error) == ErrorKind.RATE_LIMITED


class RetryPolicy:
    """
    Exponential backoff with jitter for rate-limited remote calls.

    Attempt k (0-indexed) waits initial_delay * 2**k + uniform(0, MAX_JITTER)
    before the next call.

    Usage:
        policy = RetryPolicy()
        image = await policy.execute(lambda: client.generate(request))
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        self.max_attempts = max_attempts if max_attempts is not None else settings.retry_max_attempts
        self.initial_delay = initial_delay if initial_delay is not None else settings.retry_initial_delay
        self._sleep = sleep
        self._jitter = jitter

    def backoff_delay(self, attempt: int, initial_delay: Optional[float] = None) -> float:
        """Delay before the call following 0-indexed attempt."""
        base = self.initial_delay if initial_delay is None else initial_delay
        return base * (2 ** attempt) + self._jitter(0, MAX_JITTER)

    async def execute(
        self,
        op: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        label: str = "operation",
    ) -> T:
        """
        Run op until it succeeds, fails terminally, or attempts run out.

        Args:
            op: Zero-argument coroutine factory, called once per attempt
            max_attempts: Override of the policy's attempt bound
            initial_delay: Override of the policy's first backoff delay (seconds)
            label: Name used in log messages

        Returns:
            The value returned by op

        Raises:
            The last error raised by op, unchanged
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        if attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {attempts}")

        state = RetryState()
        while True:
            try:
                return await op()
            except Exception as e:
                state.last_error_kind = classify_error(e)
                if not is_retryable(e):
                    logger.error(
                        f"Non-retryable error in {label}: {str(e)}",
                        extra={"error": str(e), "error_kind": state.last_error_kind.value,
                               "attempt": state.attempt_number + 1}
                    )
                    raise
                if state.attempt_number >= attempts - 1:
                    logger.error(
                        f"All {attempts} retry attempts failed for {label}",
                        extra={"error": str(e), "error_kind": state.last_error_kind.value}
                    )
                    raise
                delay = self.backoff_delay(state.attempt_number, initial_delay)
                logger.warning(
                    f"Retry attempt {state.attempt_number + 1}/{attempts} for {label} "
                    f"after {delay:.2f}s delay",
                    extra={"error": str(e), "attempt": state.attempt_number + 1}
                )
                await self._sleep(delay)
                state.attempt_number += 1


def retry_with_backoff(
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    policy: Optional[RetryPolicy] = None,
):
    """
    Decorator for retrying coroutine functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: settings.retry_max_attempts)
        base_delay: Base delay in seconds (default: settings.retry_initial_delay)
        policy: Policy to use instead of a default RetryPolicy

    Returns:
        Decorated function

    Example:
        @retry_with_backoff(max_attempts=3, base_delay=2)
        async def call_api():
            # Will retry on RateLimitError
            return await api_client.call(...)
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff requires a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            retry_policy = policy or RetryPolicy(max_attempts=max_attempts, initial_delay=base_delay)
            return await retry_policy.execute(
                lambda: func(*args, **kwargs),
                label=func.__name__,
            )

        return async_wrapper

    return decorator
