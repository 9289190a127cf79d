"""Exponential-backoff retries for translation and caption HTTP calls."""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx
import openai

from common.config import settings

logger = logging.getLogger(__name__)

# Non-5xx status codes worth retrying (request timeout, rate limit)
RETRYABLE_STATUS_CODES = frozenset({408, 429})

TRANSIENT_EXCEPTIONS = (
    httpx.TransportError,
    openai.APIConnectionError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait between attempts."""

    max_retries: int = 3
    initial_delay: float = 1.0
    exponential_base: int = 2
    max_delay: float = 10.0

    @classmethod
    def from_settings(cls, max_retries: Optional[int] = None) -> "RetryPolicy":
        """Policy for calls to the translation API."""
        return cls(
            max_retries=(
                settings.translation_api_max_retries if max_retries is None else max_retries
            ),
            initial_delay=settings.translation_retry_initial_delay,
            exponential_base=settings.translation_retry_exponential_base,
            max_delay=settings.translation_retry_max_delay,
        )

    def base_delay(self, attempt: int) -> float:
        """Capped delay before retry ``attempt`` (0-indexed), without jitter."""
        return min(self.initial_delay * (self.exponential_base**attempt), self.max_delay)

    def delay_for(self, attempt: int) -> float:
        """
        Delay before retry ``attempt`` with up to 50% random jitter added.

        Example:
            >>> 1.0 <= RetryPolicy(initial_delay=1).delay_for(0) <= 1.5
            True
        """
        delay = self.base_delay(attempt)
        return delay + random.uniform(0, delay * 0.5)


def is_retryable_status(status_code: int) -> bool:
    """Return True for 408, 429 and any 5xx status."""
    return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code < 600


def _status_code_of(error: Exception) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, openai.APIStatusError):
        return error.status_code
    return None


def is_transient_error(error: Exception) -> bool:
    """
    Decide whether a failed call is worth retrying.

    HTTP status failures are judged by their status code. Connection problems
    and timeouts are transient. Anything else is permanent unless its
    ``__cause__`` is transient.
    """
    status_code = _status_code_of(error)
    if status_code is not None:
        return is_retryable_status(status_code)

    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True

    cause = error.__cause__
    if isinstance(cause, Exception):
        return is_transient_error(cause)
    return False


def retry_with_exponential_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    exponential_base: int = 2,
    max_delay: float = 10.0,
    policy: Optional[RetryPolicy] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator that retries an async function on transient errors.

    Permanent errors (4xx other than 408/429, malformed payloads) are raised
    immediately. After ``max_retries`` retries the last error is raised.

    Args:
        max_retries: Maximum number of retry attempts (after initial try)
        initial_delay: Initial delay in seconds before first retry
        exponential_base: Base for exponential backoff calculation
        max_delay: Maximum delay in seconds between retries
        policy: Prebuilt policy, overrides the individual arguments

    Example:
        @retry_with_exponential_backoff(max_retries=3, initial_delay=1)
        async def post_batch():
            return await client.post("/api/translate/batch", json=payload)
    """
    policy = policy or RetryPolicy(
        max_retries=max_retries,
        initial_delay=initial_delay,
        exponential_base=exponential_base,
        max_delay=max_delay,
    )

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        func_name = getattr(func, "__name__", repr(func))

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not is_transient_error(e):
                        logger.error(f"❌ {func_name} failed permanently: {e}")
                        raise
                    if attempt >= policy.max_retries:
                        logger.error(
                            f"❌ {func_name} still failing after {policy.max_retries} retries: {e}"
                        )
                        raise

                    delay = policy.delay_for(attempt)
                    attempt += 1
                    logger.warning(
                        f"⚠️  {func_name} hit a transient error: {e}. "
                        f"Retry {attempt}/{policy.max_retries} in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
