"""Retry decorator for GitHub API rate limits.

GitHub answers with 403/429 (or githubkit's dedicated rate limit exceptions) once a token runs out of
quota. The decorator waits as long as the response asks for, falling back to exponential backoff, and
retries the call. Any other failure propagates untouched.
"""

import asyncio
import functools
import inspect
import time
from typing import Any, Callable, TypeVar

import structlog
from githubkit.exception import PrimaryRateLimitExceeded, RequestFailed, SecondaryRateLimitExceeded

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _is_rate_limited(exc: RequestFailed) -> bool:
    """Return True if a failed request looks like a rate limit rejection."""
    status_code = exc.response.status_code
    if status_code == 429:
        return True
    return status_code == 403 and ("rate limit" in str(exc).lower() or exc.response.headers.get("x-ratelimit-remaining") == "0")


def _wait_time_from_headers(exc: RequestFailed, fallback: float) -> float:
    """Derive the wait time from retry-after or x-ratelimit-reset headers."""
    headers = exc.response.headers
    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            logger.warning("Invalid retry-after header value", retry_after=retry_after)
            return fallback

    rate_limit_reset = headers.get("x-ratelimit-reset")
    if rate_limit_reset:
        try:
            remaining = int(rate_limit_reset) - int(time.time())
        except ValueError:
            logger.warning("Invalid x-ratelimit-reset header value", rate_limit_reset=rate_limit_reset)
            return fallback
        if remaining > 0:
            return remaining + 1
    return fallback


def retry_on_rate_limit(
    max_retries: int = 10,
    initial_delay: float = 10.0,
    max_delay: float = 300.0,
    exponential_base: float = 2.0,
) -> Callable[[F], F]:
    """Decorator for retrying async endpoint calls that hit a GitHub rate limit.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Delay in seconds before the first retry when GitHub gives no hint
        max_delay: Upper bound for any single wait
        exponential_base: Multiplier applied to the fallback delay after each attempt

    Returns:
        Decorated coroutine function with retry logic

    Raises:
        TypeError: If the decorated function is not a coroutine function
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Function {func.__name__} decorated with @retry_on_rate_limit must be async.")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded) as exc:
                    rate_limit_type = "primary" if isinstance(exc, PrimaryRateLimitExceeded) else "secondary"
                    retry_after = getattr(exc, "retry_after", None)
                    wait_time = retry_after.total_seconds() if retry_after else delay
                    if attempt >= max_retries:
                        logger.error("Max retries reached for GitHub rate limit", function=func.__name__, rate_limit_type=rate_limit_type)
                        raise
                except RequestFailed as exc:
                    if not _is_rate_limited(exc):
                        raise
                    rate_limit_type = "http"
                    wait_time = _wait_time_from_headers(exc, delay)
                    if attempt >= max_retries:
                        logger.error(
                            "Max retries reached for GitHub rate limit",
                            function=func.__name__,
                            status_code=exc.response.status_code,
                        )
                        raise

                wait_time = min(wait_time, max_delay)
                attempt += 1
                logger.warning(
                    "GitHub rate limit hit, retrying",
                    function=func.__name__,
                    rate_limit_type=rate_limit_type,
                    attempt=attempt,
                    max_retries=max_retries,
                    wait_time=wait_time,
                )
                await asyncio.sleep(wait_time)
                delay = min(delay * exponential_base, max_delay)

        return wrapper  # type: ignore

    return decorator
