"""
Retry support for control plane calls.

Only idempotent reads are retried, and only when the control plane could
not be reached. A call that reached the service and failed is never retried.
"""

import asyncio
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, ParamSpec, TypeVar

import structlog

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


def async_with_retry(
    max_attempts: int = 3,
    delay: float = 0.5,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for retrying failed coroutine calls.

    Args:
        max_attempts: Maximum number of attempts (1 disables retrying)
        delay: Initial delay between retries in seconds
        backoff_factor: Multiplier for delay after each retry
        exceptions: Tuple of exception types to retry on

    Usage:
        @async_with_retry(max_attempts=3, exceptions=(RemoteUnavailableError,))
        async def fetch_info():
            return await client.get("/api/config/info")
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Optional[Exception] = None
            current_delay = delay

            for attempt in range(max(1, max_attempts)):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        logger.warning(
                            "retry_attempt",
                            function=getattr(func, "__name__", repr(func)),
                            attempt=attempt + 1,
                            max_attempts=max_attempts,
                            delay=current_delay,
                            error=str(e),
                        )
                        await asyncio.sleep(current_delay)
                        current_delay *= backoff_factor

            raise last_exception  # type: ignore[misc]

        return wrapper

    return decorator


async def call_with_retry(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    max_attempts: int = 3,
    delay: float = 0.5,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> Any:
    """Apply async_with_retry to a single call with runtime-chosen limits."""
    retrying = async_with_retry(
        max_attempts=max_attempts,
        delay=delay,
        exceptions=exceptions,
    )(func)
    return await retrying(*args, **kwargs)
