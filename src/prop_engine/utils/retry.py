"""Retry utilities with exponential backoff.

Only errors derived from :class:`RetryableError` are retried by default;
anything else propagates on the first failure.

Usage:
    from prop_engine.utils.retry import retry_with_backoff, retry_call

    @retry_with_backoff(max_retries=3)
    def save(prediction):
        return store.upsert(prediction)

    prediction_id = retry_call(store.upsert, prediction, max_retries=2)
"""

import time
import logging
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar('T')


class RetryableError(Exception):
    """Base exception for transient errors; the caller may retry."""


class NonRetryableError(Exception):
    """Base exception for errors a retry cannot fix."""


def retry_call(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 0.5,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    **kwargs: Any,
) -> T:
    """Call ``func`` and retry it with exponential backoff.

    Args:
        func: Callable to invoke
        max_retries: Retry attempts after the initial call
        backoff_factor: Multiplier applied to the delay after each retry
        initial_delay: Seconds to wait before the first retry
        max_delay: Upper bound for the delay between retries
        exceptions: Exception types that trigger a retry
        on_retry: Optional callback(exception, attempt) invoked before each retry

    Returns:
        Whatever ``func`` returns on its first successful attempt
    """
    logger = logging.getLogger(getattr(func, "__module__", None) or __name__)
    name = getattr(func, "__qualname__", repr(func))
    delay = initial_delay

    for attempt in range(max_retries + 1):  # +1 for initial attempt
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            if attempt == max_retries:
                logger.error(f"{name} failed after {max_retries + 1} attempts: {e}")
                raise

            logger.warning(
                f"{name} attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            if on_retry:
                on_retry(e, attempt)

            time.sleep(delay)
            delay = min(delay * backoff_factor, max_delay)

    raise AssertionError("unreachable")


def retry_with_backoff(
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 0.5,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Callable:
    """Decorator form of :func:`retry_call`."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return retry_call(
                func,
                *args,
                max_retries=max_retries,
                backoff_factor=backoff_factor,
                initial_delay=initial_delay,
                max_delay=max_delay,
                exceptions=exceptions,
                on_retry=on_retry,
                **kwargs,
            )
        return wrapper
    return decorator
