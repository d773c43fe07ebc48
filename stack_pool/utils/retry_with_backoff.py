"""
Retry mechanism with exponential backoff for handling transient failures.

The engine itself never loops on retryable errors; these helpers are for its
callers (the Lambda entry points) and for DynamoDB unprocessed batch items.
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar, Union

T = TypeVar("T")

logger = logging.getLogger(__name__)


def exponential_backoff_with_jitter(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay with optional jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        jitter: Whether to add random jitter to prevent thundering herd

    Returns:
        Delay in seconds
    """
    delay: float = min(base_delay * (2**attempt), max_delay)

    if jitter:
        # Add random jitter between 0 and 25% of delay
        delay = delay * (1 + random.random() * 0.25)

    return delay


def is_retryable(exc: BaseException) -> bool:
    """True for errors flagged ``retryable`` by the stack_pool taxonomy."""
    return bool(getattr(exc, "retryable", False))


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    jitter: bool = True,
    retry_if: Callable[[BaseException], bool] = is_retryable,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying functions with exponential backoff.

    Only exceptions that are instances of ``exceptions`` and satisfy
    ``retry_if`` are retried. Anything else, and the last failure once
    attempts are exhausted, propagates unchanged.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Base delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exceptions: Exception types to catch and retry
        jitter: Whether to add random jitter to delays
        retry_if: Predicate deciding whether a caught exception is retried

    Returns:
        Decorated function
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Optional[Exception] = None

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:  # pylint: disable=broad-exception-caught
                    if not retry_if(e) or attempt == max_attempts - 1:
                        raise
                    last_exception = e
                    delay = exponential_backoff_with_jitter(
                        attempt, base_delay, max_delay, jitter
                    )
                    logger.warning(
                        "%s failed on attempt %d/%d (%s); retrying in %.2fs",
                        func.__name__,
                        attempt + 1,
                        max_attempts,
                        last_exception,
                        delay,
                    )
                    time.sleep(delay)

            raise RuntimeError("retry_with_backoff requires max_attempts >= 1")

        return wrapper

    return decorator
