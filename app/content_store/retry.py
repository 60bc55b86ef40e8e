"""Retry mechanisms for content index database operations."""

import functools
import sqlite3
import time
from typing import Any, Callable, TypeVar

from app.core.logging import get_logger

logger = get_logger().bind(module="content_store.retry")

T = TypeVar("T")

# Lock contention clears on its own; schema and syntax problems never do
_RECOVERABLE_MESSAGES = (
    "database is locked",
    "database table is locked",
    "cannot start a transaction within a transaction",
)
_FATAL_MESSAGES = ("no such table", "no such column", "syntax error")


def _is_retryable(error: Exception, retry_on: tuple[type[Exception], ...]) -> bool:
    if not isinstance(error, retry_on):
        return False
    if isinstance(error, sqlite3.OperationalError):
        message = str(error).lower()
        if any(fragment in message for fragment in _RECOVERABLE_MESSAGES):
            return True
        if any(fragment in message for fragment in _FATAL_MESSAGES):
            return False
    return True


def with_db_retry(
    max_retries: int = 5,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
    backoff_factor: float = 2.0,
    retry_on: tuple[type[Exception], ...] = (sqlite3.OperationalError,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator that retries index operations with exponential backoff.

    Runs in worker threads, so it blocks with ``time.sleep``.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        retry_on: Tuple of exception types to retry on

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not _is_retryable(e, retry_on) or attempt >= max_retries:
                        raise

                    delay = min(base_delay * (backoff_factor**attempt), max_delay)
                    attempt += 1
                    logger.debug(
                        "content_index_retry",
                        operation=func.__name__,
                        attempt=attempt,
                        max_attempts=max_retries + 1,
                        delay=round(delay, 3),
                        error=str(e),
                    )
                    time.sleep(delay)

        return wrapper

    return decorator


def with_transaction_retry(func: Callable[..., T]) -> Callable[..., T]:
    """Decorator for index writes, which contend for the write lock."""
    return with_db_retry(
        max_retries=8,
        base_delay=0.05,
        max_delay=1.0,
        backoff_factor=1.5,
        retry_on=(sqlite3.OperationalError, sqlite3.DatabaseError),
    )(func)
