"""Retry for SQLite index operations."""

import functools
import sqlite3
import time
from collections.abc import Callable
from typing import Any, TypeVar

from archive_bot.core.logging import get_logger

logger = get_logger().bind(module="store_retry")

T = TypeVar("T")

# Lock contention clears on its own; schema errors never do
_NON_RECOVERABLE = ("no such table", "no such column", "syntax error")


def with_db_retry(
    max_retries: int = 5,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry a database operation with exponential backoff on lock errors.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff

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
                except sqlite3.OperationalError as e:
                    error_msg = str(e).lower()
                    if attempt >= max_retries or any(
                        marker in error_msg for marker in _NON_RECOVERABLE
                    ):
                        raise

                    delay = min(base_delay * (backoff_factor**attempt), max_delay)
                    logger.debug(
                        f"Index operation failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
