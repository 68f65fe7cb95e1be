# chess_review/utils/retry.py
"""
Provides an asynchronous retry decorator for transient errors.

Used around the persistent cache tier, where SQLite may briefly report the
database as locked. Each retry waits exponentially longer, with jitter.
"""
import asyncio
import functools
import random
from typing import Any, Callable, Coroutine, Tuple, Type

import structlog

from chess_review.utils import metrics

logger = structlog.get_logger(__name__)

DEFAULT_TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
)


def retry_with_backoff(
    attempts: int = 3,
    initial_backoff_s: float = 0.2,
    max_backoff_s: float = 2.0,
    jitter_factor: float = 0.2,
    exceptions_to_catch: Tuple[Type[Exception], ...] = DEFAULT_TRANSIENT_EXCEPTIONS,
    db_type: str = "cache",
) -> Callable[[Callable[..., Coroutine]], Callable[..., Coroutine]]:
    """
    An async decorator that re-runs a coroutine function on transient errors.

    Args:
        attempts: Total number of tries, including the first one.
        initial_backoff_s: Delay before the first retry.
        max_backoff_s: Upper bound for any single delay.
        jitter_factor: Fraction of the current delay added or removed at random.
        exceptions_to_catch: Exception types that trigger a retry. Anything
                             else propagates immediately.
        db_type: Label recorded on the transient-error counter.
    """
    def decorator(func: Callable[..., Coroutine]) -> Callable[..., Coroutine]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            current_delay = initial_backoff_s
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions_to_catch as e:
                    metrics.DB_TRANSIENT_ERRORS_TOTAL.labels(db_type=db_type).inc()

                    if attempt == attempts:
                        logger.error(
                            "Giving up after repeated transient errors.",
                            function=func.__name__, attempts=attempts, error=str(e),
                        )
                        raise

                    jitter = random.uniform(-current_delay * jitter_factor, current_delay * jitter_factor)
                    wait_time = min(max_backoff_s, current_delay + jitter)
                    logger.warning(
                        "Transient error, retrying.",
                        function=func.__name__, attempt=attempt,
                        wait_seconds=round(wait_time, 2), error=str(e),
                    )
                    await asyncio.sleep(wait_time)
                    current_delay *= 2
        return wrapper
    return decorator
