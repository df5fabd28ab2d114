"""
Provides a generic, asynchronous retry decorator for handling transient errors.

Both display surfaces open the same SQLite file, so a write from one can
briefly lock the database for the other. This decorator retries such calls
with an exponential backoff delay instead of surfacing the lock.
"""
import asyncio
import functools
import random
from typing import Any, Callable, Coroutine, Iterator, Optional, Tuple, Type

import structlog

from chess_presenter.utils import metrics

logger = structlog.get_logger(__name__)

DEFAULT_TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


def backoff_delays(initial_s: float, max_s: float, jitter_factor: float) -> Iterator[float]:
    """Doubling delays, each shifted by up to +/- `jitter_factor` of itself and capped at `max_s`."""
    base = initial_s
    while True:
        spread = base * jitter_factor
        yield min(max_s, base + random.uniform(-spread, spread))
        base *= 2


def retry_with_backoff(
    attempts: int = 3,
    initial_backoff_s: float = 0.05,
    max_backoff_s: float = 1.0,
    jitter_factor: float = 0.2,
    exceptions_to_catch: Tuple[Type[Exception], ...] = DEFAULT_TRANSIENT_EXCEPTIONS,
    operation: str = "unknown",
    final_error: Optional[Type[Exception]] = None,
) -> Callable[[Callable[..., Coroutine]], Callable[..., Coroutine]]:
    """
    An async decorator to retry a function with exponential backoff and jitter.

    Args:
        attempts: Total number of calls, the first one included.
        initial_backoff_s: Delay before the first retry.
        max_backoff_s: Upper bound for any single delay.
        jitter_factor: Relative randomness of each delay (0.2 = +/- 20%).
        exceptions_to_catch: The exception types considered transient.
        operation: Label of the `STORAGE_TRANSIENT_ERRORS_TOTAL` counter.
        final_error: If given, the last transient error is re-raised wrapped in this
                     type, so callers only ever see application exceptions.
    """
    def decorator(func: Callable[..., Coroutine]) -> Callable[..., Coroutine]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(initial_backoff_s, max_backoff_s, jitter_factor)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions_to_catch as e:
                    metrics.STORAGE_TRANSIENT_ERRORS_TOTAL.labels(operation=operation).inc()
                    if attempt >= attempts:
                        logger.error("Storage call failed after max attempts.", function=func.__name__,
                                     operation=operation, total_attempts=attempts, error=str(e))
                        if final_error is not None:
                            raise final_error(f"{func.__name__} failed after {attempts} attempts: {e}") from e
                        raise

                    wait_time = next(delays)
                    logger.warning("Transient storage error, retrying.", function=func.__name__,
                                   operation=operation, attempt=attempt, wait_seconds=round(wait_time, 3),
                                   error=str(e))
                    await asyncio.sleep(wait_time)
        return wrapper
    return decorator
