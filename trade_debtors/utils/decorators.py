"""
Decorators Module
Retry and timing decorators
"""

import functools
import time
from typing import Callable, Tuple, Type
from .logger import logger


def retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Retry a blocking call with exponential backoff.

    Wraps storage client calls, which run in a worker thread
    (``asyncio.to_thread``) so the sleep between attempts never blocks the
    event loop. The last failure is re-raised.

    Args:
        max_attempts: Maximum number of attempts
        initial_delay: Delay before the second attempt in seconds
        backoff_multiplier: Multiplier applied to the delay after each failure
        max_delay: Upper bound for the delay
        exceptions: Exception types that trigger another attempt
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(f"{func.__name__} gave up after {max_attempts} attempts: {e}")
                        raise
                    logger.warning(f"{func.__name__} attempt {attempt}/{max_attempts} failed ({e}), retrying in {delay:.1f}s")
                    time.sleep(delay)
                    delay = min(delay * backoff_multiplier, max_delay)

        return wrapper

    return decorator


def timed(func: Callable):
    """Log how long a service coroutine took"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__name__} took {time.perf_counter() - started:.3f}s")

    return wrapper
