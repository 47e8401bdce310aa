"""
Bounded retry with exponential backoff.

max_attempts counts every call, including the first one. The delay before
attempt n+1 is initial_delay * multiplier^(n-1), capped at max_delay; there is
no delay after the final attempt.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

OnRetry = Callable[[Exception, int], None]


def backoff_delays(
    max_attempts: int,
    initial_delay: float,
    max_delay: float,
    backoff_multiplier: float = 2,
) -> list[float]:
    """
    Delays slept between attempts.

    Example:
        >>> backoff_delays(4, 1.0, 10.0)
        [1.0, 2.0, 4.0]
    """
    delays = []
    delay = initial_delay
    for _ in range(max_attempts - 1):
        delays.append(min(delay, max_delay))
        delay = delay * backoff_multiplier
    return delays


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_multiplier: float = 2,
    on_retry: Optional[OnRetry] = None,
    _sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call fn until it succeeds or max_attempts calls have failed.

    Args:
        fn: Zero-arg coroutine function to call
        max_attempts: Total number of calls allowed (>= 1)
        initial_delay: Seconds to wait after the first failure
        max_delay: Upper bound for any single wait
        backoff_multiplier: Growth factor between waits
        on_retry: Called as on_retry(error, attempt) after each failed
            attempt that will be retried (attempt is 1-based)
        _sleep: Injected sleep (for testing)

    Returns:
        Whatever fn returns on its first success

    Raises:
        The last error raised by fn once all attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delays = backoff_delays(max_attempts, initial_delay, max_delay, backoff_multiplier)
    last_error: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await fn()
        except Exception as e:
            last_error = e
            if attempt < max_attempts:
                if on_retry:
                    on_retry(e, attempt)
                await _sleep(delays[attempt - 1])

    raise last_error
