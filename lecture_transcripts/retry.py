"""Retry helpers for transient failures.

``RetryContext`` does the bookkeeping (attempt count, backoff, a
``retry_after`` hint from the last failure) and never sleeps itself.
``with_retry`` drives it for plain synchronous calls; async loops drive it
by hand and wait with ``asyncio.sleep``::

    retry = RetryContext(max_attempts=5, initial_delay=1.0, backoff_factor=1.0, jitter=False)
    while retry.should_retry():
        text = await read()
        if text:
            retry.record_success()
            break
        if not retry.exhausted:
            await asyncio.sleep(retry.next_delay())
"""

import functools
import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from .exceptions import RateLimitError
from .logging_config import get_logger

logger = get_logger('retry')

T = TypeVar('T')

DEFAULT_RETRYABLE = (RateLimitError, TimeoutError, ConnectionError)


class RetryContext:
    """Attempt counter with capped exponential (or fixed) backoff.

    ``backoff_factor=1.0`` with ``jitter=False`` gives a fixed delay.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
    ):
        self.max_attempts = max_attempts
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

        self.attempt = 0
        self.last_exception: Optional[Exception] = None
        self.succeeded = False
        self._delay = initial_delay

    @property
    def exhausted(self) -> bool:
        """Every attempt used and none succeeded."""
        return not self.succeeded and self.attempt >= self.max_attempts

    def should_retry(self) -> bool:
        """Start the next attempt if one is left."""
        if self.succeeded or self.attempt >= self.max_attempts:
            return False
        self.attempt += 1
        return True

    def record_success(self) -> None:
        self.succeeded = True
        if self.attempt > 1:
            logger.debug(f"Succeeded on attempt {self.attempt}")

    def record_failure(self, exception: Optional[Exception] = None) -> None:
        """Remember the failure; a ``retry_after`` hint replaces the current delay."""
        self.last_exception = exception
        retry_after = getattr(exception, 'retry_after', None)
        if retry_after:
            self._delay = min(retry_after, self.max_delay)

    def next_delay(self) -> float:
        """Seconds to wait before the next attempt. Advances the backoff."""
        delay = self._delay
        self._delay = min(self._delay * self.backoff_factor, self.max_delay)
        if self.jitter:
            return delay * (0.5 + random.random())
        return delay


def with_retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry a synchronous function on ``retryable_exceptions``.

    Other exceptions propagate immediately. The last retryable one is
    re-raised once ``max_attempts`` calls have failed. ``sleep`` is
    injectable so tests do not wait.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            retry = RetryContext(max_attempts, initial_delay, max_delay, backoff_factor, jitter)

            while retry.should_retry():
                try:
                    result = func(*args, **kwargs)
                except retryable_exceptions as e:
                    retry.record_failure(e)
                    if retry.exhausted:
                        logger.error(f"{func.__name__} failed after {retry.attempt} attempts: {e}")
                        raise
                    wait = retry.next_delay()
                    logger.warning(
                        f"{func.__name__} attempt {retry.attempt}/{max_attempts} failed: {e}. "
                        f"Retrying in {wait:.1f}s"
                    )
                    sleep(wait)
                else:
                    retry.record_success()
                    return result

            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        return wrapper
    return decorator
