"""Bounded retry with exponential backoff over any fallible callable."""
import logging
import time
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


def backoff_delays(initial, count):
    """Delays for `count` retries: initial, initial*2, initial*4, ..."""
    return [initial * (2 ** i) for i in range(count)]


class RetryExhausted(Exception):
    def __init__(self, attempts, last_error):
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def retry_with_backoff(
    operation: Callable[[], object],
    attempts: int,
    initial_delay: float,
    between: Optional[Callable[[int, Exception], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    Call `operation` until it returns or `attempts` calls have failed.

    After a failed attempt (and if another one is allowed) this sleeps for the
    current delay, doubles it, then calls `between(attempt, error)` so the
    caller can repair state right before the next try. Returns a tuple of
    (result, attempts_used). Raises RetryExhausted with the last error.
    """
    attempts = max(1, attempts)
    delay = initial_delay
    attempt = 1
    while True:
        try:
            return operation(), attempt
        except retry_on as e:
            if attempt >= attempts:
                raise RetryExhausted(attempt, e) from e
            logger.warning("attempt %d/%d failed; backing off %ss", attempt, attempts, delay)
            sleep(delay)
            delay *= 2
            attempt += 1
            if between is not None:
                between(attempt, e)
