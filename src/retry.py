"""Bounded retry with a fixed delay.

The target failure mode is a data window that has not been populated yet,
not contention, so there is no jitter and no exponential backoff.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY_MS = 5000


def retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay_ms: int = DEFAULT_DELAY_MS,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` until it returns a truthy value.

    A raised exception or a falsy result counts as "not yet successful" and
    is followed by a ``delay_ms`` pause before the next attempt. No pause
    follows the final attempt.

    Args:
        operation: Zero-argument callable.
        max_attempts: Total number of calls allowed.
        delay_ms: Pause between attempts, in milliseconds.
        sleep: Sleep function (seconds), injectable for tests.

    Returns:
        The first truthy result, or the last falsy result if every attempt
        returned one without raising.

    Raises:
        ValueError: If ``max_attempts`` is less than 1.
        Exception: The last exception raised by ``operation`` when the final
            attempt fails.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    result: T | None = None
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            result = operation()
        except Exception as exc:
            last_error = exc
            logger.warning(
                "Attempt %d/%d failed, retrying",
                attempt,
                max_attempts,
            )
        else:
            last_error = None
            if result:
                return result
            logger.warning(
                "Attempt %d/%d returned nothing",
                attempt,
                max_attempts,
            )

        if attempt < max_attempts:
            sleep(delay_ms / 1000)

    if last_error is not None:
        raise last_error
    return result  # type: ignore[return-value]


def retrying(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay_ms: int = DEFAULT_DELAY_MS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator form of :func:`retry`."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> T:
            return retry(lambda: func(*args, **kwargs), max_attempts, delay_ms)

        return wrapper

    return decorator
