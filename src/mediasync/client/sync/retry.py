"""Retry logic with linear backoff and cooperative cancellation.

This module provides:
- linear_backoff_delay: Wait after a failed attempt
- retry_with_linear_backoff: Bounded retry loop used around item uploads
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar

from mediasync.client.sync.types import SyncCancelled

if TYPE_CHECKING:
    from mediasync.client.sync.types import CancellationToken

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds

T = TypeVar("T")


def linear_backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
    """Delay between attempt n and n+1.

    Args:
        attempt: 1-based number of the attempt that just failed.
        base_delay: Base delay in seconds.

    Returns:
        base_delay * attempt seconds.
    """
    return base_delay * attempt


def retry_with_linear_backoff(
    func: Callable[[int], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    cancel_token: CancellationToken | None = None,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    non_retryable_exceptions: tuple[type[Exception], ...] = (),
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """Execute a function with linear backoff retry.

    Cancellation is checked before every attempt and interrupts the wait
    between attempts.

    Args:
        func: Function to execute; receives the 1-based attempt number.
        max_attempts: Total number of attempts.
        base_delay: Base of the linear backoff in seconds.
        cancel_token: Optional cancellation token.
        retryable_exceptions: Exception types that trigger another attempt.
        non_retryable_exceptions: Exception types re-raised immediately.
        on_retry: Called with (attempt, error) before waiting.

    Returns:
        Result of the function.

    Raises:
        SyncCancelled: If cancellation was requested.
        The last exception if all attempts fail.
    """
    for attempt in range(1, max_attempts + 1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        try:
            return func(attempt)
        except SyncCancelled:
            raise
        except non_retryable_exceptions:
            raise
        except retryable_exceptions as e:
            if attempt == max_attempts:
                logger.error(f"All {max_attempts} attempts failed: {e}")
                raise

            delay = linear_backoff_delay(attempt, base_delay)
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            if on_retry:
                on_retry(attempt, e)
            if cancel_token is not None:
                if cancel_token.wait(delay):
                    raise SyncCancelled("Retry cancelled during backoff") from e
            elif delay > 0:
                time.sleep(delay)

    # Should not reach here, but satisfy type checker
    raise RuntimeError("Unexpected retry loop exit")
