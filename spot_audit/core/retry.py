"""
Bounded retry policy for catalog calls.

Every remote call made by the engine goes through RetryPolicy.call(),
which retries transient failures with exponential backoff and returns a
typed CallResult instead of letting the exception unwind the run.

Retry Strategy:
    - TransientCatalogError: retried up to max_attempts with backoff.
      A Retry-After hint from the service is honoured (capped at max_delay).
    - PermanentCatalogError: returned immediately, never retried.
    - Any other exception: propagates (it is a bug, not a catalog failure).

Usage:
    policy = RetryPolicy(max_attempts=3, base_delay=1.5)
    result = policy.call(catalog.get_relink, track_id, "US", description="relink")
    if result.ok:
        substitute = result.value
    else:
        logger.warning(f"Relink failed: {result.reason}")
"""

import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from spot_audit.core.exceptions import CatalogError, TransientCatalogError
from spot_audit.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# Retry Configuration
# =============================================================================

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.5  # seconds
DEFAULT_MAX_DELAY = 15.0  # seconds
DEFAULT_JITTER_FACTOR = 0.3  # randomness factor for backoff


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """
    Outcome of a catalog call made through a RetryPolicy.

    Attributes:
        value: The call's return value (None when the call failed).
        error: The last CatalogError seen, or None on success.
        attempts: Number of attempts made (1 when the first try succeeded).
    """

    value: T | None = None
    error: CatalogError | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str | None:
        """Failure reason suitable for a Failed outcome, None on success."""
        if self.error is None:
            return None
        if self.attempts > 1:
            return f"{self.error.message} (after {self.attempts} attempts)"
        return self.error.message


@dataclass(frozen=True)
class RetryPolicy:
    """
    Explicit bounded-retry policy wrapping a single catalog call.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1).
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for any single wait.
        jitter: Randomness factor applied to each wait (0 disables jitter).
        sleep: Function used to wait. Tests pass a no-op.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter: float = DEFAULT_JITTER_FACTOR
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def backoff(self, attempt: int, retry_after: float | None = None) -> float:
        """
        Calculate the wait before the next attempt.

        Args:
            attempt: Number of the attempt that just failed (1-indexed).
            retry_after: Optional server hint in seconds.

        Returns:
            Delay in seconds with jitter applied, never above max_delay.
        """
        # Exponential backoff: 2^(attempt-1) * base_delay
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if delay <= 0:
            return 0.0

        jitter = delay * self.jitter * (2 * random.random() - 1)
        delay = max(0.0, delay + jitter)

        if retry_after is not None:
            delay = max(delay, retry_after)

        return min(delay, self.max_delay)

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        description: str = "catalog call",
        **kwargs: Any
    ) -> CallResult[T]:
        """
        Call func, retrying transient catalog failures.

        Args:
            func: The catalog method to call.
            *args: Positional arguments for func.
            description: Short label used in log messages.
            **kwargs: Keyword arguments for func.

        Returns:
            CallResult holding either the value or the last CatalogError.
        """
        attempt = 1
        while True:
            try:
                return CallResult(value=func(*args, **kwargs), attempts=attempt)
            except TransientCatalogError as e:
                if attempt >= self.max_attempts:
                    logger.warning(
                        f"{description} failed after {attempt} attempts: {e.message}"
                    )
                    return CallResult(error=e, attempts=attempt)

                delay = self.backoff(attempt, e.retry_after)
                logger.debug(
                    f"{description} attempt {attempt}/{self.max_attempts} failed "
                    f"({e.message}), retrying in {delay:.1f}s"
                )
                self.sleep(delay)
                attempt += 1
            except CatalogError as e:
                logger.debug(f"{description} failed permanently: {e.message}")
                return CallResult(error=e, attempts=attempt)
