"""Retry policy for provider calls.

Provides exponential backoff with jitter for RateLimited and
TransientError. Every other error propagates on the first attempt.
"""

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from labelforge.errors import RateLimited, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Exponential backoff with a separate schedule for rate limits.

    Example:
        policy = RetryPolicy(max_attempts=3)
        label_id = policy.call(adapter.create_node, "MANAGER", None)
    """

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        rate_limit_delay: float = 2.0,
        jitter: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ):
        """Initialize the policy.

        Args:
            max_attempts: Total attempts including the first (minimum 1).
            base_delay: Initial delay for transient errors, in seconds.
            max_delay: Upper bound for the backoff part of a delay.
            rate_limit_delay: Initial delay for rate limits, in seconds.
            jitter: Scale each delay by a random factor in [0.5, 1.0].
            sleep: Sleep function (injectable for tests).
            rand: Returns a float in [0, 1) (injectable for tests).
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.rate_limit_delay = rate_limit_delay
        self.jitter = jitter
        self._sleep = sleep
        self._rand = rand

    def delay_for(self, error: Exception, attempt: int) -> float:
        """Delay before the attempt following failed attempt number `attempt`."""
        base = self.rate_limit_delay if isinstance(error, RateLimited) else self.base_delay
        delay = min(self.max_delay, base * 2 ** (attempt - 1))

        if self.jitter:
            delay *= 0.5 + 0.5 * self._rand()

        # Never wait less than the provider asked for, even above max_delay
        if isinstance(error, RateLimited) and error.retry_after is not None:
            delay = max(delay, float(error.retry_after))
        return delay

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Call fn, retrying rate limits and transient errors.

        Raises:
            The last RateLimited/TransientError once attempts run out, or
            any other exception immediately.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args, **kwargs)
            except (RateLimited, TransientError) as e:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Giving up after %d attempts: %s", self.max_attempts, e
                    )
                    raise

                delay = self.delay_for(e, attempt)
                logger.info(
                    "%s (attempt %d/%d), retrying in %.2fs",
                    e,
                    attempt,
                    self.max_attempts,
                    delay,
                )
                self._sleep(delay)

        raise AssertionError("unreachable")
