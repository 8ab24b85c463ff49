"""Retry policies for the generation loop.

Two independent budgets:
- ValidationRetryPolicy: how many completions may be spent getting a valid schema
- RateLimitBackoff: how many 429 rejections one completion call may absorb,
  sleeping with exponential backoff in between
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import structlog

from prompt2form.errors import RateLimited, ServiceUnavailable

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationRetryPolicy:
    """Bounded number of completions per generation request."""

    max_attempts: int = 3

    def attempts(self) -> range:
        return range(1, self.max_attempts + 1)


@dataclass
class RateLimitBackoff:
    """
    Exponential backoff for rate-limited calls.

    The delay before retry ``n`` (1-based) is ``base_delay * 2 ** (n - 1)``,
    so 2s, 4s, 8s... with the default base.

    Args:
        max_attempts: Total calls allowed, the first one included
        base_delay: Delay in seconds after the first rejection
        sleep: Blocking sleep, replaced in tests
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    sleep: Callable[[float], None] = time.sleep

    def delay_for(self, retry: int) -> float:
        return self.base_delay * (2 ** (retry - 1))

    def _wait(self, delay: float, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            self.sleep(delay)
            return
        # Event.wait returns True as soon as the event is set
        if cancel.wait(delay):
            raise ServiceUnavailable("AI service unavailable: request cancelled")

    def call(self, func: Callable[[], T], cancel: Optional[threading.Event] = None) -> T:
        """
        Run ``func``, retrying on RateLimited until the attempt ceiling.

        Other exceptions propagate immediately.

        Raises:
            ServiceUnavailable: When every attempt was rate limited, or ``cancel`` was set.
        """
        for attempt in range(1, self.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                raise ServiceUnavailable("AI service unavailable: request cancelled")
            try:
                return func()
            except RateLimited as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "Rate limit attempts exhausted",
                        total_attempts=attempt,
                        error=str(e),
                    )
                    raise ServiceUnavailable("AI service unavailable: rate limit exceeded") from e

                delay = self.delay_for(attempt)
                logger.warning(
                    "Rate limited, backing off",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=delay,
                )
                self._wait(delay, cancel)

        # max_attempts < 1
        raise ServiceUnavailable("AI service unavailable: no attempts allowed")
