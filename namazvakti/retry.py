"""Bounded retry with exponential backoff, independent of the transport."""

import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    factor: float = 2.0

    @property
    def schedule(self) -> tuple:
        """Delays before each retry, e.g. (1.0, 2.0, 4.0)."""
        return tuple(self.base_delay * self.factor ** i for i in range(self.max_retries))


NO_RETRY = RetryPolicy(max_retries=0)


def call_with_retry(func, policy: RetryPolicy, is_transient, sleep=time.sleep, description: str = "call"):
    """Call ``func()`` and retry it while ``is_transient(exc)`` holds.

    Non-transient errors and the error of the last attempt are re-raised.
    """
    attempt = 0
    while True:
        try:
            return func()
        except Exception as exc:
            if attempt >= policy.max_retries or not is_transient(exc):
                raise
            delay = policy.schedule[attempt]
            attempt += 1
            logger.warning(
                f"{description} failed ({exc}), retrying {attempt}/{policy.max_retries} in {delay:.1f}s"
            )
            sleep(delay)
