"""
Retry policy — bounded in-place retries for transient failures.

Only lock contention on the package database counts as transient.
Everything else is recorded immediately. The delay is fixed (package
manager locks are released within seconds, not minutes) and the wait
is interruptible so cancellation is never held up by a retry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait before retrying."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_seconds: float = DEFAULT_DELAY_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")

    def exhausted(self, attempt: int) -> bool:
        """Whether ``attempt`` (1-based) was the last one allowed."""
        return attempt >= self.max_attempts

    def should_retry(self, attempt: int, transient: bool) -> bool:
        return transient and not self.exhausted(attempt)

    def wait(self, cancel_event: threading.Event | None = None) -> bool:
        """Sleep for the fixed delay.

        Returns:
            False if cancelled while waiting, True otherwise.
        """
        if cancel_event is None:
            cancel_event = threading.Event()
        logger.debug("Waiting %.1fs before retry", self.delay_seconds)
        cancelled = cancel_event.wait(self.delay_seconds)
        return not cancelled

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_attempts=1, delay_seconds=0)
