"""
Retry policy for Firestore bulk writes.

The BulkWriter retries failed writes itself and applies its own backoff.
A RetryPolicy decides how many attempts a single document gets and which
backoff mode the writer uses, so a permanently failing document cannot
keep a write session open forever.
"""

from typing import Callable, Optional

from google.cloud.firestore_v1.bulk_writer import BulkRetry


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


BACKOFF_MODES = {
    "exponential": BulkRetry.exponential,
    "linear": BulkRetry.linear,
    "immediate": BulkRetry.immediate,
}


class RetryPolicy:
    """
    Bounded retry policy for queued document writes.

    Args:
        max_attempts: Attempts allowed per document, including the first one
        backoff: One of "exponential", "linear", "immediate"
        on_retry: Optional callback function(attempts, doc_id, message)
    """

    def __init__(
        self,
        max_attempts: int = 15,
        backoff: str = "exponential",
        on_retry: Optional[Callable] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if backoff not in BACKOFF_MODES:
            raise ValueError(
                f"Unknown backoff '{backoff}'. Use one of: {', '.join(sorted(BACKOFF_MODES))}"
            )
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.on_retry = on_retry

    @property
    def bulk_retry(self) -> BulkRetry:
        """BulkWriter backoff mode for this policy."""
        return BACKOFF_MODES[self.backoff]

    def should_retry(self, attempts: int) -> bool:
        """True while a write that has failed `attempts` times may try again."""
        return attempts < self.max_attempts

    def __repr__(self) -> str:
        return f"RetryPolicy(max_attempts={self.max_attempts}, backoff={self.backoff!r})"
