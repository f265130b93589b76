"""Retry policy for listing fetches."""

import random
from dataclasses import dataclass, field

from price_monitor.models import ErrorKind

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 2.0
JITTER_MAX_SECONDS = 1.0


@dataclass
class RetryPolicy:
    """
    Decide whether a failed attempt is worth repeating, and how long to wait.

    Delay before attempt n+1 is backoff_base * 2**(n-1) plus random jitter.
    Jitter is capped below backoff_base so successive delays always grow.
    """

    max_attempts: int = MAX_ATTEMPTS
    backoff_base: float = BACKOFF_BASE_SECONDS
    jitter_max: float = JITTER_MAX_SECONDS
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def should_retry(self, kind: ErrorKind, attempt: int) -> bool:
        """True if attempt number `attempt` failed with `kind` and another try is allowed."""
        if attempt >= self.max_attempts:
            return False
        return kind.is_transient

    def delay(self, attempt: int) -> float:
        """Seconds to sleep after failed attempt number `attempt` (1-based)."""
        jitter = self.rng.random() * min(self.jitter_max, self.backoff_base)
        return self.backoff_base * 2 ** (attempt - 1) + jitter
