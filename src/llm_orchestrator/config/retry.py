"""
Retry configuration for completion requests.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from ..errors import InvalidConfigError


@dataclass
class RetryConfig:
    """Exponential backoff for retryable completion errors.

    ``attempts`` counts the first try, so ``attempts=1`` disables retries.
    """

    attempts: int = 3
    backoff: float = 1.0
    max_backoff: float = 20.0
    jitter: float = 0.2

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise InvalidConfigError("attempts must be >= 1")
        if self.backoff < 0 or self.max_backoff < 0:
            raise InvalidConfigError("backoff values must be >= 0")
        if not 0 <= self.jitter < 1:
            raise InvalidConfigError("jitter must be in [0, 1)")

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        if retry_after is not None:
            return min(retry_after, self.max_backoff)
        base = min(self.backoff * (2 ** (attempt - 1)), self.max_backoff)
        return base * random.uniform(1 - self.jitter, 1 + self.jitter)


__all__ = ["RetryConfig"]
