"""
Deadline token for bounded requests.

Checked at provider-call boundaries and between scoring batches.
"""

import time
from typing import Optional


class Deadline:
    """
    Monotonic-clock deadline.

    A Deadline built with timeout_ms=None never expires.
    """

    def __init__(self, timeout_ms: Optional[float] = None):
        self.timeout_ms = timeout_ms
        self._expires_at = (
            time.monotonic() + timeout_ms / 1000.0 if timeout_ms is not None else None
        )

    @classmethod
    def none(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left (never negative), or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def bound(self, timeout: float) -> float:
        """Clamp a per-call timeout so it never outlives the deadline."""
        remaining = self.remaining()
        return timeout if remaining is None else min(timeout, remaining)
