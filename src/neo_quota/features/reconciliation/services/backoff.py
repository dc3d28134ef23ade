"""Backoff policy for failed reconciliation passes."""

import random
from dataclasses import dataclass, field
from typing import Any, Dict

from ....config.constants import ReconcileDefaults


@dataclass
class BackoffPolicy:
    """Exponential backoff with a cap and symmetric jitter.

    The delay for the n-th consecutive failure is ``base * 2 ** (n - 1)``,
    capped at ``cap_seconds`` and then jittered by +/- ``jitter`` of itself.
    The jittered delay never exceeds the cap.
    """

    base_seconds: float = ReconcileDefaults.BACKOFF_BASE_SECONDS
    cap_seconds: float = ReconcileDefaults.BACKOFF_CAP_SECONDS
    jitter: float = ReconcileDefaults.BACKOFF_JITTER
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def __post_init__(self):
        """Validate backoff parameters."""
        if self.base_seconds < 0:
            raise ValueError("base_seconds must be non-negative")
        if self.cap_seconds < self.base_seconds:
            raise ValueError("cap_seconds must be >= base_seconds")
        if not 0 <= self.jitter < 1:
            raise ValueError("jitter must be in [0, 1)")

    def raw_delay(self, attempt: int) -> float:
        """Un-jittered delay for an attempt (1-based)."""
        if attempt <= 0:
            return 0.0
        # Avoid float overflow for very long failure streaks
        exponent = min(attempt - 1, 64)
        return min(self.base_seconds * (2 ** exponent), self.cap_seconds)

    def delay(self, attempt: int) -> float:
        """
        Calculate the delay before the next attempt.

        Args:
            attempt: Number of consecutive failures so far (1-based)

        Returns:
            Delay in seconds
        """
        delay = self.raw_delay(attempt)
        if self.jitter and delay > 0:
            spread = delay * self.jitter
            delay += self.rng.uniform(-spread, spread)
        return max(0.0, min(delay, self.cap_seconds))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackoffPolicy":
        return cls(
            base_seconds=float(data.get("base_seconds", ReconcileDefaults.BACKOFF_BASE_SECONDS)),
            cap_seconds=float(data.get("cap_seconds", ReconcileDefaults.BACKOFF_CAP_SECONDS)),
            jitter=float(data.get("jitter", ReconcileDefaults.BACKOFF_JITTER)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_seconds": self.base_seconds,
            "cap_seconds": self.cap_seconds,
            "jitter": self.jitter,
        }
