"""Per-tenant reconciliation state."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ReconcilePhase(str, Enum):
    IDLE = "idle"
    DIFFING = "diffing"
    APPLYING = "applying"
    BACKOFF = "backoff"
    DEGRADED = "degraded"


@dataclass
class TenantReconcileState:
    """Reconciliation bookkeeping for one tenant.

    DEGRADED is terminal for automatic retries; only an operator reset
    leaves it.
    """

    tenant_id: str
    phase: ReconcilePhase = ReconcilePhase.IDLE
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    last_plan_size: int = 0
    last_success_at: Optional[datetime] = None
    applied_version: int = 0
    passes: int = 0

    @property
    def is_degraded(self) -> bool:
        return self.phase == ReconcilePhase.DEGRADED

    @property
    def in_progress(self) -> bool:
        return self.phase in (ReconcilePhase.DIFFING, ReconcilePhase.APPLYING)

    def is_due(self, now: datetime) -> bool:
        """Whether an automatic pass may run at ``now``."""
        if self.is_degraded or self.in_progress:
            return False
        if self.phase == ReconcilePhase.BACKOFF and self.next_attempt_at is not None:
            return now >= self.next_attempt_at
        return True

    def record_success(self, now: datetime, plan_size: int, spec_version: int) -> None:
        self.phase = ReconcilePhase.IDLE
        self.consecutive_failures = 0
        self.last_error = None
        self.next_attempt_at = None
        self.last_plan_size = plan_size
        self.last_success_at = now
        self.applied_version = spec_version

    def record_failure(self, error: str) -> int:
        self.consecutive_failures += 1
        self.last_error = error
        return self.consecutive_failures

    def reset(self) -> None:
        self.phase = ReconcilePhase.IDLE
        self.consecutive_failures = 0
        self.last_error = None
        self.next_attempt_at = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "phase": self.phase.value,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "next_attempt_at": self.next_attempt_at.isoformat() if self.next_attempt_at else None,
            "last_plan_size": self.last_plan_size,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "applied_version": self.applied_version,
        }
