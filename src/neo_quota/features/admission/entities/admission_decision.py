"""Admission decision value object."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ....core.value_objects import ObjectRef


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of an admission check.

    A refusal names the rule and, for deletions, the object and the tenants
    still referencing it.
    """

    allowed: bool
    rule: Optional[str] = None
    reason: Optional[str] = None
    ref: Optional[ObjectRef] = None
    referenced_by: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def allow(cls) -> "AdmissionDecision":
        return cls(allowed=True)

    @classmethod
    def refuse(
        cls,
        rule: str,
        reason: str,
        ref: Optional[ObjectRef] = None,
        referenced_by: Tuple[str, ...] = (),
    ) -> "AdmissionDecision":
        return cls(
            allowed=False,
            rule=rule,
            reason=reason,
            ref=ref,
            referenced_by=tuple(sorted(referenced_by)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "rule": self.rule,
            "reason": self.reason,
            "object": str(self.ref) if self.ref else None,
            "referenced_by": list(self.referenced_by),
        }
