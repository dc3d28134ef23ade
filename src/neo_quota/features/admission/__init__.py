"""Admission feature - synchronous pre-mutation checks."""

from .entities import AdmissionDecision
from .services import AdmissionGuard, RULE_NO_ORPHAN_DELETION

__all__ = ["AdmissionDecision", "AdmissionGuard", "RULE_NO_ORPHAN_DELETION"]
