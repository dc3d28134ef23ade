from .admission_guard import AdmissionGuard, RULE_NO_ORPHAN_DELETION

__all__ = ["AdmissionGuard", "RULE_NO_ORPHAN_DELETION"]
