from .admission_decision import AdmissionDecision

__all__ = ["AdmissionDecision"]
