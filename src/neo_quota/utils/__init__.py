"""Utility helpers for neo-quota."""

from .clock import Clock, SystemClock, ManualClock

__all__ = ["Clock", "SystemClock", "ManualClock"]
