"""Reconciliation feature - plans, per-tenant state machines and the engine."""

from .entities import *  # noqa: F401,F403
from .services import *  # noqa: F401,F403
