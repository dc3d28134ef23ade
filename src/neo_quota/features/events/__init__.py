"""Events feature - in-process event bus connecting the controller loops."""

from .entities import ControllerEvent, EventKind
from .services import EventBus, Subscription

__all__ = ["ControllerEvent", "EventKind", "EventBus", "Subscription"]
