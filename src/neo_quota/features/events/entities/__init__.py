from .controller_event import ControllerEvent, EventKind

__all__ = ["ControllerEvent", "EventKind"]
