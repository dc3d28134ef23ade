from .event_bus import EventBus, Subscription

__all__ = ["EventBus", "Subscription"]
