from .cluster_object import ClusterObject, WatchEvent, WatchEventType
from .observed_state import ObservedState, UsageCounter
from .protocols import ClusterClient

__all__ = [
    "ClusterObject",
    "WatchEvent",
    "WatchEventType",
    "ObservedState",
    "UsageCounter",
    "ClusterClient",
]
