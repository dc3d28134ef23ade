from .observer_service import ClusterObserver, ChangeDeduplicator

__all__ = ["ClusterObserver", "ChangeDeduplicator"]
