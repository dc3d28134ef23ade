"""Cluster feature - cluster API adapters and the state observer.

The Kubernetes adapter is imported from
``neo_quota.features.cluster.adapters.kubernetes_cluster`` on demand so the
in-memory cluster can be used without loading the kubernetes client.
"""

from .entities import (
    ClusterObject,
    WatchEvent,
    WatchEventType,
    ObservedState,
    UsageCounter,
    ClusterClient,
)
from .adapters import InMemoryCluster
from .services import ClusterObserver, ChangeDeduplicator

__all__ = [
    "ClusterObject",
    "WatchEvent",
    "WatchEventType",
    "ObservedState",
    "UsageCounter",
    "ClusterClient",
    "InMemoryCluster",
    "ClusterObserver",
    "ChangeDeduplicator",
]
