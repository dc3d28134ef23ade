from .memory_cluster import InMemoryCluster

__all__ = ["InMemoryCluster"]
