"""Cluster API exceptions.

ConflictError is retried by re-diffing, TransientClusterError with backoff.
"""

from typing import Optional, TYPE_CHECKING

from .base import NeoQuotaError

if TYPE_CHECKING:
    from ..value_objects import ObjectRef


class ClusterError(NeoQuotaError):
    """Base class for cluster API errors."""
    pass


class ConflictError(ClusterError):
    """Raised on an optimistic-concurrency version mismatch."""

    def __init__(
        self,
        ref: "ObjectRef",
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        self.ref = ref
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {ref}: expected {expected_version}, found {actual_version}",
            details={
                "object": str(ref),
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class TransientClusterError(ClusterError):
    """Raised when the cluster API is unavailable or times out."""
    pass


class ClusterObjectNotFoundError(ClusterError):
    """Raised when an object does not exist in the cluster."""

    def __init__(self, ref: "ObjectRef"):
        self.ref = ref
        super().__init__(f"Object {ref} not found", details={"object": str(ref)})
