"""Protocol for the cluster API consumed by the controller."""

from abc import abstractmethod
from typing import AsyncIterator, Iterable, List, Optional, Protocol, runtime_checkable

from ....config.constants import ObjectKind
from ....core.value_objects import ObjectRef
from .cluster_object import ClusterObject, WatchEvent


@runtime_checkable
class ClusterClient(Protocol):
    """Cluster API: every object is identified by (kind, namespace, name)
    and carries a version token for optimistic concurrency.

    Implementations must tolerate concurrent calls from several loops.
    """

    @abstractmethod
    async def list_objects(
        self,
        namespace: Optional[str] = None,
        kinds: Optional[Iterable[ObjectKind]] = None,
    ) -> List[ClusterObject]:
        """List live objects, optionally restricted to a namespace and kinds."""
        ...

    @abstractmethod
    async def get(self, ref: ObjectRef) -> Optional[ClusterObject]:
        """Get one object, None when absent."""
        ...

    @abstractmethod
    async def apply(self, obj: ClusterObject, expected_version: Optional[int] = None) -> ClusterObject:
        """Create or replace an object by identity.

        Raises:
            ConflictError: If ``expected_version`` does not match the live version
            TransientClusterError: If the API is unavailable
        """
        ...

    @abstractmethod
    async def delete(self, ref: ObjectRef, expected_version: Optional[int] = None) -> None:
        """Delete an object.

        Raises:
            ClusterObjectNotFoundError: If the object does not exist
            ConflictError: If ``expected_version`` does not match
        """
        ...

    @abstractmethod
    def watch(self, since_version: int = 0) -> AsyncIterator[WatchEvent]:
        """Stream changes newer than ``since_version``.

        The stream raises TransientClusterError when the channel breaks.
        """
        ...
