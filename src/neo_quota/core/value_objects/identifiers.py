"""Value objects for identifiers in neo-quota."""

from dataclasses import dataclass
from typing import Optional

from ...config.constants import ObjectKind


@dataclass(frozen=True)
class TenantId:
    """Tenant identifier value object with basic validation.

    The identifier is the tenant's namespace name.
    """
    value: str

    def __post_init__(self):
        if not self.value or not isinstance(self.value, str):
            raise ValueError("Tenant ID must be a non-empty string")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class ObjectRef:
    """Identity of a cluster object: (kind, namespace, name).

    ``namespace`` is None for cluster-scoped kinds.
    """
    kind: ObjectKind
    namespace: Optional[str]
    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Object name must be a non-empty string")
        if self.kind.is_cluster_scoped and self.namespace is not None:
            raise ValueError(f"{self.kind.value} objects are cluster-scoped")
        if not self.kind.is_cluster_scoped and not self.namespace:
            raise ValueError(f"{self.kind.value} objects require a namespace")

    @classmethod
    def namespace_ref(cls, name: str) -> "ObjectRef":
        return cls(ObjectKind.NAMESPACE, None, name)

    @property
    def scope(self) -> str:
        """Namespace the object belongs to, the namespace itself for namespaces."""
        if self.kind == ObjectKind.NAMESPACE:
            return self.name
        return self.namespace or ""

    def __str__(self) -> str:
        if self.namespace is None:
            return f"{self.kind.value}/{self.name}"
        return f"{self.kind.value}/{self.namespace}/{self.name}"
