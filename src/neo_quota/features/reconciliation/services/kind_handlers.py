"""Per-kind desired-object generation and comparison.

Every managed kind has one handler in ``KIND_HANDLERS``. A handler turns a
TenantSpec into the desired objects of its kind, decides whether a live
object already matches a desired one, and lists the objects another object
depends on. Comparisons are semantic: quantities by parsed value, rule and
subject lists as sets.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Set, Tuple

from ....config.constants import ManagedLabels, ObjectKind, ObjectNames, QuotaResources
from ....core.value_objects import ObjectRef, quantities_equal
from ...cluster.entities.cluster_object import ClusterObject
from ...tenants.entities.tenant_spec import TenantSpec


def managed_labels(spec: TenantSpec) -> Dict[str, str]:
    labels = dict(spec.labels)
    labels[ManagedLabels.MANAGED_BY] = ManagedLabels.MANAGED_BY_VALUE
    labels[ManagedLabels.TENANT] = spec.identifier
    return labels


def _quantity_maps_equal(desired: Dict[str, Any], live: Dict[str, Any]) -> bool:
    if set(desired) != set(live):
        return False
    for key, value in desired.items():
        try:
            if not quantities_equal(value, live[key]):
                return False
        except ValueError:
            return False
    return True


# Namespace

def _namespace_desired(spec: TenantSpec) -> List[ClusterObject]:
    return [ClusterObject(ref=ObjectRef.namespace_ref(spec.identifier), labels=managed_labels(spec))]


def _namespace_equivalent(desired: ClusterObject, live: ClusterObject) -> bool:
    # Extra labels added by other tooling are tolerated
    return all(live.labels.get(k) == v for k, v in desired.labels.items())


# ResourceQuota

def _quota_desired(spec: TenantSpec) -> List[ClusterObject]:
    quota = spec.quota
    hard = {
        QuotaResources.LIMITS_CPU: quota.cpu_limit,
        QuotaResources.LIMITS_MEMORY: quota.mem_limit,
        QuotaResources.REQUESTS_CPU: quota.cpu_request,
        QuotaResources.REQUESTS_MEMORY: quota.mem_request,
        QuotaResources.PODS: str(quota.pod_limit),
    }
    ref = ObjectRef(
        ObjectKind.RESOURCE_QUOTA,
        spec.identifier,
        ObjectNames.RESOURCE_QUOTA.format(tenant=spec.identifier),
    )
    return [ClusterObject(ref=ref, spec={"hard": hard}, labels=managed_labels(spec))]


def _quota_equivalent(desired: ClusterObject, live: ClusterObject) -> bool:
    return _quantity_maps_equal(desired.spec.get("hard", {}), live.spec.get("hard", {}))


# LimitRange

def _limit_range_desired(spec: TenantSpec) -> List[ClusterObject]:
    limits = spec.limit_range
    if limits is None:
        return []
    ref = ObjectRef(
        ObjectKind.LIMIT_RANGE,
        spec.identifier,
        ObjectNames.LIMIT_RANGE.format(tenant=spec.identifier),
    )
    body = {
        "default": {"cpu": limits.default_cpu, "memory": limits.default_memory},
        "defaultRequest": {"cpu": limits.default_request_cpu, "memory": limits.default_request_memory},
    }
    return [ClusterObject(ref=ref, spec=body, labels=managed_labels(spec))]


def _limit_range_equivalent(desired: ClusterObject, live: ClusterObject) -> bool:
    return all(
        _quantity_maps_equal(desired.spec.get(key, {}), live.spec.get(key, {}))
        for key in ("default", "defaultRequest")
    )


# Role

RuleKey = Tuple[FrozenSet[str], FrozenSet[str], FrozenSet[str]]


def _rule_set(obj: ClusterObject) -> Set[RuleKey]:
    return {
        (
            frozenset(rule.get("apiGroups") or []),
            frozenset(rule.get("resources") or []),
            frozenset(rule.get("verbs") or []),
        )
        for rule in obj.spec.get("rules", [])
    }


def _role_desired(spec: TenantSpec) -> List[ClusterObject]:
    if not spec.rbac_rules:
        return []
    rules = [rule.to_dict() for rule in spec.rbac_rules]
    body = {
        "rules": [
            {"apiGroups": r["api_groups"], "resources": r["resources"], "verbs": r["verbs"]}
            for r in sorted(rules, key=lambda r: (r["api_groups"], r["resources"], r["verbs"]))
        ]
    }
    ref = ObjectRef(ObjectKind.ROLE, spec.identifier, ObjectNames.ROLE.format(tenant=spec.identifier))
    return [ClusterObject(ref=ref, spec=body, labels=managed_labels(spec))]


def _role_equivalent(desired: ClusterObject, live: ClusterObject) -> bool:
    return _rule_set(desired) == _rule_set(live)


# RoleBinding

def _subjects(spec: TenantSpec) -> List[Dict[str, str]]:
    return [{"kind": "Group", "name": subject} for subject in sorted(set(spec.role_subjects))]


def _binding_desired(spec: TenantSpec) -> List[ClusterObject]:
    if not spec.role_subjects:
        return []
    objects = []
    if spec.rbac_rules:
        ref = ObjectRef(
            ObjectKind.ROLE_BINDING,
            spec.identifier,
            ObjectNames.ROLE_BINDING.format(tenant=spec.identifier),
        )
        body = {
            "roleRef": {"kind": "Role", "name": ObjectNames.ROLE.format(tenant=spec.identifier)},
            "subjects": _subjects(spec),
        }
        objects.append(ClusterObject(ref=ref, spec=body, labels=managed_labels(spec)))
    for cluster_role in sorted(set(spec.shared_cluster_roles)):
        ref = ObjectRef(
            ObjectKind.ROLE_BINDING,
            spec.identifier,
            ObjectNames.SHARED_ROLE_BINDING.format(tenant=spec.identifier, cluster_role=cluster_role),
        )
        body = {
            "roleRef": {"kind": "ClusterRole", "name": cluster_role},
            "subjects": _subjects(spec),
        }
        objects.append(ClusterObject(ref=ref, spec=body, labels=managed_labels(spec)))
    return objects


def _subject_set(obj: ClusterObject) -> Set[Tuple[str, str]]:
    return {(s.get("kind"), s.get("name")) for s in obj.spec.get("subjects", [])}


def _binding_equivalent(desired: ClusterObject, live: ClusterObject) -> bool:
    return (
        desired.spec.get("roleRef") == live.spec.get("roleRef")
        and _subject_set(desired) == _subject_set(live)
    )


def _binding_references(obj: ClusterObject) -> Set[ObjectRef]:
    role_ref = obj.spec.get("roleRef") or {}
    name = role_ref.get("name")
    if not name:
        return set()
    if role_ref.get("kind") == "ClusterRole":
        return {ObjectRef(ObjectKind.CLUSTER_ROLE, None, name)}
    return {ObjectRef(ObjectKind.ROLE, obj.namespace, name)}


# NetworkPolicy

RuleTuple = Tuple[str, Any, Any, str]


def _policy_rules(obj: ClusterObject) -> Set[RuleTuple]:
    own = obj.namespace
    rules = set()
    for direction in ("ingress", "egress"):
        for rule in obj.spec.get(direction, []):
            peer = rule.get("peer_namespace")
            if peer == own:
                peer = None
            rules.add((direction, peer, rule.get("port"), rule.get("protocol", "TCP")))
    return rules


def _policy_desired(spec: TenantSpec) -> List[ClusterObject]:
    if not spec.network_rules:
        return []
    body: Dict[str, Any] = {"policyTypes": [], "ingress": [], "egress": []}
    for rule in sorted(spec.network_rules, key=lambda r: (r.direction, r.peer_namespace or "", r.port or 0, r.protocol)):
        peer = None if rule.peer_namespace == spec.identifier else rule.peer_namespace
        body[rule.direction].append({"peer_namespace": peer, "port": rule.port, "protocol": rule.protocol})
    body["policyTypes"] = [d.capitalize() for d in ("ingress", "egress") if body[d]]
    ref = ObjectRef(
        ObjectKind.NETWORK_POLICY,
        spec.identifier,
        ObjectNames.NETWORK_POLICY.format(tenant=spec.identifier),
    )
    return [ClusterObject(ref=ref, spec=body, labels=managed_labels(spec))]


def _policy_equivalent(desired: ClusterObject, live: ClusterObject) -> bool:
    return (
        set(desired.spec.get("policyTypes", [])) == set(live.spec.get("policyTypes", []))
        and _policy_rules(desired) == _policy_rules(live)
    )


def _policy_references(obj: ClusterObject) -> Set[ObjectRef]:
    return {
        ObjectRef.namespace_ref(peer)
        for _, peer, _, _ in _policy_rules(obj)
        if peer is not None
    }


def _no_references(obj: ClusterObject) -> Set[ObjectRef]:
    return set()


@dataclass(frozen=True)
class KindHandler:
    """Desired-state behaviour of one object kind."""

    kind: ObjectKind
    desired: Callable[[TenantSpec], List[ClusterObject]]
    equivalent: Callable[[ClusterObject, ClusterObject], bool]
    references: Callable[[ClusterObject], Set[ObjectRef]] = _no_references
    # Deleting live objects of this kind goes through the admission guard
    guarded_delete: bool = False


KIND_HANDLERS: Dict[ObjectKind, KindHandler] = {
    ObjectKind.NAMESPACE: KindHandler(
        ObjectKind.NAMESPACE, _namespace_desired, _namespace_equivalent,
    ),
    ObjectKind.RESOURCE_QUOTA: KindHandler(
        ObjectKind.RESOURCE_QUOTA, _quota_desired, _quota_equivalent,
    ),
    ObjectKind.LIMIT_RANGE: KindHandler(
        ObjectKind.LIMIT_RANGE, _limit_range_desired, _limit_range_equivalent,
    ),
    ObjectKind.ROLE: KindHandler(
        ObjectKind.ROLE, _role_desired, _role_equivalent, guarded_delete=True,
    ),
    ObjectKind.ROLE_BINDING: KindHandler(
        ObjectKind.ROLE_BINDING, _binding_desired, _binding_equivalent,
        references=_binding_references, guarded_delete=True,
    ),
    ObjectKind.NETWORK_POLICY: KindHandler(
        ObjectKind.NETWORK_POLICY, _policy_desired, _policy_equivalent,
        references=_policy_references, guarded_delete=True,
    ),
}


def desired_objects(spec: TenantSpec) -> Dict[ObjectRef, ClusterObject]:
    """All objects a spec implies, keyed by reference."""
    objects: Dict[ObjectRef, ClusterObject] = {}
    for handler in KIND_HANDLERS.values():
        for obj in handler.desired(spec):
            objects[obj.ref] = obj
    return objects


def references_of(obj: ClusterObject) -> Set[ObjectRef]:
    handler = KIND_HANDLERS.get(obj.kind)
    if handler is None:
        return set()
    return handler.references(obj)
