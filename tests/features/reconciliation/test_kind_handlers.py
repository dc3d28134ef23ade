"""Tests for desired-object generation and semantic comparison."""

from dataclasses import replace

from neo_quota.config.constants import ManagedLabels, ObjectKind
from neo_quota.core.value_objects import ObjectRef
from neo_quota.features.reconciliation.services.kind_handlers import (
    KIND_HANDLERS,
    desired_objects,
    references_of,
)


def by_kind(objects, kind):
    return [obj for obj in objects.values() if obj.kind == kind]


class TestDesiredObjects:
    def test_minimal_spec(self, spec_factory):
        objects = desired_objects(spec_factory())
        assert {ref.kind for ref in objects} == {ObjectKind.NAMESPACE, ObjectKind.RESOURCE_QUOTA}
        [quota] = by_kind(objects, ObjectKind.RESOURCE_QUOTA)
        assert quota.ref == ObjectRef(ObjectKind.RESOURCE_QUOTA, "team-a", "team-a-quota")
        assert quota.spec["hard"] == {
            "limits.cpu": "4",
            "limits.memory": "8Gi",
            "requests.cpu": "2",
            "requests.memory": "4Gi",
            "pods": "20",
        }
        assert quota.labels[ManagedLabels.TENANT] == "team-a"
        assert quota.is_managed

    def test_full_spec(self, full_spec_factory):
        objects = desired_objects(full_spec_factory())
        bindings = by_kind(objects, ObjectKind.ROLE_BINDING)
        assert sorted(b.name for b in bindings) == ["team-c-tenant", "team-c-view"]
        [policy] = by_kind(objects, ObjectKind.NETWORK_POLICY)
        assert policy.spec["policyTypes"] == ["Ingress", "Egress"]
        assert len(by_kind(objects, ObjectKind.LIMIT_RANGE)) == 1
        assert len(by_kind(objects, ObjectKind.ROLE)) == 1


class TestEquivalence:
    def test_quota_compared_by_value(self, spec_factory):
        [quota] = by_kind(desired_objects(spec_factory()), ObjectKind.RESOURCE_QUOTA)
        live = replace(quota, spec={"hard": dict(quota.spec["hard"], **{"limits.cpu": "4000m", "limits.memory": "8192Mi"})})
        assert KIND_HANDLERS[ObjectKind.RESOURCE_QUOTA].equivalent(quota, live)

        changed = replace(quota, spec={"hard": dict(quota.spec["hard"], pods="30")})
        assert not KIND_HANDLERS[ObjectKind.RESOURCE_QUOTA].equivalent(quota, changed)

    def test_role_rules_compared_as_sets(self, full_spec_factory):
        [role] = by_kind(desired_objects(full_spec_factory()), ObjectKind.ROLE)
        shuffled = [
            {
                "apiGroups": list(reversed(rule["apiGroups"])),
                "resources": list(reversed(rule["resources"])),
                "verbs": list(reversed(rule["verbs"])),
            }
            for rule in role.spec["rules"]
        ]
        assert KIND_HANDLERS[ObjectKind.ROLE].equivalent(role, replace(role, spec={"rules": shuffled}))

    def test_namespace_tolerates_extra_labels(self, spec_factory):
        [namespace] = by_kind(desired_objects(spec_factory()), ObjectKind.NAMESPACE)
        live = replace(namespace, labels=dict(namespace.labels, team="platform"))
        assert KIND_HANDLERS[ObjectKind.NAMESPACE].equivalent(namespace, live)
        assert not KIND_HANDLERS[ObjectKind.NAMESPACE].equivalent(namespace, replace(namespace, labels={}))


class TestReferences:
    def test_binding_and_policy_references(self, full_spec_factory):
        objects = desired_objects(full_spec_factory())
        references = set()
        for obj in objects.values():
            references |= references_of(obj)
        assert references == {
            ObjectRef(ObjectKind.ROLE, "team-c", "team-c-tenant"),
            ObjectRef(ObjectKind.CLUSTER_ROLE, None, "view"),
            ObjectRef.namespace_ref("shared-services"),
        }
