"""Tests for object identity."""

import pytest

from neo_quota.config.constants import ObjectKind
from neo_quota.core.value_objects import ObjectRef, TenantId


class TestObjectRef:
    def test_namespaced_ref(self):
        ref = ObjectRef(ObjectKind.RESOURCE_QUOTA, "team-a", "team-a-quota")
        assert ref.scope == "team-a"
        assert str(ref) == "resource_quota/team-a/team-a-quota"

    def test_namespace_ref_scope_is_itself(self):
        ref = ObjectRef.namespace_ref("team-a")
        assert ref.scope == "team-a"
        assert str(ref) == "namespace/team-a"

    def test_scope_rules(self):
        with pytest.raises(ValueError):
            ObjectRef(ObjectKind.NAMESPACE, "team-a", "team-a")
        with pytest.raises(ValueError):
            ObjectRef(ObjectKind.ROLE, None, "reader")
        with pytest.raises(ValueError):
            ObjectRef(ObjectKind.ROLE, "team-a", "")

    def test_refs_are_hashable_and_ordered(self):
        refs = {
            ObjectRef(ObjectKind.ROLE, "team-a", "b"),
            ObjectRef(ObjectKind.ROLE, "team-a", "a"),
        }
        assert [ref.name for ref in sorted(refs)] == ["a", "b"]


class TestTenantId:
    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            TenantId("")
        assert str(TenantId("team-a")) == "team-a"
