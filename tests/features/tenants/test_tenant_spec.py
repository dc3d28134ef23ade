"""Tests for the TenantSpec entity."""

from neo_quota.features.tenants.entities.tenant_spec import NetworkRule, RbacRule, TenantSpec


class TestTenantSpec:
    def test_version_ignored_by_equality(self, spec_factory):
        spec = spec_factory()
        assert spec.with_version(3) == spec
        assert spec.with_version(3).version == 3

    def test_rules_compare_as_sets(self):
        assert RbacRule(["apps", ""], ["pods"], ["list", "get"]) == RbacRule(["", "apps"], ["pods"], ["get", "list"])

    def test_dict_round_trip(self, full_spec_factory):
        spec = full_spec_factory().with_version(4)
        restored = TenantSpec.from_dict(spec.to_dict())
        assert restored == spec
        assert restored.version == 4
        assert restored.limit_range == spec.limit_range

    def test_peer_namespaces_exclude_self(self, spec_factory):
        spec = spec_factory(
            network_rules=[
                NetworkRule("ingress", "team-a", 80),
                NetworkRule("egress", "shared-services", 5432),
                NetworkRule("ingress", None, 8080),
            ]
        )
        assert spec.peer_namespaces == frozenset({"shared-services"})
