"""Pytest configuration and fixtures for neo-quota tests."""

import random
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from neo_quota.config.settings import ControllerSettings
from neo_quota.core.value_objects import ObjectRef
from neo_quota.features.admission.services.admission_guard import AdmissionGuard
from neo_quota.features.cluster.adapters.memory_cluster import InMemoryCluster
from neo_quota.features.cluster.entities.cluster_object import ClusterObject
from neo_quota.features.cluster.services.observer_service import ClusterObserver
from neo_quota.features.events.services.event_bus import EventBus
from neo_quota.features.reconciliation.services.backoff import BackoffPolicy
from neo_quota.features.reconciliation.services.kind_handlers import managed_labels
from neo_quota.features.reconciliation.services.reconciliation_engine import ReconciliationEngine
from neo_quota.features.tenants.entities.tenant_spec import (
    LimitRangeSpec,
    NetworkRule,
    QuotaSpec,
    RbacRule,
    TenantSpec,
)
from neo_quota.features.tenants.repositories.memory_tenant_repository import InMemoryTenantRepository
from neo_quota.features.tenants.services.registry_service import TenantRegistryService
from neo_quota.features.usage.repositories.memory_usage_repository import InMemoryUsageRepository
from neo_quota.utils.clock import ManualClock


def make_spec(identifier: str = "team-a", **overrides) -> TenantSpec:
    """Tenant spec with a valid quota and nothing else unless overridden."""
    values = {
        "identifier": identifier,
        "description": f"{identifier} workloads",
        "quota": QuotaSpec(
            cpu_limit="4",
            mem_limit="8Gi",
            cpu_request="2",
            mem_request="4Gi",
            pod_limit=20,
        ),
    }
    values.update(overrides)
    return TenantSpec(**values)


def make_full_spec(identifier: str = "team-c") -> TenantSpec:
    """Tenant spec exercising every managed kind."""
    return make_spec(
        identifier,
        limit_range=LimitRangeSpec("500m", "512Mi", "100m", "128Mi"),
        rbac_rules=[RbacRule(["", "apps"], ["pods", "deployments"], ["get", "list", "create"])],
        role_subjects=(f"{identifier}-devs",),
        shared_cluster_roles=("view",),
        network_rules=[
            NetworkRule("ingress", None, 8080, "TCP"),
            NetworkRule("egress", "shared-services", 5432, "TCP"),
        ],
    )


def namespace_object(spec: TenantSpec) -> ClusterObject:
    """Live namespace object as the controller would have created it."""
    return ClusterObject(ref=ObjectRef.namespace_ref(spec.identifier), labels=managed_labels(spec))


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def cluster():
    return InMemoryCluster()


@pytest.fixture
def tenant_repository():
    return InMemoryTenantRepository()


@pytest.fixture
def usage_repository():
    return InMemoryUsageRepository()


@pytest.fixture
def guard(tenant_repository):
    return AdmissionGuard(tenant_repository)


@pytest.fixture
def registry(tenant_repository, guard, bus):
    return TenantRegistryService(tenant_repository, guard, bus)


@pytest.fixture
def observer(cluster, bus, clock):
    return ClusterObserver(cluster, bus, clock=clock)


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.notify_degraded = AsyncMock()
    return mock


@pytest.fixture
def make_engine(tenant_repository, observer, cluster, guard, bus, clock, notifier):
    """Factory for engines sharing the test's cluster and registry."""

    def factory(cluster_client: Optional[InMemoryCluster] = None, **kwargs) -> ReconciliationEngine:
        kwargs.setdefault("backoff", BackoffPolicy(rng=random.Random(7)))
        kwargs.setdefault("notifier", notifier)
        return ReconciliationEngine(
            tenant_repository,
            observer,
            cluster_client or cluster,
            guard,
            bus,
            clock=clock,
            **kwargs,
        )

    return factory


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def settings():
    return ControllerSettings(_env_file=None, cluster_backend="memory", database_url=None, redis_url=None)


@pytest.fixture
def spec_factory():
    return make_spec


@pytest.fixture
def full_spec_factory():
    return make_full_spec


@pytest.fixture
def namespace_factory():
    return namespace_object
