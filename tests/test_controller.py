"""Tests for controller wiring."""

import asyncio

import pytest

from neo_quota.controller import QuotaController, build_controller
from neo_quota.features.cluster.adapters.memory_cluster import InMemoryCluster
from neo_quota.features.reconciliation.services.operator_notifier import LoggingOperatorNotifier
from neo_quota.features.tenants.repositories.memory_tenant_repository import InMemoryTenantRepository
from neo_quota.features.usage.repositories.memory_usage_repository import InMemoryUsageRepository
from neo_quota.features.usage.services.sample_buffer import SampleBuffer


class TestBuildController:
    @pytest.mark.asyncio
    async def test_memory_backends(self, settings):
        controller = await build_controller(settings)

        assert isinstance(controller.cluster, InMemoryCluster)
        assert isinstance(controller.tenant_repository, InMemoryTenantRepository)
        assert isinstance(controller.usage_repository, InMemoryUsageRepository)
        assert isinstance(controller.notifier, LoggingOperatorNotifier)
        assert isinstance(controller.telemetry, SampleBuffer)


class TestQuotaController:
    @pytest.mark.asyncio
    async def test_start_reconciles_registered_tenants(self, settings, spec_factory):
        cluster = InMemoryCluster()
        controller = QuotaController(
            settings,
            cluster=cluster,
            tenant_repository=InMemoryTenantRepository(),
            usage_repository=InMemoryUsageRepository(),
        )
        await controller.registry.put(spec_factory("team-a"))

        await controller.start()
        try:
            assert controller.running
            for _ in range(200):
                if controller.engine.status("team-a").last_success_at is not None:
                    break
                await asyncio.sleep(0.01)
            assert controller.engine.status("team-a").last_success_at is not None
            assert any(ref.namespace == "team-a" for ref in cluster.objects())
        finally:
            await controller.stop()

        assert not controller.running
