"""Controller wiring.

QuotaController owns the event bus and the long-running loops: the cluster
observer, the reconciliation engine's dispatcher and the usage aggregator.
build_controller picks concrete adapters from settings.
"""

import asyncio
import logging
from typing import List, Optional

from .config.settings import ControllerSettings, get_settings
from .features.admission.services.admission_guard import AdmissionGuard
from .features.cluster.adapters.memory_cluster import InMemoryCluster
from .features.cluster.entities.protocols import ClusterClient
from .features.cluster.services.observer_service import ClusterObserver
from .features.database.services.database_service import DatabaseService
from .features.events.services.event_bus import EventBus
from .features.reconciliation.services.operator_notifier import (
    LoggingOperatorNotifier,
    OperatorNotifier,
    RedisOperatorNotifier,
)
from .features.reconciliation.services.reconciliation_engine import ReconciliationEngine
from .features.tenants.entities.protocols import TenantRepository
from .features.tenants.repositories import InMemoryTenantRepository, TenantDatabaseRepository
from .features.tenants.services.registry_service import TenantRegistryService
from .features.usage.entities.protocols import TelemetrySource, UsageRecordRepository
from .features.usage.repositories import InMemoryUsageRepository, UsageDatabaseRepository
from .features.usage.services.aggregator_service import UsageAggregator
from .features.usage.services.sample_buffer import SampleBuffer
from .utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class QuotaController:
    """All controller components sharing one event bus."""

    def __init__(
        self,
        settings: ControllerSettings,
        cluster: ClusterClient,
        tenant_repository: TenantRepository,
        usage_repository: UsageRecordRepository,
        telemetry: Optional[TelemetrySource] = None,
        notifier: Optional[OperatorNotifier] = None,
        clock: Optional[Clock] = None,
        database: Optional[DatabaseService] = None,
    ):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.cluster = cluster
        self.tenant_repository = tenant_repository
        self.usage_repository = usage_repository
        self.notifier = notifier or LoggingOperatorNotifier()
        self._database = database

        self.bus = EventBus()
        self.guard = AdmissionGuard(tenant_repository, settings.reserved_prefix)
        self.registry = TenantRegistryService(tenant_repository, self.guard, self.bus)
        # Only registered namespaces (and objects labelled with a tenant) are tracked
        self.observer = ClusterObserver(
            cluster,
            self.bus,
            clock=self.clock,
            relist_interval=settings.relist_interval_seconds,
            namespaces=(),
        )
        self.engine = ReconciliationEngine(
            tenant_repository,
            self.observer,
            cluster,
            self.guard,
            self.bus,
            clock=self.clock,
            backoff=settings.backoff_policy(),
            notifier=self.notifier,
            max_consecutive_failures=settings.max_consecutive_failures,
            max_conflict_retries=settings.max_conflict_retries,
            allow_drift_deletion=settings.allow_drift_deletion,
            delete_namespace_on_offboarding=settings.delete_namespace_on_offboarding,
        )
        self.telemetry = telemetry or SampleBuffer()
        self.aggregator = UsageAggregator(
            usage_repository,
            self.telemetry,
            prices=settings.pricing_table(),
            event_bus=self.bus,
            clock=self.clock,
            period_seconds=settings.aggregation_period_seconds,
            observer=self.observer,
        )
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Start the observer, the engine dispatcher and the aggregator."""
        if self.running:
            return
        for spec in await self.registry.list():
            self.observer.track(spec.identifier)
        self._tasks = [
            asyncio.create_task(self.observer.run(), name="cluster-observer"),
            asyncio.create_task(self.engine.run(), name="reconciliation-engine"),
            asyncio.create_task(self.aggregator.run(), name="usage-aggregator"),
        ]
        logger.info(f"{self.settings.app_name} started ({self.settings.environment})")

    async def stop(self) -> None:
        """Stop loops in reverse start order and release connections."""
        for task in reversed(self._tasks):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Task {task.get_name()} failed during shutdown: {e}")
        self._tasks = []
        self.bus.close()
        if isinstance(self.notifier, RedisOperatorNotifier):
            await self.notifier.close()
        if self._database is not None:
            await self._database.close()
        logger.info(f"{self.settings.app_name} stopped")


def build_cluster(settings: ControllerSettings) -> ClusterClient:
    if settings.cluster_backend == "memory":
        logger.warning("Using the in-memory cluster; nothing is applied to a real cluster")
        return InMemoryCluster()
    # Imported here so the kubernetes client is only loaded when used
    from .features.cluster.adapters.kubernetes_cluster import KubernetesCluster

    return KubernetesCluster(
        in_cluster=settings.kube_in_cluster,
        context=settings.kube_context,
        config_file=settings.kube_config_file,
    )


async def build_controller(
    settings: Optional[ControllerSettings] = None,
    clock: Optional[Clock] = None,
) -> QuotaController:
    """Build a controller from settings.

    Postgres repositories are used when ``database_url`` is set, in-memory
    ones otherwise. A Redis notifier is used when ``redis_url`` is set.
    """
    settings = settings or get_settings()

    database = None
    if settings.uses_database:
        database = DatabaseService(
            settings.database_url,
            schema=settings.registry_schema,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        await database.initialize()
        tenant_repository = TenantDatabaseRepository(database)
        usage_repository = UsageDatabaseRepository(database)
    else:
        logger.info("No database_url configured, using in-memory registry and usage stores")
        tenant_repository = InMemoryTenantRepository()
        usage_repository = InMemoryUsageRepository()

    if settings.redis_url:
        notifier = RedisOperatorNotifier.from_url(settings.redis_url, settings.operator_channel)
    else:
        notifier = LoggingOperatorNotifier()

    return QuotaController(
        settings,
        cluster=build_cluster(settings),
        tenant_repository=tenant_repository,
        usage_repository=usage_repository,
        notifier=notifier,
        clock=clock,
        database=database,
    )
