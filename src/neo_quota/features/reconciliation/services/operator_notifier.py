"""Operator alert channel for tenants that stopped converging."""

import json
import logging
from abc import abstractmethod
from typing import Protocol, runtime_checkable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..entities.tenant_state import TenantReconcileState

logger = logging.getLogger(__name__)


@runtime_checkable
class OperatorNotifier(Protocol):
    """Receives a notification when a tenant becomes Degraded."""

    @abstractmethod
    async def notify_degraded(self, state: TenantReconcileState) -> None:
        ...


class LoggingOperatorNotifier:
    """Writes degraded alerts to the log."""

    async def notify_degraded(self, state: TenantReconcileState) -> None:
        logger.error(
            f"Tenant {state.tenant_id} is DEGRADED after {state.consecutive_failures} "
            f"consecutive failures: {state.last_error}"
        )


class RedisOperatorNotifier:
    """Publishes degraded alerts as JSON on a Redis pub/sub channel.

    Publishing failures are logged, never raised: the alert also reaches the
    log and the tenant stays queryable as Degraded.
    """

    def __init__(self, redis_client: Redis, channel: str = "neo-quota:degraded"):
        self._redis = redis_client
        self._channel = channel

    @classmethod
    def from_url(cls, url: str, channel: str = "neo-quota:degraded") -> "RedisOperatorNotifier":
        return cls(Redis.from_url(url, decode_responses=True), channel)

    async def notify_degraded(self, state: TenantReconcileState) -> None:
        payload = json.dumps({"event": "tenant_degraded", **state.to_dict()})
        logger.error(f"Tenant {state.tenant_id} is DEGRADED: {state.last_error}")
        try:
            receivers = await self._redis.publish(self._channel, payload)
            logger.debug(f"Degraded alert for {state.tenant_id} delivered to {receivers} subscribers")
        except RedisError as e:
            logger.warning(f"Failed to publish degraded alert for {state.tenant_id}: {e}")

    async def close(self) -> None:
        await self._redis.aclose()
