"""Applies a reconciliation plan to the cluster."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ....core.exceptions import ClusterObjectNotFoundError
from ...cluster.entities.protocols import ClusterClient
from ..entities.plan import Action, ActionType, ReconciliationPlan

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of applying one plan."""

    applied: List[Action] = field(default_factory=list)
    failed: Optional[Action] = None
    error: Optional[Exception] = None
    stopped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.stopped


class PlanExecutor:
    """Applies actions one by one in plan order.

    The first failing action halts the rest of the plan; the error is
    returned to the caller, which owns retry policy. A stop request is
    checked between actions so an in-flight mutation always completes.
    """

    def __init__(self, cluster: ClusterClient):
        self._cluster = cluster

    async def execute(
        self,
        plan: ReconciliationPlan,
        should_stop: Optional[Callable[[], bool]] = None,
        on_applying: Optional[Callable[[Action], None]] = None,
    ) -> ExecutionResult:
        result = ExecutionResult()
        for action in plan.actions:
            if should_stop is not None and should_stop():
                logger.info(f"Stop requested for {plan.tenant_id}, {len(plan) - len(result.applied)} actions left")
                result.stopped = True
                return result
            if on_applying is not None:
                on_applying(action)
            try:
                await self._apply(action)
            except Exception as e:
                logger.warning(f"Action {action.type.value} {action.ref} failed for {plan.tenant_id}: {e}")
                result.failed = action
                result.error = e
                return result
            result.applied.append(action)
        return result

    async def _apply(self, action: Action) -> None:
        if action.type == ActionType.DELETE:
            try:
                await self._cluster.delete(action.ref, expected_version=action.expected_version)
            except ClusterObjectNotFoundError:
                # Already gone
                logger.debug(f"{action.ref} already deleted")
            return
        await self._cluster.apply(action.payload, expected_version=action.expected_version)
        logger.info(f"Applied {action.type.value} {action.ref}")
