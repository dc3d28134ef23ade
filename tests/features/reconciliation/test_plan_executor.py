"""Tests for plan execution."""

from datetime import datetime, timedelta, timezone

import pytest

from neo_quota.config.constants import ObjectKind
from neo_quota.core.exceptions import TransientClusterError
from neo_quota.core.value_objects import ObjectRef
from neo_quota.features.cluster.entities.cluster_object import ClusterObject
from neo_quota.features.reconciliation.entities.plan import Action, ActionType, ReconciliationPlan
from neo_quota.features.reconciliation.entities.tenant_state import ReconcilePhase, TenantReconcileState
from neo_quota.features.reconciliation.services.plan_executor import PlanExecutor


def create(ref, spec=None):
    return Action(ActionType.CREATE, ref, payload=ClusterObject(ref=ref, spec=spec or {}))


NAMESPACE = ObjectRef.namespace_ref("team-a")
QUOTA = ObjectRef(ObjectKind.RESOURCE_QUOTA, "team-a", "team-a-quota")
ROLE = ObjectRef(ObjectKind.ROLE, "team-a", "team-a-tenant")


class TestPlanExecutor:
    @pytest.mark.asyncio
    async def test_applies_in_order(self, cluster):
        plan = ReconciliationPlan.build("team-a", [create(QUOTA), create(NAMESPACE)])

        result = await PlanExecutor(cluster).execute(plan)

        assert result.succeeded
        assert [a.ref for a in result.applied] == [NAMESPACE, QUOTA]
        assert set(cluster.objects()) == {NAMESPACE, QUOTA}

    @pytest.mark.asyncio
    async def test_first_failure_halts_plan(self, cluster):
        plan = ReconciliationPlan.build("team-a", [create(NAMESPACE), create(QUOTA), create(ROLE)])
        cluster.seed(ClusterObject(ref=NAMESPACE))
        cluster.fail_next("apply", times=2)

        result = await PlanExecutor(cluster).execute(plan)

        assert not result.succeeded
        assert result.failed.ref == NAMESPACE
        assert isinstance(result.error, TransientClusterError)
        assert result.applied == []
        assert cluster.calls["apply"] == 1

    @pytest.mark.asyncio
    async def test_missing_object_delete_is_ignored(self, cluster):
        plan = ReconciliationPlan.build("team-a", [Action(ActionType.DELETE, ROLE, expected_version=4)])
        result = await PlanExecutor(cluster).execute(plan)
        assert result.succeeded
        assert result.applied[0].ref == ROLE

    @pytest.mark.asyncio
    async def test_stop_request_between_actions(self, cluster):
        plan = ReconciliationPlan.build("team-a", [create(NAMESPACE), create(QUOTA)])
        applying = []

        result = await PlanExecutor(cluster).execute(
            plan,
            should_stop=lambda: len(applying) == 1,
            on_applying=lambda action: applying.append(action.ref),
        )

        assert result.stopped
        assert not result.succeeded
        assert applying == [NAMESPACE]
        assert set(cluster.objects()) == {NAMESPACE}


class TestReconciliationPlan:
    def test_serialization(self):
        plan = ReconciliationPlan.build("team-a", [create(NAMESPACE)], skipped=["drift:role/team-a/x"])
        data = plan.to_dict()
        assert data["actions"] == [
            {"type": "create", "ref": "namespace/team-a", "expected_version": None, "reason": ""}
        ]
        assert data["skipped"] == ["drift:role/team-a/x"]


class TestTenantReconcileState:
    NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_due_rules(self):
        state = TenantReconcileState("team-a")
        assert state.is_due(self.NOW)

        state.record_failure("boom")
        state.phase = ReconcilePhase.BACKOFF
        state.next_attempt_at = self.NOW + timedelta(seconds=4)
        assert not state.is_due(self.NOW)
        assert state.is_due(self.NOW + timedelta(seconds=4))

        state.phase = ReconcilePhase.APPLYING
        assert not state.is_due(self.NOW + timedelta(days=1))

        state.phase = ReconcilePhase.DEGRADED
        assert not state.is_due(self.NOW + timedelta(days=1))

    def test_success_clears_failures(self):
        state = TenantReconcileState("team-a", consecutive_failures=3, last_error="boom")
        state.record_success(self.NOW, plan_size=2, spec_version=5)
        assert state.consecutive_failures == 0
        assert state.last_error is None
        assert state.applied_version == 5
        assert state.to_dict()["last_success_at"] == self.NOW.isoformat()
