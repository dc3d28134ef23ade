"""Tests for the Kubernetes adapter's translation layer."""

import asyncio
import threading
import time
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from urllib3.exceptions import ReadTimeoutError

from neo_quota.config.constants import ObjectKind
from neo_quota.core.exceptions import (
    ClusterError,
    ClusterObjectNotFoundError,
    ConflictError,
    TransientClusterError,
)
from neo_quota.core.value_objects import ObjectRef
from neo_quota.features.cluster.adapters import kubernetes_cluster
from neo_quota.features.cluster.adapters.kubernetes_cluster import (
    KubernetesCluster,
    translate_api_exception,
)
from neo_quota.features.cluster.entities.cluster_object import ClusterObject
from neo_quota.features.reconciliation.services.kind_handlers import KIND_HANDLERS, desired_objects
from neo_quota.features.tenants.entities.tenant_spec import NetworkRule


@pytest.fixture
def kube():
    cluster = KubernetesCluster(api_client=MagicMock())
    cluster._apis = {"core": MagicMock(), "rbac": MagicMock(), "networking": MagicMock()}
    return cluster


class TestTranslateApiException:
    def test_status_mapping(self):
        ref = ObjectRef(ObjectKind.ROLE, "team-a", "team-a-tenant")
        assert isinstance(translate_api_exception(ApiException(status=409, reason="Conflict"), ref, 4), ConflictError)
        assert isinstance(translate_api_exception(ApiException(status=404, reason="Not Found"), ref), ClusterObjectNotFoundError)
        for status in (410, 429, 500, 503):
            assert isinstance(translate_api_exception(ApiException(status=status, reason="x")), TransientClusterError)
        error = translate_api_exception(ApiException(status=403, reason="Forbidden"), ref)
        assert type(error) is ClusterError


class TestManifestCodecs:
    def test_quota_manifest(self, kube, spec_factory):
        quota = next(obj for obj in desired_objects(spec_factory()).values() if obj.kind == ObjectKind.RESOURCE_QUOTA)

        manifest = kube._to_manifest(quota, resource_version=12)

        assert manifest["kind"] == "ResourceQuota"
        assert manifest["metadata"]["namespace"] == "team-a"
        assert manifest["metadata"]["resourceVersion"] == "12"
        assert manifest["spec"]["hard"]["limits.memory"] == "8Gi"

    def test_live_quota_status(self):
        manifest = {
            "metadata": {"name": "team-a-quota", "namespace": "team-a", "resourceVersion": "42"},
            "spec": {"hard": {"limits.cpu": "4"}},
            "status": {"hard": {"limits.cpu": "4"}, "used": {"limits.cpu": "1500m"}},
        }
        obj = KubernetesCluster.from_manifest(ObjectKind.RESOURCE_QUOTA, manifest)
        assert obj.version == 42
        assert obj.status["used"]["limits.cpu"] == "1500m"

    @pytest.mark.parametrize(
        "kind",
        [ObjectKind.LIMIT_RANGE, ObjectKind.ROLE, ObjectKind.ROLE_BINDING, ObjectKind.NETWORK_POLICY],
    )
    def test_decoded_manifest_matches_desired(self, kind, kube, full_spec_factory):
        for desired in desired_objects(full_spec_factory()).values():
            if desired.kind != kind:
                continue
            decoded = KubernetesCluster.from_manifest(kind, kube._to_manifest(desired))
            assert KIND_HANDLERS[kind].equivalent(desired, decoded)
            assert decoded.labels == desired.labels

    @pytest.mark.parametrize("protocol", ["TCP", "UDP", "SCTP"])
    def test_portless_rule_keeps_its_protocol(self, kube, spec_factory, protocol):
        spec = spec_factory(network_rules=[NetworkRule("egress", "dns", None, protocol)])
        policy = next(obj for obj in desired_objects(spec).values() if obj.kind == ObjectKind.NETWORK_POLICY)

        decoded = KubernetesCluster.from_manifest(ObjectKind.NETWORK_POLICY, kube._to_manifest(policy))

        assert decoded.spec["egress"] == [{"peer_namespace": "dns", "port": None, "protocol": protocol}]
        assert KIND_HANDLERS[ObjectKind.NETWORK_POLICY].equivalent(policy, decoded)

    def test_cluster_scoped_namespace(self):
        obj = KubernetesCluster.from_manifest(
            ObjectKind.NAMESPACE,
            {"metadata": {"name": "team-a", "resourceVersion": "7"}, "status": {"phase": "Active"}},
        )
        assert obj.ref == ObjectRef.namespace_ref("team-a")
        assert obj.status == {"phase": "Active"}


class TestKubernetesCalls:
    @pytest.mark.asyncio
    async def test_apply_creates_missing_object(self, kube, spec_factory):
        core = kube._apis["core"]
        core.read_namespaced_resource_quota.side_effect = ApiException(status=404, reason="Not Found")
        core.create_namespaced_resource_quota.side_effect = lambda namespace, body: dict(
            body, metadata=dict(body["metadata"], resourceVersion="5")
        )
        quota = next(obj for obj in desired_objects(spec_factory()).values() if obj.kind == ObjectKind.RESOURCE_QUOTA)

        created = await kube.apply(quota)

        assert created.version == 5
        namespace, body = core.create_namespaced_resource_quota.call_args.args
        assert namespace == "team-a"
        assert body["kind"] == "ResourceQuota"

    @pytest.mark.asyncio
    async def test_replace_conflict(self, kube):
        rbac = kube._apis["rbac"]
        rbac.replace_namespaced_role.side_effect = ApiException(status=409, reason="Conflict")
        role = ClusterObject(
            ref=ObjectRef(ObjectKind.ROLE, "team-a", "team-a-tenant"),
            spec={"rules": [{"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]}]},
        )

        with pytest.raises(ConflictError) as exc_info:
            await kube.apply(role, expected_version=3)

        assert exc_info.value.expected_version == 3
        assert rbac.replace_namespaced_role.call_args.kwargs["body"]["metadata"]["resourceVersion"] == "3"

    @pytest.mark.asyncio
    async def test_delete_sends_precondition(self, kube):
        await kube.delete(ObjectRef.namespace_ref("team-a"), expected_version=9)
        kwargs = kube._apis["core"].delete_namespace.call_args.kwargs
        assert kwargs["name"] == "team-a"
        assert kwargs["body"]["preconditions"] == {"resourceVersion": "9"}

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, kube):
        kube._apis["networking"].read_namespaced_network_policy.side_effect = ApiException(status=404)
        ref = ObjectRef(ObjectKind.NETWORK_POLICY, "team-a", "team-a-isolation")
        assert await kube.get(ref) is None


class TestWatchShutdown:
    @pytest.fixture
    def idle_kube(self, monkeypatch):
        cluster = KubernetesCluster(api_client=MagicMock(), watch_idle_timeout_seconds=0.05)
        cluster._apis = {"core": MagicMock(), "rbac": MagicMock(), "networking": MagicMock()}
        namespaces = cluster._apis["core"].list_namespace
        calls = []
        lock = threading.Lock()

        class QuietWatch:
            """Stands in for ``kubernetes.watch.Watch``: one namespace event, then idle reads."""

            def stop(self):
                pass

            def stream(self, func, **kwargs):
                with lock:
                    calls.append((func, kwargs))
                    first = func is namespaces and sum(1 for fn, _ in calls if fn is namespaces) == 1
                if first:
                    yield {
                        "type": "ADDED",
                        "raw_object": {"metadata": {"name": "team-a", "resourceVersion": "17"}},
                    }
                time.sleep(0.01)
                raise ReadTimeoutError(None, None, "Read timed out.")

        monkeypatch.setattr(kubernetes_cluster.watch, "Watch", QuietWatch)
        cluster.stream_calls = calls
        return cluster

    @pytest.mark.asyncio
    async def test_closing_the_stream_joins_every_thread(self, idle_kube):
        stream = idle_kube.watch()

        event = await asyncio.wait_for(stream.__anext__(), timeout=5)
        await stream.aclose()

        assert event.ref == ObjectRef(ObjectKind.NAMESPACE, None, "team-a")
        assert [t for t in threading.enumerate() if t.name.startswith("watch-")] == []

    @pytest.mark.asyncio
    async def test_idle_reads_resume_from_last_version(self, idle_kube):
        stream = idle_kube.watch()
        await asyncio.wait_for(stream.__anext__(), timeout=5)
        await asyncio.sleep(0.1)
        await stream.aclose()

        namespaces = idle_kube._apis["core"].list_namespace
        resumed = [kwargs for fn, kwargs in idle_kube.stream_calls if fn is namespaces][1:]
        assert resumed
        assert all(kwargs["resource_version"] == "17" for kwargs in resumed)
        assert all(kwargs["_request_timeout"] == (0.05, 0.05) for _, kwargs in idle_kube.stream_calls)
