"""Kubernetes cluster adapter.

Implements ClusterClient on top of the official ``kubernetes`` client. The
client is synchronous, so every call runs in a worker thread; watch streams
run in daemon threads and are bridged into asyncio through a queue.

Each object kind has a codec in ``KIND_CODECS`` that names its API group,
its client method suffixes and how to translate the controller's
kind-neutral spec to and from a Kubernetes manifest.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Tuple

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError, ReadTimeoutError

from ....config.constants import ObjectKind
from ....core.exceptions import (
    ClusterError,
    ClusterObjectNotFoundError,
    ConflictError,
    TransientClusterError,
)
from ....core.value_objects import ObjectRef
from ..entities.cluster_object import ClusterObject, WatchEvent, WatchEventType

logger = logging.getLogger(__name__)

RBAC_GROUP = "rbac.authorization.k8s.io"
NAMESPACE_NAME_LABEL = "kubernetes.io/metadata.name"


# Manifest translation

def _namespace_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    return {}


def _namespace_from_manifest(manifest: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    return {}, {"phase": (manifest.get("status") or {}).get("phase")}


def _quota_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    return {"spec": {"hard": dict(obj.spec.get("hard", {}))}}


def _quota_from_manifest(manifest: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    spec = manifest.get("spec") or {}
    status = manifest.get("status") or {}
    return (
        {"hard": dict(spec.get("hard") or {})},
        {"hard": dict(status.get("hard") or {}), "used": dict(status.get("used") or {})},
    )


def _limit_range_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    return {
        "spec": {
            "limits": [{
                "type": "Container",
                "default": dict(obj.spec.get("default", {})),
                "defaultRequest": dict(obj.spec.get("defaultRequest", {})),
            }]
        }
    }


def _limit_range_from_manifest(manifest: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    limits = (manifest.get("spec") or {}).get("limits") or []
    container = next((item for item in limits if item.get("type") == "Container"), {})
    return {
        "default": dict(container.get("default") or {}),
        "defaultRequest": dict(container.get("defaultRequest") or {}),
    }, {}


def _role_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    return {"rules": [dict(rule) for rule in obj.spec.get("rules", [])]}


def _role_from_manifest(manifest: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    rules = []
    for rule in manifest.get("rules") or []:
        rules.append({
            "apiGroups": list(rule.get("apiGroups") or []),
            "resources": list(rule.get("resources") or []),
            "verbs": list(rule.get("verbs") or []),
        })
    return {"rules": rules}, {}


def _binding_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    role_ref = obj.spec.get("roleRef", {})
    return {
        "roleRef": {"apiGroup": RBAC_GROUP, "kind": role_ref.get("kind"), "name": role_ref.get("name")},
        "subjects": [
            {"apiGroup": RBAC_GROUP, "kind": subject.get("kind", "Group"), "name": subject.get("name")}
            for subject in obj.spec.get("subjects", [])
        ],
    }


def _binding_from_manifest(manifest: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    role_ref = manifest.get("roleRef") or {}
    return {
        "roleRef": {"kind": role_ref.get("kind"), "name": role_ref.get("name")},
        "subjects": [
            {"kind": subject.get("kind"), "name": subject.get("name")}
            for subject in manifest.get("subjects") or []
        ],
    }, {}


def _peer_to_manifest(rule: Dict[str, Any]) -> Dict[str, Any]:
    peer = rule.get("peer_namespace")
    if peer is None:
        return {"podSelector": {}}
    return {"namespaceSelector": {"matchLabels": {NAMESPACE_NAME_LABEL: peer}}}


def _policy_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    spec: Dict[str, Any] = {
        "podSelector": {},
        "policyTypes": list(obj.spec.get("policyTypes", [])),
    }
    for direction, peer_key in (("ingress", "from"), ("egress", "to")):
        entries = []
        for rule in obj.spec.get(direction, []):
            entry: Dict[str, Any] = {peer_key: [_peer_to_manifest(rule)]}
            protocol = rule.get("protocol", "TCP")
            if rule.get("port") is not None:
                entry["ports"] = [{"port": rule["port"], "protocol": protocol}]
            elif protocol != "TCP":
                # Every port of one protocol
                entry["ports"] = [{"protocol": protocol}]
            entries.append(entry)
        spec[direction] = entries
    return {"spec": spec}


def _policy_from_manifest(manifest: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    spec = manifest.get("spec") or {}
    result: Dict[str, Any] = {"policyTypes": list(spec.get("policyTypes") or [])}
    for direction, peer_key in (("ingress", "from"), ("egress", "to")):
        rules = []
        for entry in spec.get(direction) or []:
            peers = entry.get(peer_key) or [{}]
            ports = entry.get("ports") or [{}]
            for peer in peers:
                match_labels = (peer.get("namespaceSelector") or {}).get("matchLabels") or {}
                peer_namespace = match_labels.get(NAMESPACE_NAME_LABEL)
                for port in ports:
                    rules.append({
                        "peer_namespace": peer_namespace,
                        "port": port.get("port"),
                        "protocol": port.get("protocol", "TCP"),
                    })
        result[direction] = rules
    return result, {}


def _cluster_role_to_manifest(obj: ClusterObject) -> Dict[str, Any]:
    return _role_to_manifest(obj)


@dataclass(frozen=True)
class KindCodec:
    """How one object kind maps onto the Kubernetes API."""

    api_version: str
    manifest_kind: str
    api: str
    suffix: str
    list_all: str
    to_manifest: Callable[[ClusterObject], Dict[str, Any]]
    from_manifest: Callable[[Dict[str, Any]], Tuple[Dict[str, Any], Dict[str, Any]]]


KIND_CODECS: Dict[ObjectKind, KindCodec] = {
    ObjectKind.NAMESPACE: KindCodec(
        "v1", "Namespace", "core", "namespace", "list_namespace",
        _namespace_to_manifest, _namespace_from_manifest,
    ),
    ObjectKind.RESOURCE_QUOTA: KindCodec(
        "v1", "ResourceQuota", "core", "namespaced_resource_quota",
        "list_resource_quota_for_all_namespaces",
        _quota_to_manifest, _quota_from_manifest,
    ),
    ObjectKind.LIMIT_RANGE: KindCodec(
        "v1", "LimitRange", "core", "namespaced_limit_range",
        "list_limit_range_for_all_namespaces",
        _limit_range_to_manifest, _limit_range_from_manifest,
    ),
    ObjectKind.ROLE: KindCodec(
        f"{RBAC_GROUP}/v1", "Role", "rbac", "namespaced_role",
        "list_role_for_all_namespaces",
        _role_to_manifest, _role_from_manifest,
    ),
    ObjectKind.ROLE_BINDING: KindCodec(
        f"{RBAC_GROUP}/v1", "RoleBinding", "rbac", "namespaced_role_binding",
        "list_role_binding_for_all_namespaces",
        _binding_to_manifest, _binding_from_manifest,
    ),
    ObjectKind.NETWORK_POLICY: KindCodec(
        "networking.k8s.io/v1", "NetworkPolicy", "networking", "namespaced_network_policy",
        "list_network_policy_for_all_namespaces",
        _policy_to_manifest, _policy_from_manifest,
    ),
    ObjectKind.CLUSTER_ROLE: KindCodec(
        f"{RBAC_GROUP}/v1", "ClusterRole", "rbac", "cluster_role", "list_cluster_role",
        _cluster_role_to_manifest, _role_from_manifest,
    ),
}


def translate_api_exception(e: ApiException, ref: Optional[ObjectRef] = None, expected: Optional[int] = None) -> Exception:
    """Map an ApiException onto the controller's error taxonomy."""
    if e.status == 409:
        return ConflictError(ref, expected, None) if ref else ClusterError(str(e))
    if e.status == 404:
        return ClusterObjectNotFoundError(ref) if ref else ClusterError(str(e))
    if e.status in (410, 429) or (e.status or 0) >= 500:
        return TransientClusterError(f"Cluster API unavailable ({e.status}): {e.reason}")
    return ClusterError(f"Cluster API error ({e.status}): {e.reason}", details={"object": str(ref)})


class KubernetesCluster:
    """ClusterClient backed by a Kubernetes API server."""

    def __init__(
        self,
        api_client: Optional[client.ApiClient] = None,
        in_cluster: bool = False,
        context: Optional[str] = None,
        config_file: Optional[str] = None,
        watch_timeout_seconds: int = 300,
        watch_idle_timeout_seconds: float = 5.0,
    ):
        if api_client is None:
            if in_cluster:
                config.load_incluster_config()
            else:
                config.load_kube_config(config_file=config_file, context=context)
            api_client = client.ApiClient()
        self._api_client = api_client
        self._apis = {
            "core": client.CoreV1Api(api_client),
            "rbac": client.RbacAuthorizationV1Api(api_client),
            "networking": client.NetworkingV1Api(api_client),
        }
        self._watch_timeout = watch_timeout_seconds
        self._watch_idle_timeout = watch_idle_timeout_seconds

    # Helpers

    def _method(self, kind: ObjectKind, verb: str) -> Callable:
        codec = KIND_CODECS[kind]
        return getattr(self._apis[codec.api], f"{verb}_{codec.suffix}")

    def _scope_args(self, ref: ObjectRef) -> Dict[str, Any]:
        if ref.namespace is None:
            return {"name": ref.name}
        return {"name": ref.name, "namespace": ref.namespace}

    def _to_manifest(self, obj: ClusterObject, resource_version: Optional[int] = None) -> Dict[str, Any]:
        codec = KIND_CODECS[obj.kind]
        metadata: Dict[str, Any] = {"name": obj.name, "labels": dict(obj.labels)}
        if obj.namespace is not None:
            metadata["namespace"] = obj.namespace
        if resource_version is not None:
            metadata["resourceVersion"] = str(resource_version)
        manifest = {"apiVersion": codec.api_version, "kind": codec.manifest_kind, "metadata": metadata}
        manifest.update(codec.to_manifest(obj))
        return manifest

    def _from_response(self, kind: ObjectKind, response: Any) -> ClusterObject:
        manifest = response if isinstance(response, dict) else self._api_client.sanitize_for_serialization(response)
        return self.from_manifest(kind, manifest)

    @staticmethod
    def from_manifest(kind: ObjectKind, manifest: Dict[str, Any]) -> ClusterObject:
        metadata = manifest.get("metadata") or {}
        namespace = None if kind.is_cluster_scoped else metadata.get("namespace")
        spec, status = KIND_CODECS[kind].from_manifest(manifest)
        return ClusterObject(
            ref=ObjectRef(kind, namespace, metadata["name"]),
            spec=spec,
            labels=dict(metadata.get("labels") or {}),
            version=int(metadata.get("resourceVersion") or 0),
            status=status,
        )

    async def _call(self, fn: Callable, *args, ref: Optional[ObjectRef] = None, expected: Optional[int] = None, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ApiException as e:
            raise translate_api_exception(e, ref, expected)
        except (Urllib3HTTPError, OSError) as e:
            raise TransientClusterError(f"Cluster API unreachable: {e}")

    # ClusterClient

    async def list_objects(
        self,
        namespace: Optional[str] = None,
        kinds: Optional[Iterable[ObjectKind]] = None,
    ) -> List[ClusterObject]:
        result: List[ClusterObject] = []
        for kind in kinds or KIND_CODECS.keys():
            codec = KIND_CODECS[kind]
            api = self._apis[codec.api]
            if kind.is_cluster_scoped:
                if namespace is not None and kind != ObjectKind.NAMESPACE:
                    continue
                response = await self._call(getattr(api, codec.list_all))
                items = [self._from_response(kind, item) for item in response.items]
                if namespace is not None:
                    items = [item for item in items if item.name == namespace]
            elif namespace is None:
                response = await self._call(getattr(api, codec.list_all))
                items = [self._from_response(kind, item) for item in response.items]
            else:
                response = await self._call(getattr(api, f"list_{codec.suffix}"), namespace)
                items = [self._from_response(kind, item) for item in response.items]
            result.extend(items)
        return result

    async def get(self, ref: ObjectRef) -> Optional[ClusterObject]:
        try:
            response = await self._call(self._method(ref.kind, "read"), ref=ref, **self._scope_args(ref))
        except ClusterObjectNotFoundError:
            return None
        return self._from_response(ref.kind, response)

    async def apply(self, obj: ClusterObject, expected_version: Optional[int] = None) -> ClusterObject:
        ref = obj.ref
        if expected_version is None:
            live = await self.get(ref)
            if live is None:
                body = self._to_manifest(obj)
                create = self._method(ref.kind, "create")
                args = (body,) if ref.namespace is None else (ref.namespace, body)
                response = await self._call(create, *args, ref=ref)
                logger.info(f"Created {ref}")
                return self._from_response(ref.kind, response)
            expected_version = live.version

        body = self._to_manifest(obj, resource_version=expected_version)
        response = await self._call(
            self._method(ref.kind, "replace"),
            ref=ref,
            expected=expected_version,
            body=body,
            **self._scope_args(ref),
        )
        logger.info(f"Replaced {ref} (was version {expected_version})")
        return self._from_response(ref.kind, response)

    async def delete(self, ref: ObjectRef, expected_version: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"propagationPolicy": "Foreground"}
        if expected_version is not None:
            body["preconditions"] = {"resourceVersion": str(expected_version)}
        await self._call(
            self._method(ref.kind, "delete"),
            ref=ref,
            expected=expected_version,
            body=body,
            **self._scope_args(ref),
        )
        logger.info(f"Deleted {ref}")

    async def watch(self, since_version: int = 0) -> AsyncIterator[WatchEvent]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        stop = threading.Event()
        threads = []
        for kind in KIND_CODECS:
            thread = threading.Thread(
                target=self._stream_kind,
                args=(kind, since_version, queue, loop, stop),
                name=f"watch-{kind.value}",
                daemon=True,
            )
            thread.start()
            threads.append(thread)

        try:
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            stop.set()
            await asyncio.to_thread(self._join_watchers, threads)

    def _join_watchers(self, threads: List[threading.Thread]) -> None:
        # An idle stream notices the stop flag within one read timeout
        deadline = self._watch_idle_timeout + 1
        for thread in threads:
            thread.join(timeout=deadline)
            if thread.is_alive():
                logger.warning(f"Watch thread {thread.name} did not stop within {deadline}s")

    def _stream_kind(self, kind: ObjectKind, since_version: int, queue: asyncio.Queue, loop, stop: threading.Event) -> None:
        codec = KIND_CODECS[kind]
        list_fn = getattr(self._apis[codec.api], codec.list_all)
        resource_version = str(since_version) if since_version else None

        def forward(item: Any) -> None:
            if not stop.is_set():
                loop.call_soon_threadsafe(queue.put_nowait, item)

        while not stop.is_set():
            watcher = watch.Watch()
            kwargs: Dict[str, Any] = {
                "timeout_seconds": self._watch_timeout,
                "_request_timeout": (self._watch_idle_timeout, self._watch_idle_timeout),
            }
            if resource_version:
                kwargs["resource_version"] = resource_version
            try:
                for raw in watcher.stream(list_fn, **kwargs):
                    if stop.is_set():
                        watcher.stop()
                        return
                    event_type = raw.get("type")
                    if event_type == "ERROR":
                        forward(TransientClusterError(f"Watch error for {kind.value}: {raw.get('raw_object')}"))
                        return
                    if event_type not in ("ADDED", "MODIFIED", "DELETED"):
                        continue
                    obj = self.from_manifest(kind, raw["raw_object"])
                    if obj.version:
                        resource_version = str(obj.version)
                    forward(WatchEvent(WatchEventType(event_type), obj))
            except ReadTimeoutError:
                # Quiet stream; resume from the last seen version
                continue
            except ApiException as e:
                forward(translate_api_exception(e))
                return
            except (Urllib3HTTPError, OSError) as e:
                forward(TransientClusterError(f"Watch for {kind.value} failed: {e}"))
                return
            break

        if not stop.is_set():
            forward(TransientClusterError(f"Watch for {kind.value} ended"))
