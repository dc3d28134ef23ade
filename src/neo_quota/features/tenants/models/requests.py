"""Tenant request models for API endpoints."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..entities.tenant_spec import LimitRangeSpec, NetworkRule, QuotaSpec, RbacRule, TenantSpec


class QuotaRequest(BaseModel):
    """Aggregate resource ceilings for the tenant namespace."""

    cpu_limit: str = Field(..., description="CPU limit, e.g. '4' or '3500m'")
    mem_limit: str = Field(..., description="Memory limit, e.g. '8Gi'")
    cpu_request: str = Field(..., description="CPU request ceiling")
    mem_request: str = Field(..., description="Memory request ceiling")
    pod_limit: int = Field(..., description="Maximum number of pods")


class LimitRangeRequest(BaseModel):
    """Default container requests and limits."""

    default_cpu: str
    default_memory: str
    default_request_cpu: str
    default_request_memory: str


class RbacRuleRequest(BaseModel):
    api_groups: List[str] = Field(default_factory=lambda: [""])
    resources: List[str] = Field(default_factory=list)
    verbs: List[str] = Field(default_factory=list)


class NetworkRuleRequest(BaseModel):
    direction: str = Field(default="ingress", description="ingress or egress")
    peer_namespace: Optional[str] = Field(None, description="Peer namespace, own namespace when omitted")
    port: Optional[int] = None
    protocol: str = Field(default="TCP")


class TenantSpecRequest(BaseModel):
    """Request body for registering or replacing a tenant spec.

    Only shape is checked here; the registry's admission rules (identifier
    format, reserved prefix, quota ordering) are applied by the service so
    the violated rule is reported by name.
    """

    description: str = Field(default="", max_length=500)
    quota: QuotaRequest
    limit_range: Optional[LimitRangeRequest] = None
    rbac_rules: List[RbacRuleRequest] = Field(default_factory=list)
    role_subjects: List[str] = Field(default_factory=list)
    shared_cluster_roles: List[str] = Field(default_factory=list)
    network_rules: List[NetworkRuleRequest] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "description": "Team A workloads",
                "quota": {
                    "cpu_limit": "4",
                    "mem_limit": "8Gi",
                    "cpu_request": "2",
                    "mem_request": "4Gi",
                    "pod_limit": 20,
                },
                "role_subjects": ["team-a-devs"],
                "rbac_rules": [{"api_groups": ["", "apps"], "resources": ["pods", "deployments"], "verbs": ["get", "list", "create"]}],
            }
        }
    }

    def to_entity(self, identifier: str) -> TenantSpec:
        return TenantSpec(
            identifier=identifier,
            description=self.description,
            quota=QuotaSpec(**self.quota.model_dump()),
            limit_range=LimitRangeSpec(**self.limit_range.model_dump()) if self.limit_range else None,
            rbac_rules=frozenset(RbacRule(**rule.model_dump()) for rule in self.rbac_rules),
            role_subjects=tuple(self.role_subjects),
            shared_cluster_roles=tuple(self.shared_cluster_roles),
            network_rules=frozenset(NetworkRule(**rule.model_dump()) for rule in self.network_rules),
            labels=dict(self.labels),
        )
