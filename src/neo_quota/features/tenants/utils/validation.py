"""Tenant validation rules.

Centralized invariants every TenantSpec must satisfy before it is accepted
by the registry. Each rule raises ValidationError naming the rule.
"""

import re
from typing import List, Tuple

from ....config.constants import ALLOWED_VERBS, RESERVED_PREFIX, ObjectNames
from ....core.exceptions import ValidationError
from ....core.value_objects import is_valid_quantity, parse_quantity
from ..entities.tenant_spec import TenantSpec


class TenantValidationRules:
    """Centralized tenant validation rules."""

    # DNS-1123 label, the namespace name format
    IDENTIFIER_PATTERN = re.compile(r'^[a-z0-9]([a-z0-9-]*[a-z0-9])?$')
    MAX_IDENTIFIER_LENGTH = 63
    # DNS-1123 subdomain, the format of generated object names
    OBJECT_NAME_PATTERN = re.compile(r'^[a-z0-9]([a-z0-9.-]*[a-z0-9])?$')
    MAX_OBJECT_NAME_LENGTH = 253
    MAX_DESCRIPTION_LENGTH = 500

    RULE_IDENTIFIER = "identifier format"
    RULE_RESERVED_PREFIX = "reserved prefix"
    RULE_QUOTA_ORDERING = "quota ordering"
    RULE_QUANTITY = "quantity format"
    RULE_POD_LIMIT = "pod limit"
    RULE_RBAC = "rbac rule"
    RULE_NETWORK = "network rule"
    RULE_BINDING = "role binding"
    RULE_DESCRIPTION = "description length"

    @classmethod
    def validate_identifier(cls, identifier: str) -> None:
        if not identifier or len(identifier) > cls.MAX_IDENTIFIER_LENGTH:
            raise ValidationError(
                cls.RULE_IDENTIFIER,
                f"Identifier must be 1-{cls.MAX_IDENTIFIER_LENGTH} characters",
                details={"identifier": identifier},
            )
        if not cls.IDENTIFIER_PATTERN.match(identifier):
            raise ValidationError(
                cls.RULE_IDENTIFIER,
                "Identifier must contain only lowercase letters, digits and hyphens, "
                "and start and end with an alphanumeric character",
                details={"identifier": identifier},
            )

    @classmethod
    def validate_reserved_prefix(cls, identifier: str, reserved_prefix: str = RESERVED_PREFIX) -> None:
        if identifier.startswith(reserved_prefix):
            raise ValidationError(
                cls.RULE_RESERVED_PREFIX,
                f"Identifier '{identifier}' uses the reserved prefix '{reserved_prefix}'",
                details={"identifier": identifier, "prefix": reserved_prefix},
            )

    @classmethod
    def validate_quota(cls, spec: TenantSpec) -> None:
        quota = spec.quota
        for field_name in ("cpu_limit", "mem_limit", "cpu_request", "mem_request"):
            value = getattr(quota, field_name)
            if not is_valid_quantity(value) or parse_quantity(value) < 0:
                raise ValidationError(
                    cls.RULE_QUANTITY,
                    f"Quota field '{field_name}' has invalid quantity {value!r}",
                    details={"field": field_name, "value": value},
                )

        if quota.pod_limit < 0:
            raise ValidationError(
                cls.RULE_POD_LIMIT,
                "Pod limit must be non-negative",
                details={"pod_limit": quota.pod_limit},
            )

        if quota.cpu_request_value > quota.cpu_limit_value:
            raise ValidationError(
                cls.RULE_QUOTA_ORDERING,
                f"cpuRequest {quota.cpu_request} exceeds cpuLimit {quota.cpu_limit}",
                details={"cpu_request": quota.cpu_request, "cpu_limit": quota.cpu_limit},
            )
        if quota.mem_request_value > quota.mem_limit_value:
            raise ValidationError(
                cls.RULE_QUOTA_ORDERING,
                f"memRequest {quota.mem_request} exceeds memLimit {quota.mem_limit}",
                details={"mem_request": quota.mem_request, "mem_limit": quota.mem_limit},
            )

    @classmethod
    def validate_limit_range(cls, spec: TenantSpec) -> None:
        limit_range = spec.limit_range
        if limit_range is None:
            return
        for field_name, value in limit_range.to_dict().items():
            if not is_valid_quantity(value):
                raise ValidationError(
                    cls.RULE_QUANTITY,
                    f"Limit range field '{field_name}' has invalid quantity {value!r}",
                    details={"field": field_name, "value": value},
                )
        if parse_quantity(limit_range.default_request_cpu) > parse_quantity(limit_range.default_cpu):
            raise ValidationError(cls.RULE_QUOTA_ORDERING, "Default CPU request exceeds default CPU limit")
        if parse_quantity(limit_range.default_request_memory) > parse_quantity(limit_range.default_memory):
            raise ValidationError(cls.RULE_QUOTA_ORDERING, "Default memory request exceeds default memory limit")

    @classmethod
    def validate_rbac_rules(cls, spec: TenantSpec) -> None:
        for rule in spec.rbac_rules:
            if not rule.resources or not rule.verbs:
                raise ValidationError(cls.RULE_RBAC, "RBAC rules need at least one resource and one verb")
            unknown = rule.verbs - ALLOWED_VERBS
            if unknown:
                raise ValidationError(
                    cls.RULE_RBAC,
                    f"Unknown verbs: {', '.join(sorted(unknown))}",
                    details={"verbs": sorted(unknown)},
                )
        if spec.rbac_rules and not spec.role_subjects:
            raise ValidationError(cls.RULE_RBAC, "RBAC rules require at least one role subject")

    @classmethod
    def validate_role_bindings(cls, spec: TenantSpec) -> None:
        """Subjects and shared cluster roles must yield valid RoleBinding objects."""
        for subject in spec.role_subjects:
            if not subject or subject != subject.strip():
                raise ValidationError(
                    cls.RULE_BINDING,
                    f"Invalid role subject {subject!r}",
                    details={"subject": subject},
                )
        for cluster_role in spec.shared_cluster_roles:
            name = ObjectNames.SHARED_ROLE_BINDING.format(tenant=spec.identifier, cluster_role=cluster_role)
            if (
                not cluster_role
                or len(name) > cls.MAX_OBJECT_NAME_LENGTH
                or not cls.OBJECT_NAME_PATTERN.match(name)
            ):
                raise ValidationError(
                    cls.RULE_BINDING,
                    f"Shared cluster role {cluster_role!r} yields invalid RoleBinding name {name!r}",
                    details={"cluster_role": cluster_role, "binding": name},
                )

    @classmethod
    def validate_network_rules(cls, spec: TenantSpec) -> None:
        for rule in spec.network_rules:
            if rule.direction not in ("ingress", "egress"):
                raise ValidationError(
                    cls.RULE_NETWORK,
                    f"Network rule direction must be ingress or egress, got {rule.direction!r}",
                )
            if rule.port is not None and not 0 < rule.port < 65536:
                raise ValidationError(cls.RULE_NETWORK, f"Invalid port {rule.port}")
            if rule.protocol not in ("TCP", "UDP", "SCTP"):
                raise ValidationError(cls.RULE_NETWORK, f"Invalid protocol {rule.protocol!r}")
            if rule.peer_namespace is not None and not cls.IDENTIFIER_PATTERN.match(rule.peer_namespace):
                raise ValidationError(cls.RULE_NETWORK, f"Invalid peer namespace {rule.peer_namespace!r}")

    @classmethod
    def validate_all(cls, spec: TenantSpec, reserved_prefix: str = RESERVED_PREFIX) -> None:
        """Run every rule; the first violation raises."""
        cls.validate_identifier(spec.identifier)
        cls.validate_reserved_prefix(spec.identifier, reserved_prefix)
        if len(spec.description) > cls.MAX_DESCRIPTION_LENGTH:
            raise ValidationError(cls.RULE_DESCRIPTION, "Description is too long")
        cls.validate_quota(spec)
        cls.validate_limit_range(spec)
        cls.validate_rbac_rules(spec)
        cls.validate_role_bindings(spec)
        cls.validate_network_rules(spec)

    @classmethod
    def collect_violations(cls, spec: TenantSpec, reserved_prefix: str = RESERVED_PREFIX) -> List[Tuple[str, str]]:
        """Return every (rule, message) violation instead of stopping at the first."""
        violations = []
        checks = [
            lambda: cls.validate_identifier(spec.identifier),
            lambda: cls.validate_reserved_prefix(spec.identifier, reserved_prefix),
            lambda: cls.validate_quota(spec),
            lambda: cls.validate_limit_range(spec),
            lambda: cls.validate_rbac_rules(spec),
            lambda: cls.validate_role_bindings(spec),
            lambda: cls.validate_network_rules(spec),
        ]
        for check in checks:
            try:
                check()
            except ValidationError as e:
                violations.append((e.rule, e.message))
        return violations
