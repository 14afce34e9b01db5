"""
Impersonation: Argo CD syncs a tenant's manifests as a scoped service account.

For every registration a service account with a server-generated name is
created in the tenant namespace and bound to the configured ClusterRole by a
namespace scoped RoleBinding. The ClusterRole is checked at startup with a set
of heuristics; findings are warnings, only a missing role is fatal.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from grs.connectors.protocols import ClusterClient
from grs.core.errors import ConfigurationError
from grs.core.labels import IMPERSONATION_PURPOSE, PURPOSE_LABEL, TENANT_LABEL, managed_by_labels
from grs.core.service_config import ImpersonationConfig
from grs.utils.naming import role_binding_name

logger = logging.getLogger(__name__)

CLUSTER_ADMIN_EQUIVALENT = "cluster-admin-equivalent"
NAMESPACE_SPANNING = "namespace-spanning"
CLUSTER_SCOPED_WRITE = "cluster-scoped-write"
PRIVILEGE_ESCALATION = "privilege-escalation"
NON_RESOURCE_URLS = "non-resource-urls"

CLUSTER_SCOPED_RESOURCES = ("nodes", "namespaces", "clusterroles", "clusterrolebindings", "persistentvolumes")
MODIFYING_VERBS = ("create", "update", "delete", "patch")
ESCALATION_VERBS = ("escalate", "bind", "impersonate")


@dataclass(frozen=True)
class ValidationFinding:
    code: str
    message: str
    rule_index: int


@dataclass
class ClusterRoleValidation:
    name: str
    exists: bool = False
    findings: list[ValidationFinding] = field(default_factory=list)
    resource_types: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [finding.message for finding in self.findings]

    def has(self, code: str) -> bool:
        return any(finding.code == code for finding in self.findings)

    def to_dict(self) -> dict[str, Any]:
        return {"clusterRole": self.name, "exists": self.exists, "warnings": self.warnings}


def _contains(values: list[str], wanted: str) -> bool:
    """``*`` in an RBAC list matches every value."""
    return wanted in values or "*" in values


def analyze_cluster_role(role: dict[str, Any]) -> ClusterRoleValidation:
    """
    Run the permissiveness heuristics over a ClusterRole.

    This is a pure function over the role object; it never raises for a
    permissive role, it reports findings.

    Args:
        role: The ClusterRole object as returned by the API server

    Returns:
        ClusterRoleValidation with ``exists`` set and one finding per issue
    """
    name = (role.get("metadata") or {}).get("name", "")
    validation = ClusterRoleValidation(name=name, exists=True)

    for index, rule in enumerate(role.get("rules") or []):
        verbs = rule.get("verbs") or []
        resources = rule.get("resources") or []
        validation.resource_types.extend(resources)

        if "*" in verbs and "*" in resources:
            validation.findings.append(
                ValidationFinding(
                    CLUSTER_ADMIN_EQUIVALENT, "ClusterRole has cluster-admin level permissions (*/* resources)", index
                )
            )

        if _contains(verbs, "list") or _contains(verbs, "watch"):
            if "namespaces" in resources or "*" in resources:
                validation.findings.append(
                    ValidationFinding(NAMESPACE_SPANNING, "ClusterRole can list/watch across namespaces", index)
                )

        if any(_contains(verbs, verb) for verb in MODIFYING_VERBS):
            for resource in resources:
                if resource in CLUSTER_SCOPED_RESOURCES or resource == "*":
                    validation.findings.append(
                        ValidationFinding(
                            CLUSTER_SCOPED_WRITE, f"ClusterRole can modify cluster-scoped resource: {resource}", index
                        )
                    )

        escalation = [verb for verb in ESCALATION_VERBS if verb in verbs]
        if escalation:
            validation.findings.append(
                ValidationFinding(
                    PRIVILEGE_ESCALATION,
                    f"ClusterRole grants privilege escalation verbs: {', '.join(escalation)}",
                    index,
                )
            )

        if rule.get("nonResourceURLs"):
            validation.findings.append(
                ValidationFinding(NON_RESOURCE_URLS, "ClusterRole grants access to non-resource URLs", index)
            )

    return validation


class ImpersonationValidator:
    """Validates the impersonation ClusterRole and creates per-tenant bindings."""

    def __init__(self, cluster: ClusterClient, config: ImpersonationConfig):
        self.cluster = cluster
        self.config = config
        # Findings of the last startup validation, reported by the readiness probe
        self.startup_validation: ClusterRoleValidation | None = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def validate_cluster_role(self, name: str) -> ClusterRoleValidation:
        """
        Fetch and analyze a ClusterRole.

        Returns:
            The validation; ``exists`` is False when the role is missing
        """
        role = await self.cluster.get_cluster_role(name)
        if role is None:
            return ClusterRoleValidation(name=name, exists=False)
        return analyze_cluster_role(role)

    async def validate_at_startup(self) -> ClusterRoleValidation | None:
        """
        Validate the configured ClusterRole before the service starts serving.

        Returns:
            The validation, or None when impersonation is disabled

        Raises:
            ConfigurationError: If impersonation is enabled and the role does not exist
        """
        if not self.config.enabled:
            logger.info("Impersonation disabled - skipping ClusterRole validation")
            return None

        role_name = self.config.cluster_role
        logger.info(f"Validating impersonation ClusterRole {role_name}")
        validation = await self.validate_cluster_role(role_name)

        if not validation.exists:
            raise ConfigurationError(f"impersonation ClusterRole {role_name} does not exist")

        for warning in validation.warnings:
            logger.warning(f"Impersonation ClusterRole {role_name}: {warning}")
        if not validation.findings:
            logger.info(f"Impersonation ClusterRole {role_name} passed all permission checks")

        self.startup_validation = validation
        return validation

    async def ensure_cluster_role_exists(self) -> None:
        """Re-check at registration time that the ClusterRole is still present."""
        if not self.config.validate_permissions:
            return
        if await self.cluster.get_cluster_role(self.config.cluster_role) is None:
            raise ConfigurationError(f"impersonation ClusterRole {self.config.cluster_role} does not exist")

    async def create_binding(self, namespace: str, cluster_role: str | None = None) -> str:
        """
        Create the impersonation service account and its role binding.

        Call once per registration; the server-generated name keeps tenants apart.
        If the binding cannot be created, the service account is removed again
        before the error propagates.

        Args:
            namespace: Tenant namespace
            cluster_role: ClusterRole to bind (defaults to the configured one)

        Returns:
            The generated service account name
        """
        cluster_role = cluster_role or self.config.cluster_role
        labels = {**managed_by_labels(), PURPOSE_LABEL: IMPERSONATION_PURPOSE, TENANT_LABEL: namespace}

        service_account = await self.cluster.create_service_account_with_generated_name(
            namespace, self.config.service_account_base_name, labels
        )
        logger.info(f"Created impersonation service account {service_account} in namespace {namespace}")

        try:
            await self.cluster.create_role_binding_for_service_account(
                namespace, role_binding_name(service_account), service_account, cluster_role, labels
            )
        except Exception:
            logger.error(
                f"Failed to bind ClusterRole {cluster_role} in namespace {namespace}, removing service account"
            )
            try:
                await self.cluster.delete_resource("serviceaccount", service_account, namespace)
            except Exception as cleanup_error:
                logger.error(
                    f"Manual cleanup required: service account {service_account} "
                    f"in namespace {namespace}: {cleanup_error}"
                )
            raise

        logger.info(f"Bound ClusterRole {cluster_role} to {service_account} in namespace {namespace}")
        return service_account

    async def delete_binding(self, namespace: str, service_account: str) -> None:
        """Remove the role binding and the service account; missing objects are ignored."""
        await self.cluster.delete_resource("rolebinding", role_binding_name(service_account), namespace)
        await self.cluster.delete_resource("serviceaccount", service_account, namespace)
        logger.info(f"Removed impersonation service account {service_account} from namespace {namespace}")
