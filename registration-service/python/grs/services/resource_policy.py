"""
Translation of the service-level resource allow/deny lists into AppProject fields.

An allow-list becomes the cluster and namespace whitelists (Argo CD blocks every
kind not listed), a deny-list becomes the blacklists. Kinds are not checked
against the cluster, many of them are custom resources unknown to this service.
"""

import logging

from grs.core.errors import ConfigurationError
from grs.core.service_config import SecurityConfig
from grs.models import ResourceRestriction, ResourceRestrictionPolicy

logger = logging.getLogger(__name__)

CLUSTER_WHITELIST = "clusterResourceWhitelist"
NAMESPACE_WHITELIST = "namespaceResourceWhitelist"
CLUSTER_BLACKLIST = "clusterResourceBlacklist"
NAMESPACE_BLACKLIST = "namespaceResourceBlacklist"


def _check_entries(list_name: str, entries: tuple[ResourceRestriction, ...]) -> None:
    for index, entry in enumerate(entries):
        if not entry.kind:
            raise ConfigurationError(f"{list_name}[{index}]: kind is required")


def build_policy(security: SecurityConfig) -> ResourceRestrictionPolicy:
    """
    Build the resource restriction policy from the security configuration.

    Args:
        security: The security section of the service configuration

    Returns:
        The policy; unrestricted when both lists are empty

    Raises:
        ConfigurationError: If both lists are set or an entry has no kind
    """
    if security.resource_allow_list and security.resource_deny_list:
        raise ConfigurationError("cannot specify both resourceAllowList and resourceDenyList; provide only one")
    _check_entries("resourceAllowList", security.resource_allow_list)
    _check_entries("resourceDenyList", security.resource_deny_list)

    return ResourceRestrictionPolicy(allow_list=security.resource_allow_list, deny_list=security.resource_deny_list)


def to_project_fields(policy: ResourceRestrictionPolicy) -> dict[str, list[dict[str, str]]]:
    """
    Convert a policy into AppProject spec fields.

    Returns:
        A mapping of AppProject spec field name to resource entries. Empty for an
        unrestricted policy, so the project keeps Argo CD's default behaviour.

    Example:
        allow-list [apps/Deployment] ->
        {"clusterResourceWhitelist": [{"group": "apps", "kind": "Deployment"}],
         "namespaceResourceWhitelist": [{"group": "apps", "kind": "Deployment"}]}
    """
    if policy.allow_list:
        entries = [{"group": entry.group, "kind": entry.kind} for entry in policy.allow_list]
        return {CLUSTER_WHITELIST: entries, NAMESPACE_WHITELIST: list(entries)}

    if policy.deny_list:
        entries = [{"group": entry.group, "kind": entry.kind} for entry in policy.deny_list]
        return {CLUSTER_BLACKLIST: entries, NAMESPACE_BLACKLIST: list(entries)}

    return {}
