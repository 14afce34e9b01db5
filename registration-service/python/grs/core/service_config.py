"""
Service configuration: tenant policy, security, capacity and authorization settings.

The configuration is loaded once at startup from the YAML file pointed to by
``CONFIG_PATH``, then environment overrides are applied and the result is
validated. The resulting models are frozen and passed by reference to every
component that needs them.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from grs.core.errors import ConfigurationError
from grs.models import ResourceRestriction

logger = logging.getLogger(__name__)


class _FrozenConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")


class ArgoCDConfig(_FrozenConfig):
    namespace: str = "argocd"


class KubernetesConfig(_FrozenConfig):
    namespace: str = "gitops-registration-system"


class ImpersonationConfig(_FrozenConfig):
    enabled: bool = False
    cluster_role: str = ""
    service_account_base_name: str = "gitops-sa"
    validate_permissions: bool = True
    auto_cleanup: bool = True


class SecurityConfig(_FrozenConfig):
    resource_allow_list: tuple[ResourceRestriction, ...] = ()
    resource_deny_list: tuple[ResourceRestriction, ...] = ()
    impersonation: ImpersonationConfig = ImpersonationConfig()


class RegistrationConfig(_FrozenConfig):
    allow_new_namespaces: bool = True


class AuthorizationConfig(_FrozenConfig):
    required_role: str = "konflux-admin-user-actions"
    enable_subject_access_review: bool = True
    audit_failed_attempts: bool = True
    admin_users: tuple[str, ...] = ()
    admin_groups: tuple[str, ...] = ("system:masters",)


class TenantsConfig(_FrozenConfig):
    namespace_prefix: str = ""


class CapacityLimits(_FrozenConfig):
    max_namespaces: int = 100
    emergency_threshold: float = 0.9


class CapacityConfig(_FrozenConfig):
    enabled: bool = False
    limits: CapacityLimits = CapacityLimits()
    emergency_bypass: bool = False
    admin_override_users: tuple[str, ...] = ()
    admin_override_groups: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_limits(self) -> "CapacityConfig":
        if not self.enabled:
            return self
        if self.limits.max_namespaces <= 0:
            raise ValueError("capacity.limits.maxNamespaces must be greater than 0 when capacity is enabled")
        if not 0 < self.limits.emergency_threshold <= 1:
            raise ValueError("capacity.limits.emergencyThreshold must be in (0, 1] when capacity is enabled")
        return self


class ServiceConfig(_FrozenConfig):
    argocd: ArgoCDConfig = ArgoCDConfig()
    kubernetes: KubernetesConfig = KubernetesConfig()
    security: SecurityConfig = SecurityConfig()
    registration: RegistrationConfig = RegistrationConfig()
    authorization: AuthorizationConfig = AuthorizationConfig()
    tenants: TenantsConfig = TenantsConfig()
    capacity: CapacityConfig = CapacityConfig()

    @model_validator(mode="after")
    def _check_impersonation(self) -> "ServiceConfig":
        impersonation = self.security.impersonation
        if not impersonation.enabled:
            return self
        if not impersonation.cluster_role:
            raise ValueError("impersonation.clusterRole must be set when impersonation is enabled")
        if not impersonation.service_account_base_name:
            raise ValueError("impersonation.serviceAccountBaseName cannot be empty")
        return self


def _parse_bool(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in ("1", "t", "true", "yes", "on"):
        return True
    if lowered in ("0", "f", "false", "no", "off"):
        return False
    return None


def _read_config_file(config_path: str) -> dict[str, Any]:
    """
    Read the YAML service configuration file.

    Args:
        config_path: Path to a .yaml or .yml file

    Returns:
        The parsed document as a plain dictionary (empty for an empty file)

    Raises:
        ConfigurationError: If the path is rejected, the file cannot be read or is not a YAML mapping
    """
    path = PurePath(os.path.normpath(config_path))

    if ".." in path.parts:
        raise ConfigurationError(f"config path contains directory traversal: {config_path}")

    if path.suffix not in (".yaml", ".yml"):
        raise ConfigurationError(f"config file must be a YAML file (.yaml or .yml): {config_path}")

    yaml = YAML(typ="safe")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.load(f)
    except OSError as e:
        raise ConfigurationError(f"failed to read config file {config_path}: {e}") from e
    except YAMLError as e:
        raise ConfigurationError(f"failed to parse config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {config_path} must contain a mapping at the top level")
    return data


def _apply_environment_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> None:
    """Apply environment variable overrides on top of the file configuration, in place."""
    if value := environ.get("ARGOCD_NAMESPACE"):
        data.setdefault("argocd", {})["namespace"] = value

    if value := environ.get("KUBERNETES_NAMESPACE"):
        data.setdefault("kubernetes", {})["namespace"] = value

    if value := environ.get("ALLOW_NEW_NAMESPACES"):
        allowed = _parse_bool(value)
        if allowed is None:
            logger.warning(f"Ignoring invalid ALLOW_NEW_NAMESPACES value: {value}")
        else:
            data.setdefault("registration", {})["allowNewNamespaces"] = allowed

    if value := environ.get("AUTHORIZATION_REQUIRED_ROLE"):
        data.setdefault("authorization", {})["requiredRole"] = value


def load_service_config(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> ServiceConfig:
    """
    Load and validate the service configuration.

    Order: built-in defaults, then the YAML file (if any), then environment
    overrides, then validation.

    Args:
        config_path: Optional path to the YAML configuration file
        environ: Environment to read overrides from (defaults to os.environ)

    Returns:
        The frozen ServiceConfig

    Raises:
        ConfigurationError: If the file or the resulting configuration is invalid
    """
    data: dict[str, Any] = {}
    if config_path:
        logger.info(f"Loading service configuration from {config_path}")
        data = _read_config_file(config_path)

    _apply_environment_overrides(data, os.environ if environ is None else environ)

    try:
        config = ServiceConfig.model_validate(data)
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        raise ConfigurationError(f"invalid service configuration: {messages}") from e

    from grs.services.resource_policy import build_policy

    policy = build_policy(config.security)
    if policy.allow_list:
        logger.info(f"Resource allow-list configured with {len(policy.allow_list)} entries")
    elif policy.deny_list:
        logger.info(f"Resource deny-list configured with {len(policy.deny_list)} entries")
    else:
        logger.info("No resource restrictions configured - tenants may deploy any resource type")

    if config.security.impersonation.enabled:
        logger.info(f"Impersonation enabled with cluster role {config.security.impersonation.cluster_role}")

    return config
