"""
Tests for loading and validating the service configuration.
"""

import pytest
from pydantic import ValidationError

from grs.core.errors import ConfigurationError
from grs.core.service_config import load_service_config


def write_config(tmp_path, content: str, name: str = "config.yaml") -> str:
    path = tmp_path / name
    path.write_text(content)
    return str(path)


def test_defaults_without_file():
    config = load_service_config(None, environ={})

    assert config.argocd.namespace == "argocd"
    assert config.registration.allow_new_namespaces is True
    assert config.security.impersonation.enabled is False
    assert config.capacity.enabled is False
    assert config.authorization.required_role == "konflux-admin-user-actions"


def test_load_full_file(tmp_path):
    path = write_config(
        tmp_path,
        """
argocd:
  namespace: gitops
security:
  resourceAllowList:
    - group: apps
      kind: Deployment
    - group: ""
      kind: Service
  impersonation:
    enabled: true
    clusterRole: tenant-deployer
    serviceAccountBaseName: tenant-sa
tenants:
  namespacePrefix: tenant-
capacity:
  enabled: true
  limits:
    maxNamespaces: 50
    emergencyThreshold: 0.75
  adminOverrideGroups:
    - platform-admins
""",
    )

    config = load_service_config(path, environ={})

    assert config.argocd.namespace == "gitops"
    assert [entry.kind for entry in config.security.resource_allow_list] == ["Deployment", "Service"]
    assert config.security.impersonation.cluster_role == "tenant-deployer"
    assert config.security.impersonation.service_account_base_name == "tenant-sa"
    assert config.tenants.namespace_prefix == "tenant-"
    assert config.capacity.limits.max_namespaces == 50
    assert config.capacity.admin_override_groups == ("platform-admins",)


def test_environment_overrides_file(tmp_path):
    path = write_config(tmp_path, "argocd:\n  namespace: gitops\nregistration:\n  allowNewNamespaces: true\n")

    config = load_service_config(
        path,
        environ={
            "ARGOCD_NAMESPACE": "argo",
            "ALLOW_NEW_NAMESPACES": "false",
            "AUTHORIZATION_REQUIRED_ROLE": "namespace-admin",
        },
    )

    assert config.argocd.namespace == "argo"
    assert config.registration.allow_new_namespaces is False
    assert config.authorization.required_role == "namespace-admin"


def test_invalid_boolean_override_is_ignored():
    config = load_service_config(None, environ={"ALLOW_NEW_NAMESPACES": "maybe"})

    assert config.registration.allow_new_namespaces is True


def test_allow_and_deny_list_are_exclusive(tmp_path):
    path = write_config(
        tmp_path,
        """
security:
  resourceAllowList:
    - kind: Deployment
  resourceDenyList:
    - kind: Secret
""",
    )

    with pytest.raises(ConfigurationError, match="cannot specify both resourceAllowList and resourceDenyList"):
        load_service_config(path, environ={})


def test_restriction_requires_kind(tmp_path):
    path = write_config(tmp_path, "security:\n  resourceDenyList:\n    - group: apps\n")

    with pytest.raises(ConfigurationError, match=r"resourceDenyList\[0\]: kind is required"):
        load_service_config(path, environ={})


def test_impersonation_requires_cluster_role(tmp_path):
    path = write_config(tmp_path, "security:\n  impersonation:\n    enabled: true\n")

    with pytest.raises(ConfigurationError, match="clusterRole must be set"):
        load_service_config(path, environ={})


def test_impersonation_requires_base_name(tmp_path):
    path = write_config(
        tmp_path,
        "security:\n  impersonation:\n    enabled: true\n    clusterRole: x\n    serviceAccountBaseName: ''\n",
    )

    with pytest.raises(ConfigurationError, match="serviceAccountBaseName cannot be empty"):
        load_service_config(path, environ={})


@pytest.mark.parametrize(
    "limits",
    ["maxNamespaces: 0\n    emergencyThreshold: 0.5", "maxNamespaces: 10\n    emergencyThreshold: 1.5"],
)
def test_capacity_limits_are_validated_when_enabled(tmp_path, limits):
    path = write_config(tmp_path, f"capacity:\n  enabled: true\n  limits:\n    {limits}\n")

    with pytest.raises(ConfigurationError):
        load_service_config(path, environ={})


def test_capacity_limits_are_not_validated_when_disabled(tmp_path):
    path = write_config(tmp_path, "capacity:\n  enabled: false\n  limits:\n    maxNamespaces: 0\n")

    config = load_service_config(path, environ={})

    assert config.capacity.enabled is False


@pytest.mark.parametrize("path", ["../etc/config.yaml", "/etc/config/../../secret.yaml", "config.json"])
def test_config_path_is_restricted(path):
    with pytest.raises(ConfigurationError):
        load_service_config(path, environ={})


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="failed to read config file"):
        load_service_config(str(tmp_path / "missing.yaml"), environ={})


def test_malformed_yaml(tmp_path):
    path = write_config(tmp_path, "argocd: [unclosed\n")

    with pytest.raises(ConfigurationError, match="failed to parse config file"):
        load_service_config(path, environ={})


def test_top_level_must_be_mapping(tmp_path):
    path = write_config(tmp_path, "- just\n- a list\n")

    with pytest.raises(ConfigurationError, match="must contain a mapping"):
        load_service_config(path, environ={})


def test_config_is_frozen():
    config = load_service_config(None, environ={})

    with pytest.raises(ValidationError):
        config.argocd.namespace = "other"
