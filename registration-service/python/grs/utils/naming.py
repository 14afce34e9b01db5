"""
Naming utilities for the Kubernetes and Argo CD objects created per registration.

All objects of one registration derive their names from the tenant namespace,
so a name collision on any of them means the namespace is already taken.
"""

import re

# RFC 1123 label, which is what Kubernetes requires for namespace names
_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
MAX_NAMESPACE_LENGTH = 63

# Label values: max 63 chars, alphanumeric at both ends, [-_.] allowed inside
_LABEL_VALUE_INVALID = re.compile(r"[^A-Za-z0-9_.-]")


def validate_namespace_name(namespace: str) -> str | None:
    """
    Validate a namespace name against the Kubernetes naming rules.

    Args:
        namespace: The requested namespace name

    Returns:
        None if the name is valid, otherwise a human readable reason
    """
    if not namespace:
        return "namespace is required"
    if len(namespace) > MAX_NAMESPACE_LENGTH:
        return f"namespace must be at most {MAX_NAMESPACE_LENGTH} characters"
    if not _DNS_LABEL.match(namespace):
        return (
            "namespace must consist of lowercase alphanumeric characters or '-', "
            "and start and end with an alphanumeric character"
        )
    return None


def app_project_name(namespace: str) -> str:
    """Argo CD AppProject name for a tenant namespace."""
    return namespace


def application_name(namespace: str) -> str:
    """
    Argo CD Application name for a tenant namespace.

    Example:
        application_name("team-a") -> "team-a-app"
    """
    return f"{namespace}-app"


def role_binding_name(service_account: str) -> str:
    return f"{service_account}-binding"


def sanitize_label_value(value: str, max_length: int = 63) -> str:
    """
    Turn an arbitrary string into a valid Kubernetes label value.

    Args:
        value: The raw value (e.g. a repository host name)
        max_length: Maximum length of the result

    Returns:
        A label-safe value, possibly empty

    Example:
        sanitize_label_value("git.example.com:8443") -> "git.example.com-8443"
    """
    sanitized = _LABEL_VALUE_INVALID.sub("-", value)[:max_length]
    return sanitized.strip("-_.")
