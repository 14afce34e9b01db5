"""
GRS connectors package for external system integration.
"""

from grs.connectors.argo import create_argo_connector
from grs.connectors.gitops import create_gitops_connector
from grs.connectors.kubectl import create_kubectl_connector

__all__ = [
    "create_argo_connector",
    "create_gitops_connector",
    "create_kubectl_connector",
]
