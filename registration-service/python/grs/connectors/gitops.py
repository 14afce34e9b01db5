"""
GitOps connector: Argo CD AppProject and Application objects.

Projects and applications are Kubernetes custom resources in the Argo CD
namespace and are created and deleted through kubectl. Sync requests go to the
Argo CD API server through the ArgoConnector.
"""

import logging
from datetime import datetime
from typing import Any

from grs.connectors.argo import ArgoConnector
from grs.connectors.kubectl import KubectlConnector
from grs.core.labels import REPOSITORY_HASH_LABEL
from grs.generation.manifests import ManifestGenerator
from grs.models import Application, ApplicationStatus, AppProject

logger = logging.getLogger(__name__)

APP_PROJECT_RESOURCE = "appprojects.argoproj.io"
APPLICATION_RESOURCE = "applications.argoproj.io"


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Ignoring unparseable timestamp: {value}")
        return None


def application_status_from_object(app: dict[str, Any]) -> ApplicationStatus:
    """
    Extract the sync and health state from an Application object.

    Args:
        app: The Application custom resource as returned by the API server

    Returns:
        ApplicationStatus with Unknown sync/health when Argo CD has not reported yet
    """
    status = app.get("status") or {}
    operation = status.get("operationState") or {}
    return ApplicationStatus(
        phase=operation.get("phase", ""),
        message=operation.get("message", ""),
        last_sync_time=_parse_timestamp(operation.get("finishedAt") or status.get("reconciledAt")),
        health=(status.get("health") or {}).get("status", "Unknown"),
        sync=(status.get("sync") or {}).get("status", "Unknown"),
    )


class GitOpsConnector:
    """Connector for Argo CD AppProjects and Applications."""

    def __init__(
        self,
        kubectl: KubectlConnector,
        argocd_namespace: str = "argocd",
        argo: ArgoConnector | None = None,
        manifest_generator: ManifestGenerator | None = None,
    ):
        self.kubectl = kubectl
        self.argocd_namespace = argocd_namespace
        self.argo = argo
        self.manifests = manifest_generator or ManifestGenerator()
        logger.debug(f"GitOpsConnector initialized for Argo CD namespace {argocd_namespace}")

    async def create_project(self, project: AppProject) -> None:
        """
        Create an AppProject.

        Raises:
            ResourceAlreadyExistsError: If a project with the same name exists
            KubectlExecutionError: For any other failure
        """
        manifest = self.manifests.render_app_project(project)
        await self.kubectl.create_from_manifest(manifest, f"AppProject {project.name}")

    async def get_project(self, name: str) -> dict[str, Any] | None:
        return await self.kubectl.get_resource(APP_PROJECT_RESOURCE, name, self.argocd_namespace)

    async def delete_project(self, name: str) -> None:
        await self.kubectl.delete_resource(APP_PROJECT_RESOURCE, name, self.argocd_namespace)

    async def create_application(self, application: Application) -> None:
        """
        Create an Application.

        Raises:
            ResourceAlreadyExistsError: If an application with the same name exists
            KubectlExecutionError: For any other failure
        """
        manifest = self.manifests.render_application(application)
        await self.kubectl.create_from_manifest(manifest, f"Application {application.name}")

    async def delete_application(self, name: str) -> None:
        await self.kubectl.delete_resource(APPLICATION_RESOURCE, name, self.argocd_namespace)

    async def get_application_status(self, name: str) -> ApplicationStatus | None:
        """
        Read the sync and health state of an application.

        Returns:
            The status, or None if the application does not exist
        """
        app = await self.kubectl.get_resource(APPLICATION_RESOURCE, name, self.argocd_namespace)
        if app is None:
            return None
        return application_status_from_object(app)

    async def check_project_conflict_by_label(self, fingerprint: str) -> bool:
        """
        Check whether any AppProject carries the given repository fingerprint.

        The label selector is evaluated by the API server, so the cost does not
        grow with the number of registered projects.

        Args:
            fingerprint: Repository fingerprint

        Returns:
            True if at least one project matches
        """
        projects = await self.kubectl.list_resources(
            APP_PROJECT_RESOURCE,
            namespace=self.argocd_namespace,
            label_selector=f"{REPOSITORY_HASH_LABEL}={fingerprint}",
        )
        if projects:
            logger.debug(f"Found {len(projects)} AppProject(s) with repository fingerprint {fingerprint}")
        return bool(projects)

    async def sync_application(self, name: str) -> bool:
        """
        Ask Argo CD to sync an application now.

        Returns:
            True if the sync was triggered
        """
        if self.argo is None:
            logger.warning(f"No Argo CD API connection configured - cannot sync application {name}")
            return False
        return await self.argo.sync_application(name)


def create_gitops_connector(
    kubectl: KubectlConnector, argocd_namespace: str, argo: ArgoConnector | None = None
) -> GitOpsConnector:
    logger.debug("Creating GitOpsConnector")
    return GitOpsConnector(kubectl=kubectl, argocd_namespace=argocd_namespace, argo=argo)
