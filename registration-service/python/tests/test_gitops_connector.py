"""
Tests for the GitOps connector on top of a mocked kubectl connector.
"""

from unittest.mock import AsyncMock

import pytest

from grs.connectors.gitops import (
    APP_PROJECT_RESOURCE,
    APPLICATION_RESOURCE,
    GitOpsConnector,
    application_status_from_object,
)
from grs.core.labels import REPOSITORY_HASH_LABEL
from grs.models import AppProject


@pytest.fixture
def kubectl() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def connector(kubectl) -> GitOpsConnector:
    return GitOpsConnector(kubectl=kubectl, argocd_namespace="gitops")


@pytest.mark.asyncio
async def test_create_project_renders_manifest(connector, kubectl):
    await connector.create_project(AppProject(name="team-a", namespace="gitops", destination_namespace="team-a"))

    manifest, description = kubectl.create_from_manifest.call_args[0]
    assert "kind: AppProject" in manifest
    assert description == "AppProject team-a"


@pytest.mark.asyncio
async def test_conflict_lookup_uses_label_selector(connector, kubectl):
    kubectl.list_resources.return_value = [{"metadata": {"name": "team-a"}}]

    assert await connector.check_project_conflict_by_label("abcd") is True
    kubectl.list_resources.assert_awaited_once_with(
        APP_PROJECT_RESOURCE, namespace="gitops", label_selector=f"{REPOSITORY_HASH_LABEL}=abcd"
    )

    kubectl.list_resources.return_value = []
    assert await connector.check_project_conflict_by_label("abcd") is False


@pytest.mark.asyncio
async def test_deletes_are_scoped_to_argocd_namespace(connector, kubectl):
    await connector.delete_application("team-a")
    await connector.delete_project("team-a")

    kubectl.delete_resource.assert_any_await(APPLICATION_RESOURCE, "team-a", "gitops")
    kubectl.delete_resource.assert_any_await(APP_PROJECT_RESOURCE, "team-a", "gitops")


@pytest.mark.asyncio
async def test_missing_application_has_no_status(connector, kubectl):
    kubectl.get_resource.return_value = None

    assert await connector.get_application_status("team-a") is None


def test_status_from_object():
    status = application_status_from_object(
        {
            "status": {
                "health": {"status": "Healthy"},
                "sync": {"status": "OutOfSync"},
                "operationState": {
                    "phase": "Succeeded",
                    "message": "successfully synced",
                    "finishedAt": "2024-05-01T10:00:00Z",
                },
            }
        }
    )

    assert status.health == "Healthy"
    assert status.sync == "OutOfSync"
    assert status.phase == "Succeeded"
    assert status.last_sync_time.year == 2024


def test_status_before_first_report():
    status = application_status_from_object({})

    assert status.health == "Unknown"
    assert status.sync == "Unknown"
    assert status.last_sync_time is None


@pytest.mark.asyncio
async def test_sync_without_argo_connection(connector):
    assert await connector.sync_application("team-a") is False


@pytest.mark.asyncio
async def test_sync_through_argo(kubectl):
    argo = AsyncMock()
    argo.sync_application.return_value = True
    connector = GitOpsConnector(kubectl=kubectl, argo=argo)

    assert await connector.sync_application("team-a") is True
    argo.sync_application.assert_awaited_once_with("team-a")
