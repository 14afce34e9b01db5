"""
Capability interfaces the registration manager depends on.

The kubectl and GitOps connectors implement these; tests use in-memory fakes.
"""

from typing import Any, Protocol

from grs.models import Application, ApplicationStatus, AppProject


class ClusterClient(Protocol):
    async def create_namespace(
        self, name: str, labels: dict[str, str] | None = None, annotations: dict[str, str] | None = None
    ) -> None: ...

    async def namespace_exists(self, namespace: str) -> bool: ...

    async def get_namespace(self, name: str) -> dict[str, Any] | None: ...

    async def list_namespaces(self, label_selector: str | None = None) -> list[dict[str, Any]]: ...

    async def count_namespaces(self, label_selector: str | None = None) -> int: ...

    async def create_service_account_with_generated_name(
        self, namespace: str, base_name: str, labels: dict[str, str] | None = None
    ) -> str: ...

    async def create_role_binding_for_service_account(
        self,
        namespace: str,
        binding_name: str,
        service_account: str,
        cluster_role: str,
        labels: dict[str, str] | None = None,
    ) -> None: ...

    async def update_namespace_metadata(
        self, namespace: str, labels: dict[str, str] | None = None, annotations: dict[str, str] | None = None
    ) -> None: ...

    async def remove_namespace_metadata(
        self, namespace: str, label_keys: list[str] | None = None, annotation_keys: list[str] | None = None
    ) -> None: ...

    async def delete_namespace(self, namespace: str) -> None: ...

    async def delete_resource(self, resource_type: str, resource_name: str, namespace: str | None = None) -> None: ...

    async def get_cluster_role(self, name: str) -> dict[str, Any] | None: ...

    async def list_role_bindings(self, namespace: str) -> list[dict[str, Any]]: ...

    async def review_token(self, token: str) -> dict[str, Any]: ...

    async def can_i(
        self, verb: str, resource: str, namespace: str, user: str | None = None, groups: list[str] | None = None
    ) -> bool: ...

    async def check_connection(self) -> bool: ...


class GitOpsClient(Protocol):
    async def create_project(self, project: AppProject) -> None: ...

    async def get_project(self, name: str) -> dict[str, Any] | None: ...

    async def delete_project(self, name: str) -> None: ...

    async def create_application(self, application: Application) -> None: ...

    async def delete_application(self, name: str) -> None: ...

    async def get_application_status(self, name: str) -> ApplicationStatus | None: ...

    async def check_project_conflict_by_label(self, fingerprint: str) -> bool: ...

    async def sync_application(self, name: str) -> bool: ...
