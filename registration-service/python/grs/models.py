"""
Pydantic models shared by the registration manager, the connectors and the API.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ResourceRestriction(CamelModel):
    """A resource type identified by API group (empty for core) and kind."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    group: str = ""
    kind: str = ""


class ResourceRestrictionPolicy(CamelModel):
    """Either an allow-list or a deny-list of resource types, never both."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    allow_list: tuple[ResourceRestriction, ...] = ()
    deny_list: tuple[ResourceRestriction, ...] = ()

    @property
    def is_unrestricted(self) -> bool:
        return not self.allow_list and not self.deny_list


class Credentials(CamelModel):
    type: str = "token"
    secret_ref: str | None = None


class Repository(CamelModel):
    url: str
    branch: str = "main"
    credentials: Credentials | None = None


class RegistrationRequest(CamelModel):
    repository: Repository
    namespace: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "repository": {"url": "https://github.com/example/team-a-config", "branch": "main"},
                "namespace": "team-a",
            }
        },
    )


class ExistingNamespaceRequest(CamelModel):
    repository: Repository
    existing_namespace: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "repository": {"url": "https://github.com/example/team-b-config", "branch": "main"},
                "existingNamespace": "team-b",
            }
        },
    )


class RegistrationPhase(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"
    DELETING = "deleting"


class RegistrationStatus(CamelModel):
    phase: RegistrationPhase = RegistrationPhase.PENDING
    message: str = ""
    argocd_application: str = ""
    argocd_app_project: str = ""
    namespace_created: bool = False
    app_project_created: bool = False
    application_created: bool = False
    last_sync_time: datetime | None = None
    health: str | None = None
    sync: str | None = None


class Registration(CamelModel):
    id: str
    repository: Repository
    namespace: str
    status: RegistrationStatus = Field(default_factory=RegistrationStatus)
    created_at: datetime
    updated_at: datetime
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class UserInfo(CamelModel):
    username: str
    email: str = ""
    groups: list[str] = Field(default_factory=list)
    extra: dict[str, list[str]] = Field(default_factory=dict)


class ApplicationStatus(CamelModel):
    """Sync and health state of a GitOps application as reported by Argo CD."""

    phase: str = ""
    message: str = ""
    last_sync_time: datetime | None = None
    health: str = "Unknown"
    sync: str = "Unknown"


class AppProject(CamelModel):
    name: str
    namespace: str
    labels: dict[str, str] = Field(default_factory=dict)
    source_repos: list[str] = Field(default_factory=list)
    destination_namespace: str
    destination_server: str = "https://kubernetes.default.svc"
    service_account: str | None = None
    restrictions: dict[str, list[dict[str, str]]] = Field(default_factory=dict)


class Application(CamelModel):
    name: str
    namespace: str
    project: str
    labels: dict[str, str] = Field(default_factory=dict)
    repo_url: str
    target_revision: str = "main"
    path: str = "manifests"
    destination_namespace: str
    destination_server: str = "https://kubernetes.default.svc"


class CapacityUsage(CamelModel):
    namespaces: int
    utilization_percent: float


class CapacityLimitsView(CamelModel):
    max_namespaces: int
    emergency_threshold: float


class CapacityStatus(CamelModel):
    enabled: bool
    current: CapacityUsage
    limits: CapacityLimitsView
    status: str
    message: str
    allow_new_namespaces: bool
    allow_existing_namespaces: bool = True


class ServiceRegistrationStatus(CamelModel):
    allow_new_namespaces: bool
    message: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict[str, Any] | None = None
    code: int | None = None
