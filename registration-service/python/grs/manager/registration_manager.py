"""
Registration manager: onboards a Git repository as a GitOps managed namespace.

A registration consists of a namespace, an optional impersonation service
account with its role binding, an Argo CD AppProject and an Argo CD
Application. They are created as one saga (see ``grs.manager.saga``), so a
failure part way through removes everything created before it.

Registrations are not stored anywhere else: they are reconstructed from the
labels and annotations on the tenant namespace plus the state of the Argo CD
objects. A registration whose provisioning failed is rolled back and therefore
does not exist afterwards.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from grs.connectors.kubectl import KubectlConnectionError, KubectlExecutionError, ResourceAlreadyExistsError
from grs.connectors.protocols import ClusterClient, GitOpsClient
from grs.core import labels as meta
from grs.core.errors import (
    ConfigurationError,
    CapacityExceeded,
    DeletionFailed,
    NamespaceConflict,
    ProvisioningFailed,
    ReadFailed,
    RegistrationError,
    RegistrationNotFound,
    RepositoryConflict,
    ValidationFailed,
)
from grs.core.metrics import KIND_EXISTING_NAMESPACE, KIND_NEW_NAMESPACE, RegistrationMetrics
from grs.core.service_config import ServiceConfig
from grs.manager.saga import Saga, SagaContext, SagaError
from grs.models import (
    Application,
    AppProject,
    CapacityStatus,
    ExistingNamespaceRequest,
    Registration,
    RegistrationPhase,
    RegistrationRequest,
    RegistrationStatus,
    Repository,
    ServiceRegistrationStatus,
    UserInfo,
)
from grs.services.authorization import AuthorizationService
from grs.services.capacity import CapacityController
from grs.services.conflict_detector import ConflictDetector
from grs.services.impersonation import ImpersonationValidator
from grs.services.resource_policy import build_policy, to_project_fields
from grs.utils.naming import app_project_name, application_name, validate_namespace_name
from grs.utils.repository import (
    repository_domain,
    repository_fingerprint,
    validate_repository_url,
)

logger = logging.getLogger(__name__)

STEP_NAMESPACE = "create-namespace"
STEP_ANNOTATE = "annotate-namespace"
STEP_IMPERSONATION = "create-impersonation-binding"
STEP_RECORD_SERVICE_ACCOUNT = "record-service-account"
STEP_PROJECT = "create-appproject"
STEP_APPLICATION = "create-application"

_CLUSTER_ERRORS = (KubectlConnectionError, KubectlExecutionError)

# Keys removed again when an existing namespace leaves GitOps management
_REGISTRATION_LABEL_KEYS = [
    meta.MANAGED_BY_LABEL,
    meta.K8S_MANAGED_BY_LABEL,
    meta.REGISTRATION_ID_LABEL,
    meta.REPOSITORY_HASH_LABEL,
    meta.REPOSITORY_DOMAIN_LABEL,
    meta.PHASE_LABEL,
]
_REGISTRATION_ANNOTATION_KEYS = [
    meta.REPOSITORY_URL_ANNOTATION,
    meta.REPOSITORY_BRANCH_ANNOTATION,
    meta.REGISTRATION_ID_ANNOTATION,
    meta.REGISTERED_AT_ANNOTATION,
    meta.NAMESPACE_CREATED_ANNOTATION,
    meta.SERVICE_ACCOUNT_ANNOTATION,
]


def _now() -> datetime:
    return datetime.now(UTC)


class RegistrationManager:
    """Creates, reads and deletes registrations."""

    def __init__(
        self,
        cluster: ClusterClient,
        gitops: GitOpsClient,
        config: ServiceConfig,
        authorization: AuthorizationService | None = None,
        capacity: CapacityController | None = None,
        conflicts: ConflictDetector | None = None,
        impersonation: ImpersonationValidator | None = None,
        metrics: RegistrationMetrics | None = None,
        rollback_max_attempts: int = 3,
        rollback_retry_delay: float = 1.0,
    ):
        self.cluster = cluster
        self.gitops = gitops
        self.config = config
        self.authorization = authorization or AuthorizationService(cluster, config.authorization)
        self.capacity = capacity or CapacityController(cluster, config)
        self.conflicts = conflicts or ConflictDetector(gitops)
        self.impersonation = impersonation or ImpersonationValidator(cluster, config.security.impersonation)
        self.metrics = metrics or RegistrationMetrics()
        self.rollback_max_attempts = rollback_max_attempts
        self.rollback_retry_delay = rollback_retry_delay
        # Built once: the configuration does not change for the lifetime of the process
        self.resource_policy = build_policy(config.security)
        logger.debug("RegistrationManager initialized")

    # ------------------------------------------------------------------ validation

    def _validate_repository(self, repository: Repository) -> None:
        reason = validate_repository_url(repository.url)
        if reason:
            raise ValidationFailed(reason, {"field": "repository.url"})
        if not repository.branch or not repository.branch.strip():
            raise ValidationFailed("repository branch must not be empty", {"field": "repository.branch"})

    def _validate_new_registration(self, request: RegistrationRequest) -> None:
        self._validate_repository(request.repository)

        reason = validate_namespace_name(request.namespace)
        if reason:
            raise ValidationFailed(reason, {"field": "namespace", "namespace": request.namespace})

        prefix = self.config.tenants.namespace_prefix
        if prefix and not request.namespace.startswith(prefix):
            raise ValidationFailed(
                f"namespace must start with the tenant prefix '{prefix}'",
                {"field": "namespace", "namespace": request.namespace},
            )

    def _validate_existing_registration(self, request: ExistingNamespaceRequest) -> None:
        self._validate_repository(request.repository)

        reason = validate_namespace_name(request.existing_namespace)
        if reason:
            raise ValidationFailed(reason, {"field": "existingNamespace", "namespace": request.existing_namespace})

    async def _check_repository_conflict(self, repository: Repository) -> str:
        fingerprint = repository_fingerprint(repository.url)
        try:
            conflict = await self.conflicts.has_repository_conflict(repository.url)
        except _CLUSTER_ERRORS as e:
            raise ProvisioningFailed("conflict-check", "AppProject", e) from e
        if conflict:
            raise RepositoryConflict(
                "Repository is already registered", {"repository": repository.url, "fingerprint": fingerprint}
            )
        return fingerprint

    async def _check_impersonation_role(self) -> None:
        if not self.impersonation.enabled:
            return
        try:
            await self.impersonation.ensure_cluster_role_exists()
        except (ConfigurationError, *_CLUSTER_ERRORS) as e:
            raise ProvisioningFailed("validate-impersonation", "ClusterRole", e) from e

    # ------------------------------------------------------------------ object construction

    def _registration_metadata(
        self,
        registration_id: str,
        repository: Repository,
        fingerprint: str,
        namespace_created: bool,
        registered_at: datetime,
    ) -> tuple[dict[str, str], dict[str, str]]:
        labels = {
            **meta.managed_by_labels(),
            meta.REGISTRATION_ID_LABEL: registration_id,
            meta.REPOSITORY_HASH_LABEL: fingerprint,
        }
        domain = repository_domain(repository.url)
        if domain:
            labels[meta.REPOSITORY_DOMAIN_LABEL] = domain

        annotations = {
            meta.REPOSITORY_URL_ANNOTATION: repository.url,
            meta.REPOSITORY_BRANCH_ANNOTATION: repository.branch,
            meta.REGISTRATION_ID_ANNOTATION: registration_id,
            meta.REGISTERED_AT_ANNOTATION: registered_at.isoformat(),
            meta.NAMESPACE_CREATED_ANNOTATION: "true" if namespace_created else "false",
        }
        return labels, annotations

    def build_app_project(
        self, namespace: str, repository: Repository, fingerprint: str, service_account: str | None
    ) -> AppProject:
        """
        Build the AppProject of a tenant.

        The only destination is the tenant namespace itself; this does not depend
        on the resource restriction policy.
        """
        return AppProject(
            name=app_project_name(namespace),
            namespace=self.config.argocd.namespace,
            labels={
                **meta.managed_by_labels(),
                meta.REPOSITORY_HASH_LABEL: fingerprint,
                meta.TENANT_LABEL: namespace,
            },
            source_repos=[repository.url],
            destination_namespace=namespace,
            service_account=service_account,
            restrictions=to_project_fields(self.resource_policy),
        )

    def build_application(self, namespace: str, repository: Repository) -> Application:
        return Application(
            name=application_name(namespace),
            namespace=self.config.argocd.namespace,
            project=app_project_name(namespace),
            labels={**meta.managed_by_labels(), meta.TENANT_LABEL: namespace},
            repo_url=repository.url,
            target_revision=repository.branch,
            destination_namespace=namespace,
        )

    def _add_gitops_steps(
        self,
        saga: Saga,
        namespace: str,
        repository: Repository,
        fingerprint: str,
        record_service_account: bool = False,
    ) -> None:
        """
        Add the impersonation binding, AppProject and Application steps.

        With ``record_service_account`` the generated service account name is
        stored on the namespace, so a later delete can find it in a namespace
        that outlives the registration.
        """
        if self.impersonation.enabled:

            async def create_binding(context: SagaContext) -> str:
                cluster_role = self.config.security.impersonation.cluster_role
                return await self.impersonation.create_binding(namespace, cluster_role)

            async def delete_binding(context: SagaContext) -> None:
                await self.impersonation.delete_binding(namespace, context[STEP_IMPERSONATION])

            saga.add_step(STEP_IMPERSONATION, "ServiceAccount", create_binding, delete_binding)

            if record_service_account:

                async def record(context: SagaContext) -> str:
                    service_account = context[STEP_IMPERSONATION]
                    await self.cluster.update_namespace_metadata(
                        namespace, annotations={meta.SERVICE_ACCOUNT_ANNOTATION: service_account}
                    )
                    return service_account

                saga.add_step(STEP_RECORD_SERVICE_ACCOUNT, "Namespace", record)

        async def create_project(context: SagaContext) -> str:
            project = self.build_app_project(namespace, repository, fingerprint, context.get(STEP_IMPERSONATION))
            await self.gitops.create_project(project)
            return project.name

        async def delete_project(context: SagaContext) -> None:
            await self.gitops.delete_project(context[STEP_PROJECT])

        async def create_application(context: SagaContext) -> str:
            application = self.build_application(namespace, repository)
            await self.gitops.create_application(application)
            return application.name

        async def delete_application(context: SagaContext) -> None:
            await self.gitops.delete_application(context[STEP_APPLICATION])

        saga.add_step(STEP_PROJECT, "AppProject", create_project, delete_project)
        saga.add_step(STEP_APPLICATION, "Application", create_application, delete_application)

    async def _run_saga(self, saga: Saga) -> SagaContext:
        try:
            return await saga.execute()
        except SagaError as e:
            if e.step is not saga.steps[0]:
                self.metrics.rollback_finished(e.rollback_warnings)
            if isinstance(e.cause, RegistrationError):
                raise e.cause from e
            raise ProvisioningFailed(e.step.name, e.step.resource, e.cause, e.rollback_warnings) from e.cause

    # ------------------------------------------------------------------ public operations

    async def create_registration(self, request: RegistrationRequest, caller: UserInfo | None = None) -> Registration:
        """
        Register a repository into a new namespace.

        Args:
            request: Repository and the name of the namespace to create
            caller: The requesting user, used for the capacity admin override

        Returns:
            The active registration

        Raises:
            ValidationFailed: Malformed repository URL or namespace name
            RepositoryConflict: The repository is already registered
            RegistrationDisabled: New namespace registration is switched off
            CapacityExceeded: The capacity threshold is reached
            NamespaceConflict: The namespace already exists
            ProvisioningFailed: A provisioning step failed; everything created was rolled back
        """
        try:
            registration = await self._create_registration(request, caller)
        except RegistrationError as e:
            self.metrics.registration_finished(KIND_NEW_NAMESPACE, e)
            raise
        self.metrics.registration_finished(KIND_NEW_NAMESPACE)
        return registration

    async def _create_registration(self, request: RegistrationRequest, caller: UserInfo | None) -> Registration:
        self._validate_new_registration(request)
        namespace = request.namespace
        repository = request.repository
        logger.info(f"Creating registration for {repository.url} in new namespace {namespace}")

        fingerprint = await self._check_repository_conflict(repository)
        try:
            await self.capacity.is_new_namespace_allowed(caller)
        except CapacityExceeded:
            self.metrics.capacity_denied()
            raise
        except _CLUSTER_ERRORS as e:
            raise ProvisioningFailed("capacity-check", "Namespace", e) from e
        await self._check_impersonation_role()

        registration_id = str(uuid.uuid4())
        created_at = _now()
        labels, annotations = self._registration_metadata(registration_id, repository, fingerprint, True, created_at)

        async def create_namespace(context: SagaContext) -> str:
            try:
                await self.cluster.create_namespace(namespace, labels, annotations)
            except ResourceAlreadyExistsError as e:
                raise NamespaceConflict("Namespace already exists", {"namespace": namespace}) from e
            return namespace

        async def delete_namespace(context: SagaContext) -> None:
            await self.cluster.delete_namespace(namespace)

        saga = Saga(f"register {namespace}", self.rollback_max_attempts, self.rollback_retry_delay)
        saga.add_step(STEP_NAMESPACE, "Namespace", create_namespace, delete_namespace)
        self._add_gitops_steps(saga, namespace, repository, fingerprint)

        context = await self._run_saga(saga)
        logger.info(f"Registration {registration_id} for namespace {namespace} completed")

        return Registration(
            id=registration_id,
            repository=repository,
            namespace=namespace,
            status=RegistrationStatus(
                phase=RegistrationPhase.ACTIVE,
                message="Registration completed successfully",
                argocd_application=context[STEP_APPLICATION],
                argocd_app_project=context[STEP_PROJECT],
                namespace_created=True,
                app_project_created=True,
                application_created=True,
            ),
            created_at=created_at,
            updated_at=created_at,
            labels=labels,
            annotations=annotations,
        )

    async def register_existing_namespace(
        self, request: ExistingNamespaceRequest, caller: UserInfo | None
    ) -> Registration:
        """
        Put an existing namespace under GitOps management.

        The namespace is annotated instead of created, and it survives a
        rollback; only the metadata and objects added here are removed again.
        Capacity is not checked since no namespace is created.

        Raises:
            ValidationFailed: Malformed request or the namespace does not exist
            AuthenticationRequired / AuthorizationDenied: The caller may not manage the namespace
            RepositoryConflict: The repository is already registered
            NamespaceConflict: The namespace is already registered
            ProvisioningFailed: A provisioning step failed; everything added was rolled back
        """
        try:
            registration = await self._register_existing_namespace(request, caller)
        except RegistrationError as e:
            self.metrics.registration_finished(KIND_EXISTING_NAMESPACE, e)
            raise
        self.metrics.registration_finished(KIND_EXISTING_NAMESPACE)
        return registration

    async def _register_existing_namespace(
        self, request: ExistingNamespaceRequest, caller: UserInfo | None
    ) -> Registration:
        self._validate_existing_registration(request)
        namespace = request.existing_namespace
        repository = request.repository
        logger.info(f"Registering existing namespace {namespace} for {repository.url}")

        await self.authorization.validate_namespace_access(caller, namespace)

        try:
            existing = await self.cluster.get_namespace(namespace)
        except _CLUSTER_ERRORS as e:
            raise ProvisioningFailed("namespace-check", "Namespace", e) from e
        if existing is None:
            raise ValidationFailed("Namespace does not exist", {"namespace": namespace})
        if ((existing.get("metadata") or {}).get("labels") or {}).get(meta.REGISTRATION_ID_LABEL):
            raise NamespaceConflict("Namespace is already registered", {"namespace": namespace})

        fingerprint = await self._check_repository_conflict(repository)
        await self._check_impersonation_role()

        registration_id = str(uuid.uuid4())
        created_at = _now()
        labels, annotations = self._registration_metadata(registration_id, repository, fingerprint, False, created_at)

        async def annotate_namespace(context: SagaContext) -> str:
            await self.cluster.update_namespace_metadata(namespace, labels, annotations)
            return namespace

        async def strip_namespace(context: SagaContext) -> None:
            await self.cluster.remove_namespace_metadata(
                namespace, _REGISTRATION_LABEL_KEYS, _REGISTRATION_ANNOTATION_KEYS
            )

        saga = Saga(f"register existing {namespace}", self.rollback_max_attempts, self.rollback_retry_delay)
        saga.add_step(STEP_ANNOTATE, "Namespace", annotate_namespace, strip_namespace)
        self._add_gitops_steps(saga, namespace, repository, fingerprint, record_service_account=True)

        context = await self._run_saga(saga)
        logger.info(f"Registration {registration_id} for existing namespace {namespace} completed")

        return Registration(
            id=registration_id,
            repository=repository,
            namespace=namespace,
            status=RegistrationStatus(
                phase=RegistrationPhase.ACTIVE,
                message="Existing namespace successfully converted to GitOps management",
                argocd_application=context[STEP_APPLICATION],
                argocd_app_project=context[STEP_PROJECT],
                namespace_created=False,
                app_project_created=True,
                application_created=True,
            ),
            created_at=created_at,
            updated_at=created_at,
            labels=labels,
            annotations=annotations,
        )

    async def _list_managed_namespaces(self, selector: str) -> list[dict[str, Any]]:
        try:
            return await self.cluster.list_namespaces(selector)
        except _CLUSTER_ERRORS as e:
            raise ReadFailed("list-namespaces", "Namespace", e) from e

    async def _registration_from_namespace(self, namespace_obj: dict[str, Any]) -> Registration | None:
        metadata = namespace_obj.get("metadata") or {}
        labels: dict[str, str] = metadata.get("labels") or {}
        annotations: dict[str, str] = metadata.get("annotations") or {}

        registration_id = labels.get(meta.REGISTRATION_ID_LABEL)
        if not registration_id:
            return None

        namespace = metadata.get("name", "")
        project_name = app_project_name(namespace)
        app_name = application_name(namespace)

        step, resource = "read-appproject", "AppProject"
        try:
            project = await self.gitops.get_project(project_name)
            step, resource = "read-application", "Application"
            app_status = await self.gitops.get_application_status(app_name)
        except _CLUSTER_ERRORS as e:
            raise ReadFailed(step, resource, e) from e

        if labels.get(meta.PHASE_LABEL) == RegistrationPhase.DELETING.value:
            phase, message = RegistrationPhase.DELETING, "Registration is being deleted"
        elif project is not None and app_status is not None:
            phase, message = RegistrationPhase.ACTIVE, "Registration is active"
        elif project is None and app_status is None:
            phase, message = RegistrationPhase.PENDING, "GitOps objects have not been created yet"
        else:
            phase, message = RegistrationPhase.FAILED, "GitOps objects are incomplete"

        registered_at_raw = annotations.get(meta.REGISTERED_AT_ANNOTATION)
        try:
            registered_at = datetime.fromisoformat(registered_at_raw) if registered_at_raw else None
        except ValueError:
            registered_at = None
        if registered_at is None:
            creation = metadata.get("creationTimestamp")
            registered_at = datetime.fromisoformat(creation.replace("Z", "+00:00")) if creation else _now()

        status = RegistrationStatus(
            phase=phase,
            message=message,
            argocd_application=app_name if app_status is not None else "",
            argocd_app_project=project_name if project is not None else "",
            namespace_created=annotations.get(meta.NAMESPACE_CREATED_ANNOTATION) == "true",
            app_project_created=project is not None,
            application_created=app_status is not None,
        )
        if app_status is not None:
            status.last_sync_time = app_status.last_sync_time
            status.health = app_status.health
            status.sync = app_status.sync

        return Registration(
            id=registration_id,
            repository=Repository(
                url=annotations.get(meta.REPOSITORY_URL_ANNOTATION, ""),
                branch=annotations.get(meta.REPOSITORY_BRANCH_ANNOTATION, "main"),
            ),
            namespace=namespace,
            status=status,
            created_at=registered_at,
            updated_at=registered_at,
            labels=labels,
            annotations=annotations,
        )

    async def get_registration(self, registration_id: str) -> Registration:
        """
        Reconstruct a registration from the cluster.

        Raises:
            RegistrationNotFound: If no managed namespace carries the id
            ReadFailed: If the cluster could not be read
        """
        try:
            uuid.UUID(registration_id)
        except ValueError:
            raise RegistrationNotFound(registration_id) from None

        selector = f"{meta.MANAGED_SELECTOR},{meta.REGISTRATION_ID_LABEL}={registration_id}"
        for namespace_obj in await self._list_managed_namespaces(selector):
            registration = await self._registration_from_namespace(namespace_obj)
            if registration is not None:
                return registration
        raise RegistrationNotFound(registration_id)

    async def list_registrations(
        self, namespace: str | None = None, repository: str | None = None, phase: str | None = None
    ) -> list[Registration]:
        """
        List registrations, optionally filtered.

        Args:
            namespace: Only the registration of this namespace
            repository: Only registrations of this repository URL (matched by fingerprint)
            phase: Only registrations in this phase

        Returns:
            Registrations ordered by namespace name

        Raises:
            ValidationFailed: If the repository filter is not a valid repository URL
            ReadFailed: If the cluster could not be read
        """
        selector = meta.MANAGED_SELECTOR
        if repository:
            reason = validate_repository_url(repository)
            if reason:
                raise ValidationFailed(reason, {"field": "repository"})
            selector += f",{meta.REPOSITORY_HASH_LABEL}={repository_fingerprint(repository)}"

        registrations = []
        for namespace_obj in await self._list_managed_namespaces(selector):
            name = (namespace_obj.get("metadata") or {}).get("name")
            if namespace and name != namespace:
                continue
            registration = await self._registration_from_namespace(namespace_obj)
            if registration is None:
                continue
            if phase and registration.status.phase.value != phase:
                continue
            registrations.append(registration)

        return sorted(registrations, key=lambda r: r.namespace)

    async def delete_registration(self, registration_id: str) -> None:
        """
        Delete a registration and the objects it owns.

        The Application and the AppProject are always removed. A namespace the
        service created is deleted, which also removes the impersonation objects
        inside it. An existing namespace is kept; its impersonation objects and
        registration metadata are removed instead.

        Raises:
            RegistrationNotFound: If the registration does not exist
            DeletionFailed: If one of the delete steps fails
        """
        try:
            await self._delete_registration(registration_id)
        except RegistrationError as e:
            self.metrics.deletion_finished(e)
            raise
        self.metrics.deletion_finished()

    async def _delete_registration(self, registration_id: str) -> None:
        registration = await self.get_registration(registration_id)
        namespace = registration.namespace
        logger.info(f"Deleting registration {registration_id} (namespace {namespace})")

        try:
            await self.cluster.update_namespace_metadata(
                namespace, labels={meta.PHASE_LABEL: RegistrationPhase.DELETING.value}
            )
        except _CLUSTER_ERRORS as e:
            logger.warning(f"Could not mark namespace {namespace} as deleting: {e}")

        step, resource = "delete-application", "Application"
        try:
            await self.gitops.delete_application(application_name(namespace))

            step, resource = "delete-appproject", "AppProject"
            await self.gitops.delete_project(app_project_name(namespace))

            if registration.status.namespace_created:
                step, resource = "delete-namespace", "Namespace"
                await self.cluster.delete_namespace(namespace)
            else:
                service_account = registration.annotations.get(meta.SERVICE_ACCOUNT_ANNOTATION)
                if service_account and self.config.security.impersonation.auto_cleanup:
                    step, resource = "delete-impersonation-binding", "ServiceAccount"
                    await self.impersonation.delete_binding(namespace, service_account)

                step, resource = "strip-namespace-metadata", "Namespace"
                await self.cluster.remove_namespace_metadata(
                    namespace, _REGISTRATION_LABEL_KEYS, _REGISTRATION_ANNOTATION_KEYS
                )
        except _CLUSTER_ERRORS as e:
            logger.error(f"Deleting registration {registration_id} failed at step {step}: {e}")
            raise DeletionFailed(step, resource, e) from e

        logger.info(f"Registration {registration_id} deleted")

    async def get_registration_status(self, registration_id: str) -> RegistrationStatus:
        registration = await self.get_registration(registration_id)
        return registration.status

    async def sync_registration(self, registration_id: str) -> dict[str, Any]:
        """
        Ask Argo CD to sync the application of a registration right away.

        Returns:
            A summary with ``syncTriggered`` telling whether Argo CD accepted it
        """
        registration = await self.get_registration(registration_id)
        app_name = application_name(registration.namespace)
        triggered = await self.gitops.sync_application(app_name)
        return {
            "id": registration.id,
            "application": app_name,
            "syncTriggered": triggered,
            "message": "Sync triggered" if triggered else "Argo CD did not accept the sync request",
        }

    async def get_capacity_status(self) -> CapacityStatus:
        try:
            return await self.capacity.get_capacity_status()
        except _CLUSTER_ERRORS as e:
            raise ReadFailed("capacity-status", "Namespace", e) from e

    def get_service_registration_status(self) -> ServiceRegistrationStatus:
        return self.capacity.get_service_registration_status()
