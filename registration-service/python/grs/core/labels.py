"""Label and annotation keys written on the objects of a registration."""

MANAGED_BY_VALUE = "gitops-registration-service"

MANAGED_BY_LABEL = "gitops.io/managed-by"
K8S_MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
REGISTRATION_ID_LABEL = "gitops.io/registration-id"
REPOSITORY_HASH_LABEL = "gitops.io/repository-hash"
REPOSITORY_DOMAIN_LABEL = "gitops.io/repository-domain"
TENANT_LABEL = "gitops.io/tenant"
PURPOSE_LABEL = "gitops.io/purpose"
PHASE_LABEL = "gitops.io/registration-phase"

REPOSITORY_URL_ANNOTATION = "gitops.io/repository-url"
REPOSITORY_BRANCH_ANNOTATION = "gitops.io/repository-branch"
REGISTRATION_ID_ANNOTATION = "gitops.io/registration-id"
REGISTERED_AT_ANNOTATION = "gitops.io/registered-at"
NAMESPACE_CREATED_ANNOTATION = "gitops.io/namespace-created"
SERVICE_ACCOUNT_ANNOTATION = "gitops.io/service-account"

IMPERSONATION_PURPOSE = "impersonation"

MANAGED_SELECTOR = f"{MANAGED_BY_LABEL}={MANAGED_BY_VALUE}"


def managed_by_labels() -> dict[str, str]:
    return {MANAGED_BY_LABEL: MANAGED_BY_VALUE, K8S_MANAGED_BY_LABEL: MANAGED_BY_VALUE}
