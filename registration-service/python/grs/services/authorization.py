"""
Authorization for registering existing namespaces.

A caller may hand an existing namespace over to GitOps management only when
they hold the required role in it: a RoleBinding in the namespace that grants
the configured ClusterRole to the user or one of their groups. Optionally a
SubjectAccessReview confirms the caller can also update the namespace.
"""

import logging
from typing import Any

from grs.connectors.protocols import ClusterClient
from grs.core.errors import AuthenticationRequired, AuthorizationDenied
from grs.core.service_config import AuthorizationConfig
from grs.models import UserInfo

logger = logging.getLogger(__name__)


def _subject_matches(subject: dict[str, Any], caller: UserInfo) -> bool:
    kind = subject.get("kind")
    name = subject.get("name")
    if kind == "User":
        return name == caller.username
    if kind == "Group":
        return name in caller.groups
    if kind == "ServiceAccount":
        return caller.username == f"system:serviceaccount:{subject.get('namespace')}:{name}"
    return False


class AuthorizationService:
    def __init__(self, cluster: ClusterClient, config: AuthorizationConfig):
        self.cluster = cluster
        self.config = config

    def is_admin_user(self, caller: UserInfo | None) -> bool:
        if caller is None:
            return False
        if caller.username in self.config.admin_users:
            return True
        return any(group in self.config.admin_groups for group in caller.groups)

    async def _has_required_role(self, caller: UserInfo, namespace: str) -> bool:
        for binding in await self.cluster.list_role_bindings(namespace):
            role_ref = binding.get("roleRef") or {}
            if role_ref.get("name") != self.config.required_role:
                continue
            if any(_subject_matches(subject, caller) for subject in binding.get("subjects") or []):
                return True
        return False

    async def validate_namespace_access(self, caller: UserInfo | None, namespace: str) -> None:
        """
        Check that the caller may register the given existing namespace.

        Args:
            caller: The authenticated user
            namespace: The existing namespace

        Raises:
            AuthenticationRequired: If there is no caller
            AuthorizationDenied: If the caller lacks the required role
        """
        if caller is None:
            raise AuthenticationRequired()

        if self.is_admin_user(caller):
            logger.info(f"Admin user {caller.username} granted access to namespace {namespace}")
            return

        allowed = await self._has_required_role(caller, namespace)
        if allowed and self.config.enable_subject_access_review:
            allowed = await self.cluster.can_i("update", "namespaces", namespace, caller.username, caller.groups)

        if not allowed:
            if self.config.audit_failed_attempts:
                logger.warning(
                    f"AUDIT: user {caller.username} denied registration of namespace {namespace} "
                    f"(required role {self.config.required_role})"
                )
            raise AuthorizationDenied(
                f"User lacks the required role '{self.config.required_role}' in the namespace",
                {"namespace": namespace, "requiredRole": self.config.required_role},
            )

        logger.debug(f"User {caller.username} authorized for namespace {namespace}")

    async def extract_user_info(self, token: str) -> UserInfo:
        """
        Resolve a bearer token to a user through a TokenReview.

        Raises:
            AuthenticationRequired: If the token is empty or not authenticated
        """
        if not token:
            raise AuthenticationRequired()

        status = await self.cluster.review_token(token)
        if not status.get("authenticated"):
            logger.info(f"Token review rejected the token: {status.get('error', 'not authenticated')}")
            raise AuthenticationRequired("Invalid or expired token")

        user = status.get("user") or {}
        username = user.get("username", "")
        return UserInfo(
            username=username,
            email=username if "@" in username else "",
            groups=user.get("groups") or [],
            extra=user.get("extra") or {},
        )
