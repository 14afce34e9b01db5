"""
Error kinds raised by the registration service.

Every error that reaches the API carries a stable machine readable ``code``, the
HTTP status it maps to and a ``details`` mapping that names the failed step and
resource kind. Details only ever contain names the caller supplied.
"""

from dataclasses import dataclass
from typing import Any


class ConfigurationError(Exception):
    """Raised when the service configuration is invalid; aborts startup."""


class RegistrationError(Exception):
    """Base class for all errors returned to callers of the registration manager."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_response(self) -> dict[str, Any]:
        """Render the error in the wire format used by the HTTP API."""
        response: dict[str, Any] = {"error": self.code, "message": self.message, "code": self.status_code}
        if self.details:
            response["details"] = self.details
        return response


class ValidationFailed(RegistrationError):
    code = "INVALID_REQUEST"
    status_code = 400


class AuthenticationRequired(RegistrationError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401

    def __init__(self, message: str = "Valid authentication required", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class AuthorizationDenied(RegistrationError):
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403


class RegistrationDisabled(RegistrationError):
    code = "REGISTRATION_DISABLED"
    status_code = 403


class RegistrationNotFound(RegistrationError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, registration_id: str):
        super().__init__("Registration not found", {"registrationId": registration_id})


class RepositoryConflict(RegistrationError):
    code = "REPOSITORY_CONFLICT"
    status_code = 409


class NamespaceConflict(RegistrationError):
    code = "NAMESPACE_CONFLICT"
    status_code = 409


class CapacityExceeded(RegistrationError):
    code = "CAPACITY_EXCEEDED"
    status_code = 503


@dataclass(frozen=True)
class RollbackIncomplete:
    """A compensating action that could not be completed; needs manual cleanup."""

    step: str
    resource: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"step": self.step, "resource": self.resource, "error": self.error}


class ProvisioningFailed(RegistrationError):
    """
    A provisioning step failed after cluster objects may have been created.

    The error always describes the first failure. Compensating actions that
    failed during rollback are attached as ``rollback_warnings``.
    """

    code = "REGISTRATION_FAILED"
    status_code = 500

    def __init__(
        self,
        step: str,
        resource: str,
        cause: BaseException,
        rollback_warnings: list[RollbackIncomplete] | None = None,
    ):
        self.step = step
        self.resource = resource
        self.cause = cause
        self.rollback_warnings: list[RollbackIncomplete] = list(rollback_warnings or [])
        details: dict[str, Any] = {"step": step, "resource": resource}
        if self.rollback_warnings:
            # The warning trail names steps and kinds only, object names stay in the logs
            details["rollbackIncomplete"] = [{"step": w.step, "resource": w.resource} for w in self.rollback_warnings]
        super().__init__(f"Registration failed at step '{step}' ({resource})", details)


class DeletionFailed(RegistrationError):
    code = "DELETE_FAILED"
    status_code = 500

    def __init__(self, step: str, resource: str, cause: BaseException):
        self.step = step
        self.resource = resource
        self.cause = cause
        super().__init__(
            f"Failed to delete registration at step '{step}' ({resource})", {"step": step, "resource": resource}
        )


class ReadFailed(RegistrationError):
    """Reading registration or capacity state from the cluster failed."""

    code = "READ_FAILED"
    status_code = 500

    def __init__(self, step: str, resource: str, cause: BaseException):
        self.step = step
        self.resource = resource
        self.cause = cause
        super().__init__(f"Failed to read {resource} at step '{step}'", {"step": step, "resource": resource})


class ServiceNotReady(RegistrationError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503

    def __init__(self, message: str = "Service is starting up"):
        super().__init__(message)
