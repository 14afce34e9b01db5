"""
Prometheus metrics of the registration service, served at ``/metrics``.

Each ``RegistrationMetrics`` owns its own collector registry, so separate app
instances (and tests) never share counters.
"""

import logging

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

from grs.core.errors import RegistrationError, RollbackIncomplete

logger = logging.getLogger(__name__)

METRICS_PREFIX = "gitops_registration"

KIND_NEW_NAMESPACE = "new_namespace"
KIND_EXISTING_NAMESPACE = "existing_namespace"


def _outcome(error: RegistrationError | None) -> str:
    return "success" if error is None else error.code.lower()


class RegistrationMetrics:
    """Counters for registrations, rollbacks, capacity denials and deletions."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.registrations = Counter(
            f"{METRICS_PREFIX}_requests",
            "Registration requests by kind and outcome",
            ["kind", "outcome"],
            registry=self.registry,
        )
        self.rollbacks = Counter(
            f"{METRICS_PREFIX}_rollbacks",
            "Rollbacks of failed provisioning runs; incomplete ones need manual cleanup",
            ["result"],
            registry=self.registry,
        )
        self.capacity_denials = Counter(
            f"{METRICS_PREFIX}_capacity_denials",
            "New namespace registrations denied by the capacity gate",
            registry=self.registry,
        )
        self.deletions = Counter(
            f"{METRICS_PREFIX}_deletions",
            "Registration deletions by outcome",
            ["outcome"],
            registry=self.registry,
        )
        logger.debug("Registration metrics initialized")

    def registration_finished(self, kind: str, error: RegistrationError | None = None) -> None:
        self.registrations.labels(kind=kind, outcome=_outcome(error)).inc()

    def rollback_finished(self, warnings: list[RollbackIncomplete]) -> None:
        self.rollbacks.labels(result="incomplete" if warnings else "complete").inc()

    def capacity_denied(self) -> None:
        self.capacity_denials.inc()

    def deletion_finished(self, error: RegistrationError | None = None) -> None:
        self.deletions.labels(outcome=_outcome(error)).inc()

    def render(self) -> tuple[bytes, str]:
        """
        Render all metrics in the Prometheus text exposition format.

        Returns:
            Tuple of (body, content type)
        """
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
