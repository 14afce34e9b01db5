"""
Capacity admission control for registrations that create a new namespace.

The namespace count is read from the cluster on every check and never cached,
so the gate cannot drift from reality. Concurrent checks may each see the same
count and let a few registrations past the threshold; that race is accepted,
the gate is best effort and not a distributed lock.
"""

import logging

from grs.connectors.protocols import ClusterClient
from grs.core.errors import CapacityExceeded, RegistrationDisabled
from grs.core.labels import MANAGED_SELECTOR
from grs.core.service_config import ServiceConfig
from grs.models import CapacityLimitsView, CapacityStatus, CapacityUsage, ServiceRegistrationStatus, UserInfo

logger = logging.getLogger(__name__)

# Fraction of the emergency threshold at which the status turns to "warning"
WARNING_FRACTION = 0.8


class CapacityController:
    """Admission gate evaluating the managed namespace count against the configured limits."""

    def __init__(self, cluster: ClusterClient, config: ServiceConfig):
        self.cluster = cluster
        self.config = config

    def _is_admin_override(self, caller: UserInfo | None) -> bool:
        if caller is None:
            return False
        capacity = self.config.capacity
        if caller.username in capacity.admin_override_users:
            return True
        return any(group in capacity.admin_override_groups for group in caller.groups)

    async def _current_usage(self) -> tuple[int, float]:
        current = await self.cluster.count_namespaces(MANAGED_SELECTOR)
        ratio = current / self.config.capacity.limits.max_namespaces
        return current, ratio

    async def is_new_namespace_allowed(self, caller: UserInfo | None = None) -> None:
        """
        Check whether a registration may create a new namespace.

        Args:
            caller: The requesting user, checked against the admin override lists

        Raises:
            RegistrationDisabled: If new namespace registrations are switched off
            CapacityExceeded: If the emergency threshold is reached and no override applies
        """
        if not self.config.registration.allow_new_namespaces:
            logger.info("New namespace registration denied: disabled by configuration")
            raise RegistrationDisabled("New namespace registration is currently disabled")

        capacity = self.config.capacity
        if not capacity.enabled:
            return

        current, ratio = await self._current_usage()
        limits = capacity.limits
        logger.debug(f"Capacity check: {current}/{limits.max_namespaces} managed namespaces ({ratio:.0%})")

        if ratio < limits.emergency_threshold:
            return

        if capacity.emergency_bypass:
            logger.warning(f"Capacity threshold reached ({current}/{limits.max_namespaces}) - emergency bypass is on")
            return

        if self._is_admin_override(caller):
            logger.warning(
                f"Capacity threshold reached ({current}/{limits.max_namespaces}) - admin override by {caller.username}"
            )
            return

        logger.warning(f"New namespace registration denied: capacity {current}/{limits.max_namespaces} reached")
        raise CapacityExceeded(
            "Cluster capacity for new namespaces is exhausted",
            {
                "currentNamespaces": current,
                "maxNamespaces": limits.max_namespaces,
                "emergencyThreshold": limits.emergency_threshold,
            },
        )

    async def get_capacity_status(self) -> CapacityStatus:
        """Snapshot of the current capacity usage for the status endpoint."""
        capacity = self.config.capacity
        limits = capacity.limits
        allow_new = self.config.registration.allow_new_namespaces
        limits_view = CapacityLimitsView(
            max_namespaces=limits.max_namespaces, emergency_threshold=limits.emergency_threshold
        )

        if not capacity.enabled:
            current = await self.cluster.count_namespaces(MANAGED_SELECTOR)
            return CapacityStatus(
                enabled=False,
                current=CapacityUsage(namespaces=current, utilization_percent=0),
                limits=limits_view,
                status="disabled",
                message="Capacity management is disabled",
                allow_new_namespaces=allow_new,
            )

        current, ratio = await self._current_usage()
        if ratio >= limits.emergency_threshold:
            status, message = "emergency", "Capacity threshold reached - new namespaces require an admin override"
            allow_new = allow_new and capacity.emergency_bypass
        elif ratio >= limits.emergency_threshold * WARNING_FRACTION:
            status, message = "warning", "Capacity is approaching the emergency threshold"
        else:
            status, message = "ok", "Capacity available"

        return CapacityStatus(
            enabled=True,
            current=CapacityUsage(namespaces=current, utilization_percent=round(ratio * 100, 2)),
            limits=limits_view,
            status=status,
            message=message,
            allow_new_namespaces=allow_new,
        )

    def get_service_registration_status(self) -> ServiceRegistrationStatus:
        if self.config.registration.allow_new_namespaces:
            return ServiceRegistrationStatus(allow_new_namespaces=True, message="New namespace registration is enabled")
        return ServiceRegistrationStatus(
            allow_new_namespaces=False,
            message="New namespace registration is disabled - existing namespaces can still be registered",
        )
