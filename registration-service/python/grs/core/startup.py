"""
Startup logic for the GitOps Registration Service.

Loads the service configuration, waits for the Kubernetes API server, validates
the impersonation ClusterRole and wires the registration manager onto the app.
A configuration error aborts startup; the service never serves requests with
a configuration it could not validate.
"""

import logging
import os

from fastapi import FastAPI
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grs.connectors.argo import create_argo_connector
from grs.connectors.gitops import create_gitops_connector
from grs.connectors.kubectl import KubectlConnectionError, KubectlConnector, create_kubectl_connector
from grs.core.config import settings
from grs.core.metrics import RegistrationMetrics
from grs.core.service_config import ServiceConfig, load_service_config
from grs.manager.registration_manager import RegistrationManager

logger = logging.getLogger(__name__)


@retry(
    stop=stop_after_attempt(10),
    wait=wait_exponential(multiplier=2, min=2, max=30),
    retry=retry_if_exception_type(KubectlConnectionError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    after=after_log(logger, logging.INFO),
    reraise=True,
)
async def wait_for_cluster(kubectl: KubectlConnector) -> bool:
    """
    Wait until kubectl can reach the API server, with exponential backoff.

    Raises:
        KubectlConnectionError: If the API server is still unreachable after all attempts
    """
    logger.info("Checking Kubernetes API availability...")
    if not await kubectl.check_connection():
        raise KubectlConnectionError("Kubernetes API server not reachable")
    logger.info("Kubernetes API is available")
    return True


def print_boot_banner() -> None:
    """Print a distinctive boot banner for easy log identification."""
    import datetime

    boot_time = datetime.datetime.now().isoformat()

    banner = f"""
{"=" * 80}
GITOPS REGISTRATION SERVICE STARTING UP
{"=" * 80}
Boot Time: {boot_time}
Environment: {os.environ.get("ENVIRONMENT", "local")}
Debug Mode: {os.environ.get("DEBUG", "false")}
Config Path: {settings.CONFIG_PATH or "(built-in defaults)"}
{"=" * 80}
"""

    print(banner)
    for line in banner.strip().split("\n"):
        if line.strip():
            logger.info(line)


def build_registration_manager(
    config: ServiceConfig, kubectl: KubectlConnector, metrics: RegistrationMetrics | None = None
) -> RegistrationManager:
    argo = create_argo_connector()
    gitops = create_gitops_connector(kubectl, config.argocd.namespace, argo)
    return RegistrationManager(
        cluster=kubectl,
        gitops=gitops,
        config=config,
        metrics=metrics,
        rollback_max_attempts=settings.ROLLBACK_MAX_ATTEMPTS,
        rollback_retry_delay=settings.ROLLBACK_RETRY_DELAY,
    )


async def run_startup_tasks(app: FastAPI) -> RegistrationManager:
    """
    Run all startup tasks and attach the registration manager to ``app.state``.

    Returns:
        The registration manager now serving requests

    Raises:
        ConfigurationError: If the service configuration or the impersonation ClusterRole is invalid
        KubectlConnectionError: If the API server never became reachable
    """
    logger.info("Running startup tasks...")

    config = load_service_config(settings.CONFIG_PATH)
    logger.info(
        f"Service configuration loaded: argocd namespace {config.argocd.namespace}, "
        f"impersonation {'enabled' if config.security.impersonation.enabled else 'disabled'}, "
        f"capacity {'enabled' if config.capacity.enabled else 'disabled'}"
    )

    kubectl = create_kubectl_connector()
    await wait_for_cluster(kubectl)

    manager = build_registration_manager(config, kubectl, getattr(app.state, "metrics", None))
    await manager.impersonation.validate_at_startup()

    app.state.manager = manager
    app.state.metrics = manager.metrics
    logger.info("Startup tasks completed")
    return manager
