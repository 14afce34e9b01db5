"""
Tests for the Prometheus counters kept by the registration manager.
"""

import pytest
from fakes import make_config

from grs.connectors.kubectl import KubectlExecutionError
from grs.core.errors import CapacityExceeded, NamespaceConflict, ProvisioningFailed, RegistrationNotFound
from grs.core.labels import managed_by_labels
from grs.core.metrics import RegistrationMetrics
from grs.models import RegistrationRequest, Repository


def request_for(namespace: str, url: str = "https://github.com/example/config") -> RegistrationRequest:
    return RegistrationRequest(repository=Repository(url=url), namespace=namespace)


def sample(metrics: RegistrationMetrics, name: str, **labels: str) -> float | None:
    return metrics.registry.get_sample_value(name, labels)


@pytest.mark.asyncio
async def test_successful_registration_and_deletion(make_manager):
    metrics = RegistrationMetrics()
    manager = make_manager(metrics=metrics)

    created = await manager.create_registration(request_for("team-a"))
    await manager.delete_registration(created.id)
    with pytest.raises(RegistrationNotFound):
        await manager.delete_registration(created.id)

    assert sample(metrics, "gitops_registration_requests_total", kind="new_namespace", outcome="success") == 1.0
    assert sample(metrics, "gitops_registration_deletions_total", outcome="success") == 1.0
    assert sample(metrics, "gitops_registration_deletions_total", outcome="not_found") == 1.0
    assert sample(metrics, "gitops_registration_rollbacks_total", result="complete") is None


@pytest.mark.asyncio
async def test_rollbacks_are_counted_by_result(make_manager, cluster, gitops):
    metrics = RegistrationMetrics()
    manager = make_manager(metrics=metrics, rollback_max_attempts=1)
    gitops.fail("create_application", KubectlExecutionError("boom"))

    with pytest.raises(ProvisioningFailed):
        await manager.create_registration(request_for("team-a", "https://github.com/example/a"))

    cluster.fail("delete_namespace", KubectlExecutionError("etcd timeout"))
    with pytest.raises(ProvisioningFailed):
        await manager.create_registration(request_for("team-b", "https://github.com/example/b"))

    assert sample(metrics, "gitops_registration_rollbacks_total", result="complete") == 1.0
    assert sample(metrics, "gitops_registration_rollbacks_total", result="incomplete") == 1.0
    assert (
        sample(metrics, "gitops_registration_requests_total", kind="new_namespace", outcome="registration_failed")
        == 2.0
    )


@pytest.mark.asyncio
async def test_capacity_denials_are_counted(make_manager, cluster):
    metrics = RegistrationMetrics()
    config = make_config(capacity={"enabled": True, "limits": {"maxNamespaces": 1, "emergencyThreshold": 1.0}})
    manager = make_manager(config, metrics=metrics)
    cluster.add_namespace("tenant-0", labels=managed_by_labels())

    with pytest.raises(CapacityExceeded):
        await manager.create_registration(request_for("team-a"))

    assert sample(metrics, "gitops_registration_capacity_denials_total") == 1.0
    assert (
        sample(metrics, "gitops_registration_requests_total", kind="new_namespace", outcome="capacity_exceeded")
        == 1.0
    )


def test_each_instance_has_its_own_registry():
    first, second = RegistrationMetrics(), RegistrationMetrics()
    first.capacity_denied()

    assert first.registry.get_sample_value("gitops_registration_capacity_denials_total") == 1.0
    assert second.registry.get_sample_value("gitops_registration_capacity_denials_total") == 0.0
    body, content_type = first.render()
    assert b"gitops_registration_capacity_denials_total 1.0" in body
    assert content_type.startswith("text/plain")


@pytest.mark.asyncio
async def test_failure_of_the_first_step_is_not_a_rollback(make_manager, cluster):
    metrics = RegistrationMetrics()
    manager = make_manager(metrics=metrics)
    cluster.add_namespace("team-a")

    with pytest.raises(NamespaceConflict):
        await manager.create_registration(request_for("team-a"))

    assert sample(metrics, "gitops_registration_rollbacks_total", result="complete") is None
    assert (
        sample(metrics, "gitops_registration_requests_total", kind="new_namespace", outcome="namespace_conflict")
        == 1.0
    )
