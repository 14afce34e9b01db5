"""
Tests for the capacity admission gate.
"""

import pytest
from fakes import make_config

from grs.core.errors import CapacityExceeded, RegistrationDisabled
from grs.core.labels import managed_by_labels
from grs.models import UserInfo
from grs.services.capacity import CapacityController


def capacity_config(max_namespaces: int = 10, threshold: float = 0.8, **extra):
    return make_config(
        capacity={
            "enabled": True,
            "limits": {"maxNamespaces": max_namespaces, "emergencyThreshold": threshold},
            **extra,
        }
    )


def fill(cluster, count: int) -> None:
    for i in range(count):
        cluster.add_namespace(f"tenant-{i}", labels=managed_by_labels())


@pytest.mark.asyncio
async def test_disabled_capacity_always_allows(cluster):
    fill(cluster, 500)
    controller = CapacityController(cluster, make_config())

    await controller.is_new_namespace_allowed()

    assert cluster.count("count_namespaces") == 0


@pytest.mark.asyncio
async def test_below_threshold_allows(cluster):
    fill(cluster, 7)
    controller = CapacityController(cluster, capacity_config())

    await controller.is_new_namespace_allowed()


@pytest.mark.asyncio
async def test_at_threshold_denies(cluster):
    fill(cluster, 8)
    controller = CapacityController(cluster, capacity_config())

    with pytest.raises(CapacityExceeded) as exc_info:
        await controller.is_new_namespace_allowed()

    assert exc_info.value.details == {"currentNamespaces": 8, "maxNamespaces": 10, "emergencyThreshold": 0.8}
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("existing", "caller", "allowed"),
    [
        (8, None, True),
        (9, None, False),
        (9, UserInfo(username="dev@example.com", groups=["developers"]), False),
        (9, UserInfo(username="ops@example.com"), True),
        (9, UserInfo(username="someone", groups=["platform-admins"]), True),
    ],
)
async def test_admission_at_ninety_percent_of_ten(cluster, existing, caller, allowed):
    fill(cluster, existing)
    controller = CapacityController(
        cluster,
        capacity_config(
            max_namespaces=10,
            threshold=0.9,
            adminOverrideUsers=["ops@example.com"],
            adminOverrideGroups=["platform-admins"],
        ),
    )

    if allowed:
        await controller.is_new_namespace_allowed(caller)
    else:
        with pytest.raises(CapacityExceeded) as exc_info:
            await controller.is_new_namespace_allowed(caller)
        assert exc_info.value.details == {"currentNamespaces": 9, "maxNamespaces": 10, "emergencyThreshold": 0.9}


@pytest.mark.asyncio
async def test_only_managed_namespaces_count(cluster):
    fill(cluster, 7)
    for i in range(20):
        cluster.add_namespace(f"system-{i}")
    controller = CapacityController(cluster, capacity_config())

    await controller.is_new_namespace_allowed()


@pytest.mark.asyncio
async def test_count_is_read_on_every_check(cluster):
    fill(cluster, 7)
    controller = CapacityController(cluster, capacity_config())
    await controller.is_new_namespace_allowed()

    cluster.add_namespace("tenant-late", labels=managed_by_labels())

    with pytest.raises(CapacityExceeded):
        await controller.is_new_namespace_allowed()
    assert cluster.count("count_namespaces") == 2


@pytest.mark.asyncio
async def test_admin_override_by_user_and_group(cluster):
    fill(cluster, 9)
    controller = CapacityController(
        cluster, capacity_config(adminOverrideUsers=["ops@example.com"], adminOverrideGroups=["platform-admins"])
    )

    await controller.is_new_namespace_allowed(UserInfo(username="ops@example.com"))
    await controller.is_new_namespace_allowed(UserInfo(username="someone", groups=["platform-admins"]))
    with pytest.raises(CapacityExceeded):
        await controller.is_new_namespace_allowed(UserInfo(username="someone", groups=["developers"]))
    with pytest.raises(CapacityExceeded):
        await controller.is_new_namespace_allowed(None)


@pytest.mark.asyncio
async def test_emergency_bypass(cluster):
    fill(cluster, 10)
    controller = CapacityController(cluster, capacity_config(emergencyBypass=True))

    await controller.is_new_namespace_allowed()


@pytest.mark.asyncio
async def test_registration_disabled_wins_over_capacity(cluster):
    controller = CapacityController(cluster, make_config(registration={"allowNewNamespaces": False}))

    with pytest.raises(RegistrationDisabled):
        await controller.is_new_namespace_allowed()


@pytest.mark.asyncio
@pytest.mark.parametrize(("count", "status"), [(2, "ok"), (8, "warning"), (9, "emergency")])
async def test_capacity_status(cluster, count, status):
    fill(cluster, count)
    controller = CapacityController(cluster, capacity_config(max_namespaces=10, threshold=0.9))

    snapshot = await controller.get_capacity_status()

    assert snapshot.status == status
    assert snapshot.current.namespaces == count
    assert snapshot.current.utilization_percent == count * 10
    assert snapshot.allow_new_namespaces is (status != "emergency")


@pytest.mark.asyncio
async def test_capacity_status_disabled(cluster):
    fill(cluster, 3)
    controller = CapacityController(cluster, make_config())

    snapshot = await controller.get_capacity_status()

    assert snapshot.status == "disabled"
    assert snapshot.enabled is False
    assert snapshot.current.namespaces == 3
    assert snapshot.to_json_dict()["allowExistingNamespaces"] is True


def test_service_registration_status(cluster):
    enabled = CapacityController(cluster, make_config()).get_service_registration_status()
    disabled = CapacityController(
        cluster, make_config(registration={"allowNewNamespaces": False})
    ).get_service_registration_status()

    assert enabled.allow_new_namespaces is True
    assert disabled.allow_new_namespaces is False
    assert disabled.to_json_dict()["allowNewNamespaces"] is False
