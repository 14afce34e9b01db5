from typing import Any

import pytest
from fakes import IMPERSONATION_ROLE, FakeCluster, FakeGitOps, make_config

from grs.core.service_config import ServiceConfig
from grs.manager.registration_manager import RegistrationManager
from grs.models import UserInfo


@pytest.fixture
def cluster() -> FakeCluster:
    cluster = FakeCluster()
    cluster.cluster_roles[IMPERSONATION_ROLE] = {
        "metadata": {"name": IMPERSONATION_ROLE},
        "rules": [{"apiGroups": ["apps"], "resources": ["deployments"], "verbs": ["get", "create", "update"]}],
    }
    return cluster


@pytest.fixture
def gitops() -> FakeGitOps:
    return FakeGitOps()


@pytest.fixture
def make_manager(cluster: FakeCluster, gitops: FakeGitOps):
    def _make(config: ServiceConfig | None = None, **kwargs: Any) -> RegistrationManager:
        kwargs.setdefault("rollback_max_attempts", 3)
        kwargs.setdefault("rollback_retry_delay", 0)
        return RegistrationManager(cluster=cluster, gitops=gitops, config=config or make_config(), **kwargs)

    return _make


@pytest.fixture
def admin() -> UserInfo:
    return UserInfo(username="admin@example.com", email="admin@example.com", groups=["system:masters"])


@pytest.fixture
def developer() -> UserInfo:
    return UserInfo(username="dev@example.com", email="dev@example.com", groups=["team-b-devs"])
