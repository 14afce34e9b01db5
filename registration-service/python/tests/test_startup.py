"""
Tests for the startup sequence that wires the registration manager.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from grs.core.config import settings
from grs.core.errors import ConfigurationError
from grs.core.startup import run_startup_tasks, wait_for_cluster


@pytest.fixture
def startup_env(cluster, monkeypatch):
    monkeypatch.setattr(settings, "CONFIG_PATH", None)
    with (
        patch("grs.core.startup.create_kubectl_connector", return_value=cluster),
        patch("grs.core.startup.create_argo_connector", return_value=MagicMock()),
    ):
        yield


@pytest.mark.asyncio
async def test_wait_for_cluster(cluster):
    assert await wait_for_cluster(cluster) is True
    assert cluster.count("check_connection") == 1


@pytest.mark.asyncio
async def test_startup_attaches_manager(startup_env, cluster):
    app = SimpleNamespace(state=SimpleNamespace(manager=None))

    manager = await run_startup_tasks(app)

    assert app.state.manager is manager
    assert manager.cluster is cluster
    assert manager.config.argocd.namespace == "argocd"


@pytest.mark.asyncio
async def test_startup_fails_on_missing_impersonation_role(startup_env, cluster, monkeypatch, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("security:\n  impersonation:\n    enabled: true\n    clusterRole: absent-role\n")
    monkeypatch.setattr(settings, "CONFIG_PATH", str(config_file))
    app = SimpleNamespace(state=SimpleNamespace(manager=None))

    with pytest.raises(ConfigurationError):
        await run_startup_tasks(app)

    assert app.state.manager is None
