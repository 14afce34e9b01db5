"""
Tests for the HTTP API, with the registration manager wired to in-memory fakes.
"""

import pytest
from fastapi.testclient import TestClient
from fakes import make_config

from grs.connectors.kubectl import KubectlConnectionError
from grs.server import create_app

ADMIN_TOKEN = "admin-token"
AUTH = {"Authorization": f"Bearer {ADMIN_TOKEN}"}

BODY = {"repository": {"url": "https://github.com/example/team-a-config", "branch": "main"}, "namespace": "team-a"}


@pytest.fixture
def client(make_manager, cluster) -> TestClient:
    cluster.tokens[ADMIN_TOKEN] = {
        "authenticated": True,
        "user": {"username": "admin@example.com", "groups": ["system:masters", "system:authenticated"]},
    }
    # no context manager: the lifespan would try to reach a real cluster
    return TestClient(create_app(make_manager()))


def test_live_probe(client):
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_ready_probe(client, cluster):
    assert client.get("/health/ready").status_code == 200

    cluster.connected = False
    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["checks"] == {"kubernetes": False}


def test_not_ready_without_manager():
    client = TestClient(create_app())

    assert client.get("/health/ready").status_code == 503
    response = client.get("/api/v1/registrations")
    assert response.status_code == 503
    assert response.json()["error"] == "SERVICE_UNAVAILABLE"


def test_create_requires_token(client):
    response = client.post("/api/v1/registrations", json=BODY)

    assert response.status_code == 401
    assert response.json() == {
        "error": "AUTHENTICATION_REQUIRED",
        "message": "Valid authentication required",
        "code": 401,
    }


def test_create_rejects_unknown_token(client):
    response = client.post("/api/v1/registrations", json=BODY, headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_create_registration(client, cluster, gitops):
    response = client.post("/api/v1/registrations", json=BODY, headers=AUTH)

    assert response.status_code == 201
    body = response.json()
    assert body["namespace"] == "team-a"
    assert body["repository"]["url"] == BODY["repository"]["url"]
    assert body["status"]["phase"] == "active"
    assert body["status"]["argocdApplication"] == "team-a-app"
    assert "team-a" in cluster.namespaces
    assert "team-a" in gitops.projects


def test_invalid_body(client):
    response = client.post("/api/v1/registrations", json={"namespace": "team-a"}, headers=AUTH)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "INVALID_REQUEST"
    assert body["details"]["errors"][0]["field"] == "repository"


def test_invalid_namespace(client):
    response = client.post("/api/v1/registrations", json={**BODY, "namespace": "Team_A"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_REQUEST"


def test_duplicate_repository(client):
    client.post("/api/v1/registrations", json=BODY, headers=AUTH)

    response = client.post("/api/v1/registrations", json={**BODY, "namespace": "team-z"}, headers=AUTH)

    assert response.status_code == 409
    assert response.json()["error"] == "REPOSITORY_CONFLICT"


def test_existing_namespace(client, cluster):
    cluster.add_namespace("team-b")
    body = {"repository": {"url": "https://github.com/example/team-b-config"}, "existingNamespace": "team-b"}

    response = client.post("/api/v1/registrations/existing", json=body, headers=AUTH)

    assert response.status_code == 201
    assert response.json()["status"]["namespaceCreated"] is False


def test_get_list_and_delete(client, cluster):
    created = client.post("/api/v1/registrations", json=BODY, headers=AUTH).json()

    assert client.get(f"/api/v1/registrations/{created['id']}").json()["namespace"] == "team-a"
    assert [r["id"] for r in client.get("/api/v1/registrations").json()] == [created["id"]]
    assert client.get("/api/v1/registrations", params={"phase": "failed"}).json() == []
    status = client.get(f"/api/v1/registrations/{created['id']}/status").json()
    assert status["phase"] == "active"

    assert client.delete(f"/api/v1/registrations/{created['id']}").status_code == 401
    response = client.delete(f"/api/v1/registrations/{created['id']}", headers=AUTH)

    assert response.status_code == 204
    assert "team-a" not in cluster.namespaces
    assert client.get(f"/api/v1/registrations/{created['id']}").status_code == 404


def test_unknown_phase_filter(client):
    response = client.get("/api/v1/registrations", params={"phase": "sleeping"})

    assert response.status_code == 400
    assert response.json()["details"] == {"field": "phase"}


def test_not_found(client):
    response = client.get("/api/v1/registrations/6f1c2a7e-0000-4000-8000-000000000000")

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_sync(client, gitops):
    created = client.post("/api/v1/registrations", json=BODY, headers=AUTH).json()

    response = client.post(f"/api/v1/registrations/{created['id']}/sync", headers=AUTH)
    assert response.status_code == 202
    assert response.json()["syncTriggered"] is True

    gitops.sync_result = False
    assert client.post(f"/api/v1/registrations/{created['id']}/sync", headers=AUTH).status_code == 502


def test_registration_disabled(make_manager, cluster):
    cluster.tokens[ADMIN_TOKEN] = {"authenticated": True, "user": {"username": "admin@example.com"}}
    client = TestClient(create_app(make_manager(make_config(registration={"allowNewNamespaces": False}))))

    assert client.get("/api/v1/registration-status").json()["allowNewNamespaces"] is False
    response = client.post("/api/v1/registrations", json=BODY, headers=AUTH)
    assert response.status_code == 403
    assert response.json()["error"] == "REGISTRATION_DISABLED"


def test_capacity(client):
    body = client.get("/api/v1/capacity").json()

    assert body["enabled"] is False
    assert body["status"] == "disabled"


def test_read_failure_is_a_structured_error(client, gitops):
    client.post("/api/v1/registrations", json=BODY, headers=AUTH)
    gitops.fail("get_project", KubectlConnectionError("Kubernetes API server not reachable"))

    response = client.get("/api/v1/registrations")

    assert response.status_code == 500
    assert response.json() == {
        "error": "READ_FAILED",
        "message": "Failed to read AppProject at step 'read-appproject'",
        "details": {"step": "read-appproject", "resource": "AppProject"},
        "code": 500,
    }


def test_metrics_count_registration_outcomes(client):
    client.post("/api/v1/registrations", json=BODY, headers=AUTH)
    client.post("/api/v1/registrations", json={**BODY, "namespace": "team-z"}, headers=AUTH)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'gitops_registration_requests_total{kind="new_namespace",outcome="success"} 1.0' in response.text
    assert 'gitops_registration_requests_total{kind="new_namespace",outcome="repository_conflict"} 1.0' in (
        response.text
    )


def test_metrics_served_before_startup():
    response = TestClient(create_app()).get("/metrics")

    assert response.status_code == 200
    assert "gitops_registration_capacity_denials_total 0.0" in response.text


def test_cors_preflight(client):
    response = client.options(
        "/api/v1/registrations",
        headers={
            "Origin": "https://console.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://console.example.com"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "POST" in response.headers["access-control-allow-methods"]
