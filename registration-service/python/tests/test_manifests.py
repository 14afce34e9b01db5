"""
Tests for rendering the Argo CD manifests of a registration.
"""

import pytest

from grs.core.labels import REPOSITORY_HASH_LABEL, managed_by_labels
from grs.generation.manifests import ManifestGenerator, parse_manifest
from grs.models import Application, AppProject


@pytest.fixture
def generator() -> ManifestGenerator:
    return ManifestGenerator()


def make_project(**overrides) -> AppProject:
    values = {
        "name": "team-a",
        "namespace": "argocd",
        "labels": {**managed_by_labels(), REPOSITORY_HASH_LABEL: "0123456789abcdef"},
        "source_repos": ["https://github.com/org/repo"],
        "destination_namespace": "team-a",
    }
    values.update(overrides)
    return AppProject(**values)


def test_template_manifest_appends_newline(generator):
    assert generator.template_manifest("name: {{ name }}", {"name": "x"}) == "name: x\n"


def test_app_project(generator):
    manifest = parse_manifest(generator.render_app_project(make_project()))

    assert manifest["kind"] == "AppProject"
    assert manifest["metadata"]["name"] == "team-a"
    assert manifest["metadata"]["namespace"] == "argocd"
    assert manifest["metadata"]["labels"][REPOSITORY_HASH_LABEL] == "0123456789abcdef"
    assert manifest["spec"]["sourceRepos"] == ["https://github.com/org/repo"]
    assert manifest["spec"]["destinations"] == [{"server": "https://kubernetes.default.svc", "namespace": "team-a"}]
    assert "destinationServiceAccounts" not in manifest["spec"]
    assert "namespaceResourceWhitelist" not in manifest["spec"]


def test_app_project_tenant_role(generator):
    manifest = parse_manifest(generator.render_app_project(make_project()))

    (role,) = manifest["spec"]["roles"]
    assert role["name"] == "tenant-role"
    assert role["policies"] == [
        f"p, proj:team-a:tenant-role, applications, {action}, team-a/*, allow" for action in ("sync", "get", "update")
    ]


def test_app_project_with_service_account(generator):
    manifest = parse_manifest(generator.render_app_project(make_project(service_account="gitops-sa-x7k2p")))

    assert manifest["spec"]["destinationServiceAccounts"] == [
        {"server": "https://kubernetes.default.svc", "namespace": "team-a", "defaultServiceAccount": "gitops-sa-x7k2p"}
    ]


def test_app_project_with_restrictions(generator):
    entries = [{"group": "apps", "kind": "Deployment"}, {"group": "", "kind": "Service"}]
    project = make_project(restrictions={"clusterResourceWhitelist": entries, "namespaceResourceWhitelist": entries})

    manifest = parse_manifest(generator.render_app_project(project))

    assert manifest["spec"]["clusterResourceWhitelist"] == entries
    assert manifest["spec"]["namespaceResourceWhitelist"] == entries
    # restrictions never widen the destinations
    assert manifest["spec"]["destinations"][0]["namespace"] == "team-a"


def test_values_cannot_inject_yaml(generator):
    project = make_project(source_repos=['https://example.com/repo"\n  evil: true'])

    manifest = parse_manifest(generator.render_app_project(project))

    assert manifest["spec"]["sourceRepos"] == ['https://example.com/repo"\n  evil: true']
    assert "evil" not in manifest["spec"]


def test_application(generator):
    application = Application(
        name="team-a",
        namespace="argocd",
        project="team-a",
        labels=managed_by_labels(),
        repo_url="https://github.com/org/repo",
        target_revision="develop",
        destination_namespace="team-a",
    )

    manifest = parse_manifest(generator.render_application(application))

    assert manifest["kind"] == "Application"
    assert manifest["spec"]["project"] == "team-a"
    assert manifest["spec"]["source"] == {
        "repoURL": "https://github.com/org/repo",
        "targetRevision": "develop",
        "path": "manifests",
    }
    assert manifest["spec"]["destination"]["namespace"] == "team-a"
    assert manifest["spec"]["syncPolicy"]["automated"] == {"prune": True, "selfHeal": True}
    assert manifest["spec"]["syncPolicy"]["syncOptions"] == [
        "CreateNamespace=false",
        "PrunePropagationPolicy=background",
        "PruneLast=true",
    ]
