"""Pytest configuration and fixtures for ekspose tests."""

import pytest
from unittest.mock import MagicMock
from kubernetes import client

from ekspose.cluster import ClusterClient
from ekspose.informer import DeploymentInformer


def make_deployment(name="web", namespace="ns1", template_labels=None, resource_version="1"):
    """Build a V1Deployment the way the API server returns it."""
    template_labels = {"app": name} if template_labels is None else template_labels
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels={"team": "platform"},
            resource_version=resource_version,
        ),
        spec=client.V1DeploymentSpec(
            replicas=1,
            selector=client.V1LabelSelector(match_labels=dict(template_labels)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=dict(template_labels))
            ),
        ),
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def deployment_factory():
    return make_deployment


@pytest.fixture
def web_deployment():
    """ManagedResource ns1/web with template labels {app: web}."""
    return make_deployment("web", "ns1", {"app": "web"})


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_cluster():
    """ClusterClient whose API calls all succeed."""
    return MagicMock(spec=ClusterClient)


@pytest.fixture
def mock_informer():
    """Synced informer with an empty cache."""
    informer = MagicMock(spec=DeploymentInformer)
    informer.has_synced.return_value = True
    informer.get.return_value = None
    return informer


@pytest.fixture
def mock_api_clients():
    """Mocked API classes used by ClusterClient."""
    return {
        "apps_api": MagicMock(spec=client.AppsV1Api),
        "core_api": MagicMock(spec=client.CoreV1Api),
        "networking_api": MagicMock(spec=client.NetworkingV1Api),
    }
