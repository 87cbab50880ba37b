"""Tests for the shared data types."""

import pytest

from ekspose.errors import MalformedKeyError
from ekspose.models import (
    Added,
    Deleted,
    ManagedResource,
    OutcomeKind,
    ReconcileKey,
    ReconcileOutcome,
    meta_namespace_key,
)


class TestReconcileKey:
    """Test cases for ReconcileKey."""

    def test_parse(self):
        key = ReconcileKey.parse("ns1/web")
        assert key == ReconcileKey(namespace="ns1", name="web")
        assert str(key) == "ns1/web"

    @pytest.mark.parametrize("raw", ["garbage", "a/b/c", "/web", "ns1/", "", "/"])
    def test_parse_malformed(self, raw):
        with pytest.raises(MalformedKeyError):
            ReconcileKey.parse(raw)

    def test_parse_non_string(self):
        with pytest.raises(MalformedKeyError):
            ReconcileKey.parse(42)

    def test_keys_are_hashable_and_immutable(self):
        key = ReconcileKey("ns1", "web")
        assert {key, ReconcileKey("ns1", "web")} == {key}
        with pytest.raises(AttributeError):
            key.name = "other"

    def test_meta_namespace_key_without_namespace(self):
        assert meta_namespace_key("", "node-1") == "node-1"


class TestManagedResource:
    """Test cases for ManagedResource."""

    def test_from_deployment(self, web_deployment):
        resource = ManagedResource.from_deployment(web_deployment)

        assert resource.name == "web"
        assert resource.namespace == "ns1"
        assert resource.labels == {"team": "platform"}
        assert resource.selector == {"app": "web"}
        assert resource.template_labels == {"app": "web"}
        assert resource.key == "ns1/web"

    def test_from_deployment_copies_labels(self, web_deployment):
        resource = ManagedResource.from_deployment(web_deployment)
        resource.template_labels["extra"] = "x"

        assert web_deployment.spec.template.metadata.labels == {"app": "web"}

    def test_notifications_share_the_key(self, web_deployment):
        resource = ManagedResource.from_deployment(web_deployment)

        assert Added(resource).key == Deleted(resource).key == "ns1/web"
        assert Added(resource) != Deleted(resource)


class TestReconcileOutcome:
    """Test cases for ReconcileOutcome."""

    def test_succeeded(self):
        assert ReconcileOutcome.applied().succeeded
        assert ReconcileOutcome.deleted_cascade().succeeded
        assert not ReconcileOutcome.failed("boom").succeeded
        assert not ReconcileOutcome.not_found_transient("bad key").succeeded

    def test_str(self):
        assert str(ReconcileOutcome.applied()) == "Applied"
        assert str(ReconcileOutcome.failed("boom")) == "Failed(boom)"
        assert ReconcileOutcome.failed("boom").kind == OutcomeKind.FAILED
