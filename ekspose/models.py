"""Data types shared by the controller components."""

import enum
from dataclasses import dataclass, field
from typing import Dict

from .errors import MalformedKeyError


def meta_namespace_key(namespace: str, name: str) -> str:
    """Build a queue key; cluster-scoped objects get a bare name."""
    if namespace:
        return f"{namespace}/{name}"
    return name


@dataclass(frozen=True)
class ReconcileKey:
    """Identity of one Deployment awaiting reconciliation."""
    namespace: str
    name: str

    @classmethod
    def parse(cls, key: str) -> "ReconcileKey":
        """
        Split a ``namespace/name`` queue key.

        Raises:
            MalformedKeyError: if the key does not have exactly two
                non-empty parts
        """
        if not isinstance(key, str):
            raise MalformedKeyError(f"queue key must be a string, got {type(key).__name__}")

        parts = key.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise MalformedKeyError(f"unexpected key format: {key!r}")
        return cls(namespace=parts[0], name=parts[1])

    def __str__(self) -> str:
        return meta_namespace_key(self.namespace, self.name)


@dataclass
class ManagedResource:
    """Read-only projection of a Deployment."""
    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    selector: Dict[str, str] = field(default_factory=dict)
    template_labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_deployment(cls, deployment) -> "ManagedResource":
        """Create a ManagedResource from a V1Deployment."""
        metadata = deployment.metadata
        spec = deployment.spec

        selector = {}
        template_labels = {}
        if spec is not None:
            if spec.selector is not None:
                selector = dict(spec.selector.match_labels or {})
            if spec.template is not None and spec.template.metadata is not None:
                template_labels = dict(spec.template.metadata.labels or {})

        return cls(
            name=metadata.name or "",
            namespace=metadata.namespace or "",
            labels=dict(metadata.labels or {}),
            selector=selector,
            template_labels=template_labels,
        )

    @property
    def key(self) -> str:
        return meta_namespace_key(self.namespace, self.name)


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    namespace: str
    selector: Dict[str, str]
    port_name: str
    port: int


@dataclass(frozen=True)
class RouteSpec:
    name: str
    namespace: str
    path: str
    path_type: str
    service_name: str
    service_port: int
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DesiredChildSpec:
    """The Service and Ingress a Deployment should have."""
    service: ServiceSpec
    route: RouteSpec


class OutcomeKind(enum.Enum):
    APPLIED = "Applied"
    DELETED_CASCADE = "DeletedCascade"
    NOT_FOUND_TRANSIENT = "NotFoundTransient"
    FAILED = "Failed"


@dataclass(frozen=True)
class ReconcileOutcome:
    """Result of reconciling one key; drives the work queue feedback."""
    kind: OutcomeKind
    reason: str = ""

    @classmethod
    def applied(cls) -> "ReconcileOutcome":
        return cls(OutcomeKind.APPLIED)

    @classmethod
    def deleted_cascade(cls) -> "ReconcileOutcome":
        return cls(OutcomeKind.DELETED_CASCADE)

    @classmethod
    def not_found_transient(cls, reason: str) -> "ReconcileOutcome":
        return cls(OutcomeKind.NOT_FOUND_TRANSIENT, reason)

    @classmethod
    def failed(cls, reason: str) -> "ReconcileOutcome":
        return cls(OutcomeKind.FAILED, reason)

    @property
    def succeeded(self) -> bool:
        return self.kind in (OutcomeKind.APPLIED, OutcomeKind.DELETED_CASCADE)

    def __str__(self) -> str:
        if self.reason:
            return f"{self.kind.value}({self.reason})"
        return self.kind.value


@dataclass(frozen=True)
class Notification:
    """A decoded watch notification for a Deployment."""
    resource: ManagedResource

    @property
    def key(self) -> str:
        return self.resource.key


class Added(Notification):
    pass


class Deleted(Notification):
    pass
