"""Desired child resources for a Deployment."""

from kubernetes import client

from .config import (
    INGRESS_ANNOTATIONS,
    INGRESS_PATH_TYPE,
    SERVICE_PORT,
    SERVICE_PORT_NAME,
)
from .models import DesiredChildSpec, ManagedResource, RouteSpec, ServiceSpec


def build_service_spec(resource: ManagedResource) -> ServiceSpec:
    """Service named after the Deployment, selecting its pod template labels."""
    return ServiceSpec(
        name=resource.name,
        namespace=resource.namespace,
        selector=dict(resource.template_labels),
        port_name=SERVICE_PORT_NAME,
        port=SERVICE_PORT,
    )


def build_route_spec(service: ServiceSpec) -> RouteSpec:
    """Ingress route ``/<service-name>`` pointing at the given Service."""
    return RouteSpec(
        name=service.name,
        namespace=service.namespace,
        path=f"/{service.name}",
        path_type=INGRESS_PATH_TYPE,
        service_name=service.name,
        service_port=service.port,
        annotations=dict(INGRESS_ANNOTATIONS),
    )


def build_desired_children(resource: ManagedResource) -> DesiredChildSpec:
    """
    Compute the child resources a Deployment should have.

    Args:
        resource: The Deployment projection

    Returns:
        DesiredChildSpec holding the Service and Ingress specs
    """
    service = build_service_spec(resource)
    return DesiredChildSpec(service=service, route=build_route_spec(service))


def render_service(spec: ServiceSpec) -> client.V1Service:
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(name=spec.name, namespace=spec.namespace),
        spec=client.V1ServiceSpec(
            selector=dict(spec.selector),
            ports=[client.V1ServicePort(name=spec.port_name, port=spec.port)],
        ),
    )


def render_ingress(spec: RouteSpec) -> client.V1Ingress:
    backend = client.V1IngressBackend(
        service=client.V1IngressServiceBackend(
            name=spec.service_name,
            port=client.V1ServiceBackendPort(number=spec.service_port),
        )
    )
    path = client.V1HTTPIngressPath(
        path=spec.path,
        path_type=spec.path_type,
        backend=backend,
    )
    return client.V1Ingress(
        api_version="networking.k8s.io/v1",
        kind="Ingress",
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            annotations=dict(spec.annotations) or None,
        ),
        spec=client.V1IngressSpec(
            rules=[
                client.V1IngressRule(
                    http=client.V1HTTPIngressRuleValue(paths=[path])
                )
            ]
        ),
    )
