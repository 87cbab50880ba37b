"""Client for the cluster operations the reconciler depends on."""

import logging
from typing import Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .desired_state import render_ingress, render_service
from .errors import AlreadyExistsError, NotFoundError, TransientRemoteError
from .models import RouteSpec, ServiceSpec

logger = logging.getLogger(__name__)


def translate_api_error(operation: str, error: Exception) -> Exception:
    """
    Map a client exception to the controller's error types.

    Args:
        operation: Human readable description, used in the message
        error: ApiException or urllib3 transport error

    Returns:
        NotFoundError, AlreadyExistsError or TransientRemoteError
    """
    status = getattr(error, "status", None)
    reason = getattr(error, "reason", None) or str(error)

    if status == 404:
        return NotFoundError(f"{operation}: not found")
    if status == 409:
        return AlreadyExistsError(f"{operation}: already exists")
    return TransientRemoteError(f"{operation}: {reason}", status=status)


class ClusterClient:
    """Live reads and child resource writes against the API server."""

    def __init__(
        self,
        apps_api: Optional[client.AppsV1Api] = None,
        core_api: Optional[client.CoreV1Api] = None,
        networking_api: Optional[client.NetworkingV1Api] = None
    ):
        self.apps_v1 = apps_api or client.AppsV1Api()
        self.core_v1 = core_api or client.CoreV1Api()
        self.networking_v1 = networking_api or client.NetworkingV1Api()

    def get_live_deployment(self, namespace: str, name: str) -> client.V1Deployment:
        """
        Read a Deployment straight from the API server, bypassing any cache.

        Raises:
            NotFoundError: the Deployment does not exist
            TransientRemoteError: the read failed
        """
        operation = f"get deployment {namespace}/{name}"
        try:
            return self.apps_v1.read_namespaced_deployment(name=name, namespace=namespace)
        except (ApiException, HTTPError) as e:
            raise translate_api_error(operation, e) from e

    def create_service(self, spec: ServiceSpec) -> client.V1Service:
        operation = f"create service {spec.namespace}/{spec.name}"
        try:
            service = self.core_v1.create_namespaced_service(
                namespace=spec.namespace,
                body=render_service(spec)
            )
        except (ApiException, HTTPError) as e:
            raise translate_api_error(operation, e) from e

        logger.info(f"Created service {spec.namespace}/{spec.name}")
        return service

    def create_ingress(self, spec: RouteSpec) -> client.V1Ingress:
        operation = f"create ingress {spec.namespace}/{spec.name}"
        try:
            ingress = self.networking_v1.create_namespaced_ingress(
                namespace=spec.namespace,
                body=render_ingress(spec)
            )
        except (ApiException, HTTPError) as e:
            raise translate_api_error(operation, e) from e

        logger.info(f"Created ingress {spec.namespace}/{spec.name}")
        return ingress

    def delete_service(self, namespace: str, name: str) -> None:
        """Delete a Service; an already absent Service is not an error."""
        operation = f"delete service {namespace}/{name}"
        try:
            self.core_v1.delete_namespaced_service(name=name, namespace=namespace)
        except (ApiException, HTTPError) as e:
            error = translate_api_error(operation, e)
            if isinstance(error, NotFoundError):
                logger.debug(f"Service {namespace}/{name} already absent")
                return
            raise error from e

        logger.info(f"Deleted service {namespace}/{name}")

    def delete_ingress(self, namespace: str, name: str) -> None:
        """Delete an Ingress; an already absent Ingress is not an error."""
        operation = f"delete ingress {namespace}/{name}"
        try:
            self.networking_v1.delete_namespaced_ingress(name=name, namespace=namespace)
        except (ApiException, HTTPError) as e:
            error = translate_api_error(operation, e)
            if isinstance(error, NotFoundError):
                logger.debug(f"Ingress {namespace}/{name} already absent")
                return
            raise error from e

        logger.info(f"Deleted ingress {namespace}/{name}")
