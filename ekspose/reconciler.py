"""Reconciliation logic: keep a Service and an Ingress per Deployment."""

import logging

from .cluster import ClusterClient
from .desired_state import build_desired_children
from .errors import (
    AlreadyExistsError,
    ControllerError,
    MalformedKeyError,
    NotFoundError,
)
from .models import DesiredChildSpec, ManagedResource, ReconcileKey, ReconcileOutcome

logger = logging.getLogger(__name__)


class DeploymentReconciler:
    """Converges the children of one Deployment per call."""

    def __init__(self, cluster: ClusterClient, informer, dry_run: bool = False):
        """
        Initialize the reconciler.

        Args:
            cluster: Client used for live reads and child writes
            informer: Deployment cache used for spec reads
            dry_run: If True, don't make actual changes
        """
        self.cluster = cluster
        self.informer = informer
        self.dry_run = dry_run

    def reconcile(self, key: str) -> ReconcileOutcome:
        """
        Reconcile the Deployment identified by a queue key.

        Existence is checked against the API server, not the cache, so a
        stale cache can never cause children to be deleted.

        Args:
            key: ``namespace/name`` queue key

        Returns:
            ReconcileOutcome for the worker to act on
        """
        try:
            target = ReconcileKey.parse(key)
        except MalformedKeyError as e:
            logger.error(f"Dropping key {key!r}: {e}")
            return ReconcileOutcome.not_found_transient(str(e))

        try:
            live = self.cluster.get_live_deployment(target.namespace, target.name)
        except NotFoundError:
            logger.info(f"Deployment {target} is gone, deleting its children")
            return self._delete_children(target)
        except ControllerError as e:
            logger.error(f"Error reading deployment {target}: {e}")
            return ReconcileOutcome.failed(str(e))

        return self._apply_children(target, live)

    def _resource_for(self, target: ReconcileKey, live) -> ManagedResource:
        cached = self.informer.get(target.namespace, target.name)
        if cached is None:
            logger.debug(f"Deployment {target} not cached yet, using live object")
            cached = live
        return ManagedResource.from_deployment(cached)

    def _apply_children(self, target: ReconcileKey, live) -> ReconcileOutcome:
        desired = build_desired_children(self._resource_for(target, live))
        service = desired.service

        if self.dry_run:
            self._log_dry_run_apply(desired)
            return ReconcileOutcome.applied()

        logger.info(f"Creating service {service.namespace}/{service.name}")
        try:
            self.cluster.create_service(service)
        except AlreadyExistsError:
            logger.info(f"Service {service.namespace}/{service.name} already exists")
        except ControllerError as e:
            logger.error(f"Error creating service for deployment {target}: {e}")
            return ReconcileOutcome.failed(str(e))

        route = desired.route
        try:
            self.cluster.create_ingress(route)
        except AlreadyExistsError:
            logger.info(f"Ingress {route.namespace}/{route.name} already exists")
        except ControllerError as e:
            reason = f"partial apply: service {service.name} created but ingress failed: {e}"
            logger.error(f"Error creating ingress for deployment {target}: {reason}")
            return ReconcileOutcome.failed(reason)

        return ReconcileOutcome.applied()

    def _delete_children(self, target: ReconcileKey) -> ReconcileOutcome:
        if self.dry_run:
            logger.info(f"[DRY-RUN] Would delete service {target}")
            logger.info(f"[DRY-RUN] Would delete ingress {target}")
            return ReconcileOutcome.deleted_cascade()

        errors = []
        # The two deletions are independent; one failing does not skip the other
        try:
            self.cluster.delete_service(target.namespace, target.name)
        except ControllerError as e:
            logger.error(f"Error deleting service {target}: {e}")
            errors.append(str(e))

        try:
            self.cluster.delete_ingress(target.namespace, target.name)
        except ControllerError as e:
            logger.error(f"Error deleting ingress {target}: {e}")
            errors.append(str(e))

        if errors:
            return ReconcileOutcome.failed("; ".join(errors))
        return ReconcileOutcome.deleted_cascade()

    @staticmethod
    def _log_dry_run_apply(desired: DesiredChildSpec) -> None:
        service = desired.service
        route = desired.route
        logger.info(f"[DRY-RUN] Would create service {service.namespace}/{service.name}")
        logger.info(f"[DRY-RUN] Selector: {service.selector}, port: {service.port_name}/{service.port}")
        logger.info(
            f"[DRY-RUN] Would create ingress {route.namespace}/{route.name} "
            f"path {route.path} -> {route.service_name}:{route.service_port}"
        )
