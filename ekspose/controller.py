"""Main controller logic for ekspose."""

import logging
import threading
from typing import List, Optional

from .cluster import ClusterClient
from .config import DEFAULT_WORKERS, QUEUE_NAME, WORKER_RESTART_SECONDS
from .events import EventRouter
from .informer import DeploymentInformer, wait_for_cache_sync
from .models import OutcomeKind, ReconcileOutcome
from .reconciler import DeploymentReconciler
from .workqueue import RateLimitingQueue

logger = logging.getLogger(__name__)


class ExposeController:
    """
    Watches Deployments and keeps a Service and an Ingress for each one.

    Notifications from the informer are routed into a rate limited work
    queue; worker threads pull keys from it and run the reconciler.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        informer: DeploymentInformer,
        queue: Optional[RateLimitingQueue] = None,
        dry_run: bool = False
    ):
        """
        Initialize the controller.

        Args:
            cluster: Client for live reads and child resource writes
            informer: Deployment cache; its handlers are wired to the queue
            queue: Work queue to use (a default rate limited one if None)
            dry_run: If True, don't make actual changes
        """
        self.cluster = cluster
        self.informer = informer
        self.queue = queue or RateLimitingQueue(name=QUEUE_NAME)
        self.dry_run = dry_run

        self.reconciler = DeploymentReconciler(cluster, informer, dry_run=dry_run)
        self.router = EventRouter(self.queue)
        informer.add_event_handler(
            on_add=self.router.on_add,
            on_delete=self.router.on_delete
        )

        self._workers: List[threading.Thread] = []

    def process_next_item(self) -> bool:
        """
        Reconcile one key from the queue.

        Returns:
            False once the queue has shut down, True otherwise
        """
        key, shutdown = self.queue.get()
        if shutdown:
            return False

        try:
            try:
                outcome = self.reconciler.reconcile(key)
            except Exception as e:
                logger.exception(f"Unexpected error reconciling {key}")
                outcome = ReconcileOutcome.failed(f"unexpected error: {e}")
            self._handle_outcome(key, outcome)
        finally:
            self.queue.done(key)

        return True

    def _handle_outcome(self, key: str, outcome: ReconcileOutcome) -> None:
        if outcome.succeeded:
            logger.info(f"Reconciled {key}: {outcome}")
            self.queue.forget(key)
        elif outcome.kind == OutcomeKind.NOT_FOUND_TRANSIENT:
            logger.warning(f"Dropping {key}: {outcome.reason}")
        else:
            retries = self.queue.num_requeues(key)
            logger.warning(f"Reconcile of {key} failed (retry {retries + 1}): {outcome.reason}")
            self.queue.add_rate_limited(key)

    def run_worker(self, stop_event: Optional[threading.Event] = None) -> None:
        """Process keys until the queue shuts down or ``stop_event`` is set."""
        while stop_event is None or not stop_event.is_set():
            if not self.process_next_item():
                return

    def _run_worker_until(self, stop_event: threading.Event) -> None:
        """Keep a worker alive until stop, restarting it after a short pause."""
        while not stop_event.is_set():
            try:
                self.run_worker(stop_event)
            except Exception as e:
                logger.error(f"Unexpected error in worker: {e}")
            if self.queue.shutting_down:
                break
            stop_event.wait(WORKER_RESTART_SECONDS)

    def run(self, stop_event: threading.Event, workers: int = DEFAULT_WORKERS) -> bool:
        """
        Run the controller until ``stop_event`` is set.

        Args:
            stop_event: Stops the controller when set
            workers: Number of concurrent worker threads

        Returns:
            False if the cache never synced and no worker was started
        """
        logger.info("=" * 60)
        logger.info("Starting ekspose controller")
        logger.info("=" * 60)
        logger.info(f"Workers: {workers}")
        logger.info(f"Dry run: {self.dry_run}")

        if not wait_for_cache_sync(stop_event, self.informer.has_synced):
            logger.error("Deployment cache did not sync, not starting workers")
            self.queue.shut_down()
            return False

        for i in range(workers):
            thread = threading.Thread(
                target=self._run_worker_until,
                args=(stop_event,),
                name=f"worker-{i}",
                daemon=True
            )
            thread.start()
            self._workers.append(thread)

        logger.info("Controller is running")
        stop_event.wait()

        self.stop()
        return True

    def stop(self) -> None:
        """Shut down the queue and wait for workers to finish their current item."""
        logger.info("Stopping controller...")
        self.queue.shut_down()
        for thread in self._workers:
            thread.join()
        self._workers = []
