"""Local mirror of Deployments fed by a list-then-watch loop."""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .config import (
    CACHE_SYNC_POLL_SECONDS,
    RELIST_BACKOFF_SECONDS,
    WATCH_TIMEOUT_SECONDS,
)
from .models import meta_namespace_key

logger = logging.getLogger(__name__)


@dataclass
class EventHandler:
    on_add: Optional[Callable] = None
    on_delete: Optional[Callable] = None


def wait_for_cache_sync(
    stop_event: threading.Event,
    *synced_funcs: Callable[[], bool],
    poll_interval: float = CACHE_SYNC_POLL_SECONDS
) -> bool:
    """
    Block until every informer reports it has synced.

    Args:
        stop_event: Aborts the wait when set
        synced_funcs: ``has_synced`` callables to poll
        poll_interval: Seconds between polls

    Returns:
        True once all caches are synced, False if stopped first
    """
    logger.info("Waiting for caches to sync...")

    while True:
        if all(synced() for synced in synced_funcs):
            logger.info("Caches are synced")
            return True
        if stop_event.wait(poll_interval):
            logger.warning("Stopped before caches synced")
            return False


class DeploymentInformer:
    """
    Thread-safe cache of Deployments kept current by the watch API.

    Registered handlers are called from the informer thread: ``on_add`` for
    every Deployment that appears (including the initial listing) and
    ``on_delete`` for every Deployment that goes away.
    """

    def __init__(
        self,
        apps_api: Optional[client.AppsV1Api] = None,
        namespace: str = "",
        watch_timeout: int = WATCH_TIMEOUT_SECONDS
    ):
        """
        Initialize the informer.

        Args:
            apps_api: AppsV1Api to list and watch with
            namespace: Namespace to watch ("" for all namespaces)
            watch_timeout: Server side timeout of each watch request
        """
        self.apps_v1 = apps_api or client.AppsV1Api()
        self.namespace = namespace
        self.watch_timeout = watch_timeout

        self._store: Dict[str, client.V1Deployment] = {}
        self._lock = threading.RLock()
        self._handlers: List[EventHandler] = []
        self._synced = threading.Event()
        self._resource_version: Optional[str] = None

    def add_event_handler(
        self,
        on_add: Optional[Callable] = None,
        on_delete: Optional[Callable] = None
    ) -> None:
        self._handlers.append(EventHandler(on_add=on_add, on_delete=on_delete))

    def has_synced(self) -> bool:
        return self._synced.is_set()

    def get(self, namespace: str, name: str) -> Optional[client.V1Deployment]:
        """Return the cached Deployment or None."""
        with self._lock:
            return self._store.get(meta_namespace_key(namespace, name))

    def list(self) -> List[client.V1Deployment]:
        with self._lock:
            return list(self._store.values())

    def _dispatch_add(self, obj) -> None:
        for handler in self._handlers:
            if handler.on_add:
                handler.on_add(obj)

    def _dispatch_delete(self, obj) -> None:
        for handler in self._handlers:
            if handler.on_delete:
                handler.on_delete(obj)

    @staticmethod
    def _key_of(obj) -> str:
        return meta_namespace_key(obj.metadata.namespace, obj.metadata.name)

    def _list(self):
        if self.namespace:
            return self.apps_v1.list_namespaced_deployment(namespace=self.namespace)
        return self.apps_v1.list_deployment_for_all_namespaces()

    def relist(self) -> int:
        """
        Replace the store with a fresh listing.

        Deployments new to the store are dispatched as adds, those missing
        from the listing as deletes.

        Returns:
            Number of Deployments listed
        """
        response = self._list()
        items = response.items or []
        listed = {self._key_of(obj): obj for obj in items}

        with self._lock:
            added = [obj for key, obj in listed.items() if key not in self._store]
            removed = [obj for key, obj in self._store.items() if key not in listed]
            self._store = listed
            self._resource_version = response.metadata.resource_version

        for obj in added:
            self._dispatch_add(obj)
        for obj in removed:
            self._dispatch_delete(obj)

        self._synced.set()
        logger.info(f"Listed {len(items)} deployment(s) at resourceVersion {self._resource_version}")
        return len(items)

    def handle_event(self, event_type: str, obj) -> None:
        """Apply one watch event to the store."""
        key = self._key_of(obj)
        resource_version = obj.metadata.resource_version

        if event_type in ("ADDED", "MODIFIED"):
            with self._lock:
                existed = key in self._store
                self._store[key] = obj
            if not existed:
                self._dispatch_add(obj)
        elif event_type == "DELETED":
            with self._lock:
                self._store.pop(key, None)
            self._dispatch_delete(obj)
        else:
            logger.debug(f"Ignoring {event_type} event for {key}")
            return

        if resource_version:
            self._resource_version = resource_version

    def _watch_once(self, stop_event: threading.Event) -> None:
        w = watch.Watch()
        kwargs = {
            "resource_version": self._resource_version,
            "timeout_seconds": self.watch_timeout,
        }
        if self.namespace:
            stream = w.stream(
                self.apps_v1.list_namespaced_deployment,
                namespace=self.namespace,
                **kwargs
            )
        else:
            stream = w.stream(self.apps_v1.list_deployment_for_all_namespaces, **kwargs)

        try:
            for event in stream:
                if stop_event.is_set():
                    break

                if event["type"] == "ERROR":
                    status = event["raw_object"].get("code")
                    raise ApiException(status=status, reason=event["raw_object"].get("message"))

                self.handle_event(event["type"], event["object"])
        finally:
            w.stop()

    def run(self, stop_event: threading.Event) -> None:
        """List then watch Deployments until ``stop_event`` is set."""
        logger.info(f"Starting deployment informer for {self.namespace or 'all namespaces'}")
        needs_list = True

        while not stop_event.is_set():
            try:
                if needs_list:
                    self.relist()
                    needs_list = False
                self._watch_once(stop_event)
            except ApiException as e:
                if e.status == 410:
                    logger.info("Watch resourceVersion expired, relisting")
                    needs_list = True
                    continue
                logger.error(f"Deployment watch error: {e}")
                needs_list = True
                stop_event.wait(RELIST_BACKOFF_SECONDS)
            except Exception as e:
                logger.error(f"Unexpected error in deployment informer: {e}")
                needs_list = True
                stop_event.wait(RELIST_BACKOFF_SECONDS)

        logger.info("Deployment informer stopped")

    def start(self, stop_event: threading.Event) -> threading.Thread:
        thread = threading.Thread(
            target=self.run,
            args=(stop_event,),
            name="deployment-informer",
            daemon=True
        )
        thread.start()
        return thread
