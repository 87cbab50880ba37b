"""Routes Deployment watch notifications into the work queue."""

import logging
from typing import Optional

from .models import Added, Deleted, ManagedResource, Notification

logger = logging.getLogger(__name__)


def decode_notification(event_type: str, obj) -> Optional[Notification]:
    """
    Decode a raw informer callback payload.

    Args:
        event_type: "add" or "delete"
        obj: V1Deployment (or any object with Deployment-shaped metadata)

    Returns:
        Added or Deleted notification, or None if obj carries no metadata
    """
    if getattr(obj, "metadata", None) is None:
        return None

    resource = ManagedResource.from_deployment(obj)
    if event_type == "add":
        return Added(resource)
    if event_type == "delete":
        return Deleted(resource)
    raise ValueError(f"unknown event type: {event_type}")


class EventRouter:
    """
    Turns add and delete notifications into queue keys.

    Both kinds enqueue the same key; whether the Deployment still exists is
    decided by the reconciler against live cluster state.
    """

    def __init__(self, queue):
        self.queue = queue

    def on_add(self, obj) -> None:
        self._route("add", obj)

    def on_delete(self, obj) -> None:
        self._route("delete", obj)

    def _route(self, event_type: str, obj) -> None:
        notification = decode_notification(event_type, obj)
        if notification is None:
            logger.error(f"Dropping {event_type} notification without metadata: {obj!r}")
            return
        self.route(notification)

    def route(self, notification: Notification) -> None:
        key = notification.key
        logger.debug(f"{type(notification).__name__} {key}, enqueueing")
        self.queue.add(key)
