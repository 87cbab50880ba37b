"""Error types raised by the cluster client and the reconciler."""

from typing import Optional


class ControllerError(Exception):
    """Base class for controller errors."""


class TransientRemoteError(ControllerError):
    """A cluster API call failed in a way that is worth retrying."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(ControllerError):
    """The requested object does not exist in the cluster."""


class AlreadyExistsError(ControllerError):
    """Create was rejected because an object with that name already exists."""


class MalformedKeyError(ControllerError):
    """A queue key could not be split into namespace and name."""
