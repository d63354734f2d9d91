"""Error types raised by the store and the reconciler."""

from typing import Optional


class StoreError(Exception):
    """Base class for failures talking to the object store."""

    def __init__(self, message: str, status: Optional[int] = None, reason: str = ""):
        super().__init__(message)
        self.status = status
        self.reason = reason


class NotFoundError(StoreError):
    """The requested object does not exist."""


class TransientStoreError(StoreError):
    """Any other store failure. Callers retry these."""


class ReconcileCancelled(Exception):
    """The stop signal was set before the next store call could be issued."""
