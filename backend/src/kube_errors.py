"""
Errors raised while fetching and parsing cluster state.

Rollout failures and timeouts are not errors; they are reported as verdicts.
"""
from typing import Optional


class KubeWatchError(Exception):
    """Base class for rollout watcher errors."""


class TransportError(KubeWatchError):
    """The cluster could not be reached or refused the request.

    Callers should retry; this never means the rollout itself failed.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ResourceNotFound(KubeWatchError):
    """The requested resource does not exist in the cluster."""


class MalformedSnapshot(KubeWatchError):
    """A resource document is missing structural fields we need."""
