"""
Error taxonomy for the document repository core.

Every failure raised by the services is one of the five kinds below so that
callers (routers, scripts) can tell them apart without inspecting messages.
"""
from typing import Optional


class RepositoryError(Exception):
    """Base class for all repository failures."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.resource_type = resource_type
        self.resource_id = resource_id


class NotFound(RepositoryError):
    """Referenced document or profile does not exist. Not retried."""


class ValidationFailure(RepositoryError):
    """Missing or malformed input, rejected before any write."""


class Unauthorized(RepositoryError):
    """Caller's role or admin registry entry does not permit the mutation."""


class TransientStoreConflict(RepositoryError):
    """Concurrent-write conflict that survived every retry attempt."""

    def __init__(self, message: str, attempts: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class AdapterFailure(RepositoryError):
    """The blob store call failed; no catalog row was created."""
