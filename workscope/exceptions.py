"""Exceptions raised by the repository and unit-of-work layer."""
from typing import Optional

from sqlalchemy.orm.exc import DetachedInstanceError


class WorkScopeError(Exception):
    """Base class for errors raised by this package."""


class LifecycleError(WorkScopeError):
    """Raised when an operation hits a scope that is absent or already finished."""

    def __init__(self, message: str, state: Optional[str] = None):
        self.state = state
        super().__init__(message)


class NoActiveUnitOfWorkError(LifecycleError):
    """Raised when a repository is used with no active unit of work."""

    def __init__(self, operation: str = "query"):
        self.operation = operation
        super().__init__(f"No active unit of work for '{operation}'")


class AlreadyTrackedError(LifecycleError):
    """Raised when an entity is already tracked by another live session."""

    def __init__(self, entity):
        self.entity = entity
        super().__init__(f"{entity!r} is already tracked by another unit of work")


class TranslationError(WorkScopeError):
    """Raised when a specification cannot be expressed as a backend filter."""

    def __init__(self, entity_type: type, reason: str):
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(f"Cannot translate filter for {entity_type.__name__}: {reason}")


class PlanCompositionError(WorkScopeError):
    """Raised when a fetch plan path does not follow the entity graph."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid fetch path {path!r}: {reason}")


class NotTrackedError(WorkScopeError):
    """Raised when a delete/attach/detach target is unknown to the session."""

    def __init__(self, entity, operation: str):
        self.entity = entity
        self.operation = operation
        super().__init__(f"Cannot {operation} {entity!r}: entity is not tracked by the active session")


class DetachedAccessError(WorkScopeError, DetachedInstanceError):
    """Raised when a lazy navigation is loaded after its scope has closed.

    Plain attribute access on such a navigation raises SQLAlchemy's
    ``DetachedInstanceError`` instead; catch that base class to handle both.
    """

    def __init__(self, entity, name: str):
        self.entity = entity
        self.name = name
        super().__init__(f"Navigation '{name}' of {entity!r} cannot be loaded: owning session is closed")


class ConcurrencyConflict(WorkScopeError):
    """Raised when the backend reports a write conflict during commit."""

    def __init__(self, original: Exception):
        self.original = original
        super().__init__(f"Concurrent modification detected: {original}")


class UnknownDataSourceError(WorkScopeError):
    """Raised when no data source is registered for an entity type."""

    def __init__(self, entity_type: type):
        self.entity_type = entity_type
        super().__init__(f"No data source registered for {entity_type.__name__}")
