from __future__ import annotations

import logging
import threading
from typing import List, Optional

from workscope import config
from workscope.db.data_sources import DataSourceRegistry
from workscope.exceptions import LifecycleError, NoActiveUnitOfWorkError
from workscope.unit_of_work.scope import UnitOfWorkScope, check_attachable

logger = logging.getLogger(__name__)

DETACHED_NAVIGATION_POLICIES = ("raise", "empty")


class ScopeStack:
    """Stack of the scopes active on one thread, innermost last."""

    def __init__(self):
        self._scopes: List[UnitOfWorkScope] = []

    def push(self, scope: UnitOfWorkScope) -> None:
        self._scopes.append(scope)

    def peek(self) -> Optional[UnitOfWorkScope]:
        return self._scopes[-1] if self._scopes else None

    def pop(self, scope: UnitOfWorkScope) -> None:
        if not self._scopes or self._scopes[-1] is not scope:
            raise LifecycleError("Scopes must be disposed in reverse order of creation")
        self._scopes.pop()

    def __len__(self) -> int:
        return len(self._scopes)


class UnitOfWorkFactory:
    """Creates unit of work scopes and tracks the active ones per thread.

    Repositories receive the factory explicitly and ask it for the innermost
    active scope of the calling thread. Scopes on different threads never
    share sessions.
    """

    def __init__(self, data_sources: DataSourceRegistry, detached_navigation: Optional[str] = None):
        policy = (detached_navigation or config.detached_navigation()).strip().lower()
        if policy not in DETACHED_NAVIGATION_POLICIES:
            raise ValueError(f"detached_navigation must be one of {DETACHED_NAVIGATION_POLICIES}, got {policy!r}")
        self.data_sources = data_sources
        self.detached_navigation = policy
        self._local = threading.local()

    def scope(self) -> UnitOfWorkScope:
        return UnitOfWorkScope(self)

    def stack(self) -> ScopeStack:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = ScopeStack()
        return stack

    def current_scope(self, operation: str = "query") -> UnitOfWorkScope:
        scope = self.stack().peek()
        if scope is None:
            raise NoActiveUnitOfWorkError(operation)
        return scope

    def has_active_scope(self) -> bool:
        return self.stack().peek() is not None

    def defer_attach(self, entity) -> None:
        """Queue `entity` to be attached when the next root scope on this thread begins.

        The entity is checked now, so an entity that could never be attached
        fails here rather than in the scope that picks it up.
        """
        self.data_sources.resolve(type(entity))
        check_attachable(entity)
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = []
        pending.append(entity)
        logger.debug("Deferred attach of %r until the next unit of work", entity)

    def next_pending(self):
        """Pop the oldest queued attachment of this thread, or None."""
        pending = getattr(self._local, "pending", None)
        return pending.pop(0) if pending else None
