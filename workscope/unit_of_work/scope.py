"""Unit of work scopes.

A scope owns one SQLAlchemy ``Session`` per data source it touches. Scopes
nest: a scope begun while another is active on the same thread is a
dependent scope that shares the root's sessions, and only the root ever
flushes or commits them.
"""
from __future__ import annotations

import logging
import threading
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session, make_transient_to_detached
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from workscope.exceptions import AlreadyTrackedError, ConcurrencyConflict, LifecycleError, NotTrackedError

if TYPE_CHECKING:
    from workscope.unit_of_work.factory import UnitOfWorkFactory

logger = logging.getLogger(__name__)

# InstanceState.info key listing navigations set to None/[] by the "empty" policy.
CLEARED_NAVIGATION_KEY = "workscope_cleared"


class ScopeState(Enum):
    CREATED = "created"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


def has_identity(entity) -> bool:
    """True when every primary key column of `entity` has a value."""
    insp = sa_inspect(entity)
    return all(v is not None for v in insp.mapper.primary_key_from_instance(entity))


class UnitOfWorkScope:
    def __init__(self, factory: "UnitOfWorkFactory"):
        self.scope_id = uuid.uuid4().hex[:12]
        self._factory = factory
        self._state = ScopeState.CREATED
        self._parent: Optional[UnitOfWorkScope] = None
        self._root: UnitOfWorkScope = self
        self._thread_id: Optional[int] = None
        self._sessions: Dict[str, Session] = {}
        self._rollback_only = False
        self._disposed = False

    def __enter__(self) -> UnitOfWorkScope:
        return self.begin()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self):
        return f"<UnitOfWorkScope id={self.scope_id} state={self._state.value} root={self.is_root}>"

    @property
    def state(self) -> ScopeState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is ScopeState.ACTIVE

    @property
    def is_root(self) -> bool:
        return self._root is self

    @property
    def parent(self) -> Optional[UnitOfWorkScope]:
        return self._parent

    @property
    def root(self) -> UnitOfWorkScope:
        return self._root

    @property
    def factory(self) -> "UnitOfWorkFactory":
        return self._factory

    @property
    def sessions(self) -> List[Session]:
        """Sessions enlisted in this unit of work, in the order they were opened."""
        return list(self._root._sessions.values())

    def begin(self) -> UnitOfWorkScope:
        if self._state is not ScopeState.CREATED:
            raise LifecycleError(f"Cannot begin scope in state {self._state.value}", self._state.value)
        stack = self._factory.stack()
        self._parent = stack.peek()
        self._root = self._parent.root if self._parent is not None else self
        self._thread_id = threading.get_ident()
        stack.push(self)
        self._state = ScopeState.ACTIVE
        logger.debug("Began %s scope %s (depth=%d)", "root" if self.is_root else "dependent", self.scope_id, len(stack))

        if self.is_root:
            # Entities after a failing one stay queued for the next scope.
            try:
                entity = self._factory.next_pending()
                while entity is not None:
                    self.enlist(entity)
                    entity = self._factory.next_pending()
            except Exception:
                self.dispose()
                raise
        return self

    def _check_active(self, operation: str) -> None:
        if self._state is not ScopeState.ACTIVE:
            raise LifecycleError(f"Cannot {operation} scope {self.scope_id} in state {self._state.value}", self._state.value)
        if threading.get_ident() != self._thread_id:
            raise LifecycleError(f"Scope {self.scope_id} belongs to another thread", self._state.value)

    def session_for(self, entity_type: type) -> Session:
        """Return the session for `entity_type`'s data source, opening it on first use."""
        self._check_active("use")
        root = self._root
        source = self._factory.data_sources.resolve(entity_type)
        session = root._sessions.get(source.name)
        if session is None:
            session = source.open_session()
            root._sessions[source.name] = session
            logger.debug("Opened session for data source %s in scope %s", source.name, root.scope_id)
        return session

    def owns(self, session: Optional[Session]) -> bool:
        return session is not None and any(s is session for s in self._root._sessions.values())

    def enlist(self, entity) -> Session:
        """Track a detached entity in the session of its data source without re-fetching it."""
        session = self.session_for(type(entity))
        insp = sa_inspect(entity)
        if insp.session is session:
            return session
        check_attachable(entity)
        if insp.transient:
            make_transient_to_detached(entity)
        session.add(entity)
        restore_cleared_navigation(session, entity)
        logger.debug("Attached %r in scope %s", entity, self._root.scope_id)
        return session

    def commit(self) -> None:
        self._check_active("commit")
        if not self.is_root:
            self._state = ScopeState.COMMITTED
            logger.debug("Dependent scope %s completed; commit deferred to %s", self.scope_id, self._root.scope_id)
            return
        if self._rollback_only:
            self._rollback_sessions()
            raise LifecycleError(f"Scope {self.scope_id} was marked rollback-only by a dependent scope", self._state.value)
        self._commit_sessions()

    def _commit_sessions(self) -> None:
        committed: List[str] = []
        try:
            # Flush everything first so constraint errors surface before any source commits.
            for session in self._sessions.values():
                session.flush()
            for name, session in self._sessions.items():
                session.commit()
                committed.append(name)
        except StaleDataError as e:
            self._abort(committed)
            raise ConcurrencyConflict(e) from e
        except Exception:
            self._abort(committed)
            raise
        self._state = ScopeState.COMMITTED
        logger.info("Committed scope %s (%d session(s))", self.scope_id, len(committed))

    def _abort(self, committed: List[str]) -> None:
        self._state = ScopeState.ROLLED_BACK
        if committed:
            logger.warning(
                "Commit of scope %s failed after data sources %s committed; those changes are not rolled back",
                self.scope_id, committed,
            )
        for name, session in self._sessions.items():
            if name in committed:
                continue
            try:
                session.rollback()
            except Exception:
                logger.exception("Rollback of data source %s failed in scope %s", name, self.scope_id)

    def rollback(self) -> None:
        self._check_active("roll back")
        if not self.is_root:
            self._state = ScopeState.ROLLED_BACK
            self._root._rollback_only = True
            logger.info("Dependent scope %s rolled back; %s is now rollback-only", self.scope_id, self._root.scope_id)
            return
        self._rollback_sessions()

    def _rollback_sessions(self) -> None:
        self._state = ScopeState.ROLLED_BACK
        for session in self._sessions.values():
            session.rollback()
        logger.info("Rolled back scope %s", self.scope_id)

    def dispose(self) -> None:
        """End the scope: roll back if still active and release its sessions.

        Closing the sessions is also how a long running query is abandoned.
        """
        if self._disposed or self._state is ScopeState.CREATED:
            return
        stack = self._factory.stack()
        if stack.peek() is not self:
            raise LifecycleError(f"Scope {self.scope_id} disposed out of order", self._state.value)
        if self._state is ScopeState.ACTIVE:
            if self.is_root:
                # Closing the sessions rolls back their transactions.
                self._state = ScopeState.ROLLED_BACK
                logger.info("Scope %s disposed without commit; rolling back", self.scope_id)
            else:
                self.rollback()
        stack.pop(self)
        self._disposed = True
        if self.is_root:
            self._close_sessions()

    def _close_sessions(self) -> None:
        empty_navigation = self._factory.detached_navigation == "empty"
        for session in self._sessions.values():
            if empty_navigation:
                for entity in list(session.identity_map.values()):
                    _clear_unloaded_navigation(entity)
            session.close()
        self._sessions.clear()

    def repository(self, entity_type: type, **kwargs):
        from workscope.repository import Repository

        return Repository(entity_type, self._factory, **kwargs)


def check_attachable(entity) -> None:
    """Raise unless `entity` can be enlisted in a unit of work session."""
    insp = sa_inspect(entity)
    if insp.session is not None:
        raise AlreadyTrackedError(entity)
    if insp.transient and not has_identity(entity):
        raise NotTrackedError(entity, "attach")


def restore_cleared_navigation(session: Session, entity) -> None:
    """Expire navigations emptied when `entity`'s last scope closed so they load again."""
    keys = sa_inspect(entity).info.pop(CLEARED_NAVIGATION_KEY, None)
    if keys:
        session.expire(entity, keys)


def _clear_unloaded_navigation(entity) -> None:
    insp = sa_inspect(entity)
    unloaded = insp.unloaded
    cleared = []
    for rel in insp.mapper.relationships:
        if rel.key in unloaded:
            set_committed_value(entity, rel.key, [] if rel.uselist else None)
            cleared.append(rel.key)
    if cleared:
        insp.info[CLEARED_NAVIGATION_KEY] = cleared
