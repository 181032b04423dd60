from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified

from workscope.domain.fetch_plan import FetchPlan, FetchPlanBuilder, PathLike
from workscope.domain.specification import Specification
from workscope.exceptions import AlreadyTrackedError, NotTrackedError
from workscope.repository.query import RepositoryQuery
from workscope.services.fetching_strategies import StrategyRegistry
from workscope.unit_of_work.factory import UnitOfWorkFactory
from workscope.unit_of_work.scope import has_identity, restore_cleared_navigation

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Repository(Generic[T]):
    """Querying and persistence facade for one entity type.

    Every operation runs against the session that the calling thread's
    innermost unit of work scope holds for the entity's data source.
    ``attach`` is the exception: with no active scope the entity is queued
    and enlisted when the next scope begins.

    Eager fetching (``eagerly``, ``with_``, ``for_``) applies to the next
    query only.
    """

    def __init__(self, entity_type: type, unit_of_work: UnitOfWorkFactory, strategies: Optional[StrategyRegistry] = None):
        self.entity_type = entity_type
        self._unit_of_work = unit_of_work
        if strategies is None:
            logger.debug("No strategy registry given for %s; for_() applies no fetching strategies", entity_type.__name__)
            strategies = StrategyRegistry()
        self._strategies = strategies
        self._plan: Optional[FetchPlan] = None

    def __repr__(self):
        return f"<Repository {self.entity_type.__name__}>"

    def _session(self, operation: str):
        return self._unit_of_work.current_scope(operation).session_for(self.entity_type)

    def _take_plan(self) -> Optional[FetchPlan]:
        plan, self._plan = self._plan, None
        return plan

    def _new_query(self) -> RepositoryQuery[T]:
        scope = self._unit_of_work.current_scope("query")
        session = scope.session_for(self.entity_type)
        plan = self._take_plan()
        options = tuple(plan.to_options()) if plan else ()
        return RepositoryQuery(self.entity_type, scope, session, options=options)

    # Querying

    def where(self, predicate) -> RepositoryQuery[T]:
        """Query entities matching `predicate`.

        `predicate` is a SQLAlchemy clause (``Customer.state == "PA"``), a
        callable over the mapped class (``lambda c: c.state == "PA"``) or a
        Specification.
        """
        return self._new_query().where(predicate)

    def query(self, specification: Optional[Specification[T]] = None) -> RepositoryQuery[T]:
        query = self._new_query()
        if specification is not None:
            query = query.where(specification)
        return query

    def get(self, identity: Any) -> Optional[T]:
        session = self._session("get")
        plan = self._take_plan()
        return session.get(self.entity_type, identity, options=plan.to_options() if plan else None)

    # Eager fetching

    def eagerly(self, build: Callable[[FetchPlanBuilder], Any]) -> Repository[T]:
        builder = FetchPlanBuilder(self.entity_type)
        result = build(builder)
        plan = (result if isinstance(result, FetchPlanBuilder) else builder).build()
        self._plan = (self._plan or FetchPlan(self.entity_type)).merge(plan)
        return self

    def with_(self, path: PathLike, loader: Optional[str] = None) -> Repository[T]:
        return self.eagerly(lambda f: f.fetch(path, loader))

    def for_(self, context: type) -> Repository[T]:
        strategies = self._strategies.resolve(self.entity_type, context)
        logger.debug("Applying %d fetching strategies for (%s, %s)", len(strategies), self.entity_type.__name__, context.__name__)
        for strategy in strategies:
            strategy.define(self)
        return self

    # Persistence

    def add(self, entity: T) -> None:
        session = self._session("add")
        owner = sa_inspect(entity).session
        if owner is not None and owner is not session:
            raise AlreadyTrackedError(entity)
        session.add(entity)
        restore_cleared_navigation(session, entity)

    def save(self, entity: T) -> None:
        """Insert `entity` if it has no identity yet, otherwise mark it for update."""
        session = self._session("save")
        insp = sa_inspect(entity)
        if insp.session is session:
            return
        if insp.session is not None:
            raise AlreadyTrackedError(entity)
        if insp.transient and not has_identity(entity):
            session.add(entity)
            return
        if insp.transient:
            make_transient_to_detached(entity)
            session.add(entity)
            mapper = insp.mapper
            skipped = list(mapper.primary_key)
            if mapper.version_id_col is not None:
                skipped.append(mapper.version_id_col)
            for attr in mapper.column_attrs:
                if attr.key not in insp.dict or any(c is s for c in attr.columns for s in skipped):
                    continue
                flag_modified(entity, attr.key)
            return
        session.add(entity)
        restore_cleared_navigation(session, entity)

    def delete(self, entity: T) -> None:
        session = self._session("delete")
        if entity not in session:
            raise NotTrackedError(entity, "delete")
        if sa_inspect(entity).pending:
            session.expunge(entity)
        else:
            session.delete(entity)

    def attach(self, entity: T) -> None:
        """Enlist an entity loaded elsewhere so that later changes are saved on commit."""
        if not self._unit_of_work.has_active_scope():
            self._unit_of_work.defer_attach(entity)
            return
        self._unit_of_work.current_scope("attach").enlist(entity)

    def detach(self, entity: T) -> None:
        session = self._session("detach")
        if entity not in session:
            raise NotTrackedError(entity, "detach")
        session.expunge(entity)

    def refresh(self, entity: T) -> None:
        session = self._session("refresh")
        if entity not in session:
            raise NotTrackedError(entity, "refresh")
        session.refresh(entity)
