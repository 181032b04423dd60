from __future__ import annotations

import logging
from typing import Any, Generic, Iterator, List, Optional, Tuple, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from workscope.domain.specification import Specification
from workscope.exceptions import LifecycleError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_clause(entity_type: type, predicate: Any):
    """Translate a clause, a callable over the mapped class or a Specification."""
    if not isinstance(predicate, Specification):
        predicate = Specification(predicate)
    return predicate.to_query_filter(entity_type)


class RepositoryQuery(Generic[T]):
    """A lazily executed, restartable query bound to one unit of work session.

    Nothing is sent to the database until the query is iterated or one of
    ``all``/``first``/``one_or_none``/``count`` is called, and every
    iteration runs the statement again. Predicates are translated at that
    point too, so an untranslatable one fails on execution.
    """

    def __init__(
        self,
        entity_type: type,
        scope,
        session: Session,
        options: Tuple[Any, ...] = (),
        predicates: Tuple[Any, ...] = (),
        ordering: Tuple[Any, ...] = (),
        limit: Optional[int] = None,
    ):
        self.entity_type = entity_type
        self._scope = scope
        self._session = session
        self._options = tuple(options)
        self._predicates = tuple(predicates)
        self._ordering = tuple(ordering)
        self._limit = limit

    def _copy(self, **changes) -> RepositoryQuery[T]:
        kwargs = dict(
            options=self._options,
            predicates=self._predicates,
            ordering=self._ordering,
            limit=self._limit,
        )
        kwargs.update(changes)
        return RepositoryQuery(self.entity_type, self._scope, self._session, **kwargs)

    def where(self, predicate) -> RepositoryQuery[T]:
        return self._copy(predicates=self._predicates + (predicate,))

    def order_by(self, *clauses) -> RepositoryQuery[T]:
        return self._copy(ordering=self._ordering + clauses)

    def limit(self, limit: int) -> RepositoryQuery[T]:
        return self._copy(limit=limit)

    def _criteria(self) -> list:
        return [to_clause(self.entity_type, p) for p in self._predicates]

    def statement(self):
        stmt = select(self.entity_type).options(*self._options)
        criteria = self._criteria()
        if criteria:
            stmt = stmt.where(*criteria)
        if self._ordering:
            stmt = stmt.order_by(*self._ordering)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    def _check_session(self) -> None:
        root = self._scope.root
        if not root.is_active or not root.owns(self._session):
            raise LifecycleError(f"Query for {self.entity_type.__name__} used after its unit of work ended", root.state.value)

    def __iter__(self) -> Iterator[T]:
        self._check_session()
        stmt = self.statement()
        logger.debug("Executing query for %s", self.entity_type.__name__)
        result = self._session.execute(stmt).scalars()
        if self._options:
            # Joined eager loads of collections repeat the parent rows.
            result = result.unique()
        return iter(result.all())

    def all(self) -> List[T]:
        return list(self)

    def first(self) -> Optional[T]:
        for entity in self.limit(1 if self._limit is None else min(self._limit, 1)):
            return entity
        return None

    def one_or_none(self) -> Optional[T]:
        rows = self.limit(2).all() if self._limit is None else self.all()
        if len(rows) > 1:
            raise LookupError(f"Expected at most one {self.entity_type.__name__}, found several")
        return rows[0] if rows else None

    def count(self) -> int:
        self._check_session()
        inner = select(self.entity_type)
        criteria = self._criteria()
        if criteria:
            inner = inner.where(*criteria)
        if self._limit is not None:
            inner = inner.limit(self._limit)
        return self._session.scalar(select(func.count()).select_from(inner.subquery()))

    def __repr__(self):
        return f"<RepositoryQuery {self.entity_type.__name__} predicates={len(self._predicates)}>"
