"""Composable predicates usable both in memory and as SQL filters.

A specification wraps a predicate such as ``lambda c: c.state == "DE"``.
Called with an entity instance the predicate yields a ``bool``; called with
the mapped class the same expression yields a SQLAlchemy clause, which is
what :meth:`Specification.to_query_filter` hands to the query.  Predicates
that cannot be written that way (for example comparisons across a
relationship) take an explicit ``query_filter``.
"""
from __future__ import annotations

from typing import Any, Callable, Generic, Optional, TypeVar, Union

from sqlalchemy import and_, not_, or_
from sqlalchemy.sql.expression import ColumnElement

from workscope.exceptions import TranslationError

T = TypeVar("T")

QueryFilter = Union[ColumnElement, Callable[[type], Any]]


class Specification(Generic[T]):
    def __init__(self, predicate: Callable[[T], Any], query_filter: Optional[QueryFilter] = None):
        self._predicate = predicate
        self._query_filter = query_filter

    def is_satisfied_by(self, entity: T) -> bool:
        return bool(self._predicate(entity))

    def to_query_filter(self, entity_type: type) -> ColumnElement:
        """Translate to a SQLAlchemy clause against `entity_type`.

        Raises TranslationError if the predicate does not produce a clause.
        """
        source = self._query_filter if self._query_filter is not None else self._predicate
        if isinstance(source, ColumnElement):
            clause = source
        else:
            try:
                clause = source(entity_type)
            except Exception as e:
                raise TranslationError(entity_type, f"{type(e).__name__}: {e}") from e
        if not isinstance(clause, ColumnElement):
            raise TranslationError(entity_type, f"predicate produced {type(clause).__name__}, not a SQL expression")
        return clause

    def and_(self, other: Specification[T]) -> Specification[T]:
        return AndSpecification(self, other)

    def or_(self, other: Specification[T]) -> Specification[T]:
        return OrSpecification(self, other)

    def not_(self) -> Specification[T]:
        return NotSpecification(self)

    def __and__(self, other: Specification[T]) -> Specification[T]:
        return self.and_(other)

    def __or__(self, other: Specification[T]) -> Specification[T]:
        return self.or_(other)

    def __invert__(self) -> Specification[T]:
        return self.not_()

    def __repr__(self):
        return f"<Specification {getattr(self._predicate, '__name__', self._predicate)!s}>"


class AndSpecification(Specification[T]):
    def __init__(self, left: Specification[T], right: Specification[T]):
        self.left = left
        self.right = right

    def is_satisfied_by(self, entity: T) -> bool:
        return self.left.is_satisfied_by(entity) and self.right.is_satisfied_by(entity)

    def to_query_filter(self, entity_type: type) -> ColumnElement:
        return and_(self.left.to_query_filter(entity_type), self.right.to_query_filter(entity_type))

    def __repr__(self):
        return f"({self.left!r} AND {self.right!r})"


class OrSpecification(Specification[T]):
    def __init__(self, left: Specification[T], right: Specification[T]):
        self.left = left
        self.right = right

    def is_satisfied_by(self, entity: T) -> bool:
        return self.left.is_satisfied_by(entity) or self.right.is_satisfied_by(entity)

    def to_query_filter(self, entity_type: type) -> ColumnElement:
        return or_(self.left.to_query_filter(entity_type), self.right.to_query_filter(entity_type))

    def __repr__(self):
        return f"({self.left!r} OR {self.right!r})"


class NotSpecification(Specification[T]):
    def __init__(self, inner: Specification[T]):
        self.inner = inner

    def is_satisfied_by(self, entity: T) -> bool:
        return not self.inner.is_satisfied_by(entity)

    def to_query_filter(self, entity_type: type) -> ColumnElement:
        return not_(self.inner.to_query_filter(entity_type))

    def __repr__(self):
        return f"NOT {self.inner!r}"
