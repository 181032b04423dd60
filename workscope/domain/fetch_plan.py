"""Eager fetch plans.

A plan is an ordered set of navigation paths rooted at one entity type, for
example ``Customer.orders -> Order.order_items -> OrderItem.product``. Paths
are checked against the mapped relationship graph when they are added, so a
broken chain fails while the plan is being built and never at query time.
"""
from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional, Tuple, Union

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import QueryableAttribute, RelationshipProperty, joinedload, selectinload, subqueryload

from workscope import config
from workscope.exceptions import PlanCompositionError

LOADERS = {
    "selectin": selectinload,
    "joined": joinedload,
    "subquery": subqueryload,
}

PathLike = Union[str, QueryableAttribute, Callable[[type], Any]]


class FetchPath:
    """An immutable chain of relationship attributes with one loader per hop."""

    __slots__ = ("attributes", "loaders")

    def __init__(self, attributes: Tuple[QueryableAttribute, ...], loaders: Tuple[str, ...]):
        if len(attributes) != len(loaders):
            raise ValueError("every attribute needs a loader")
        self.attributes = tuple(attributes)
        self.loaders = tuple(loaders)

    @property
    def key(self) -> Tuple[Tuple[type, str], ...]:
        # InstrumentedAttribute overloads ==, so paths are compared by key.
        return tuple((attr.class_, attr.key) for attr in self.attributes)

    @property
    def target(self) -> type:
        return self.attributes[-1].property.mapper.class_

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(attr.key for attr in self.attributes)

    def extend(self, attributes: List[QueryableAttribute], loader: str) -> FetchPath:
        return FetchPath(self.attributes + tuple(attributes), self.loaders + (loader,) * len(attributes))

    def to_option(self):
        option = None
        for attr, loader in zip(self.attributes, self.loaders):
            if option is None:
                option = LOADERS[loader](attr)
            else:
                option = getattr(option, LOADERS[loader].__name__)(attr)
        return option

    def __repr__(self):
        return f"<FetchPath {'.'.join(self.names)}>"


class FetchPlan:
    """Ordered, immutable set of fetch paths rooted at `root`."""

    def __init__(self, root: type, paths: Tuple[FetchPath, ...] = ()):
        self.root = root
        self.paths = tuple(paths)

    def merge(self, other: Optional[FetchPlan]) -> FetchPlan:
        """Combine two plans.

        Paths keep the position where they were first seen; when both plans
        carry the same path the one from `other` wins.
        """
        if other is None or not other.paths:
            return self
        if not issubclass(other.root, self.root) and not issubclass(self.root, other.root):
            raise PlanCompositionError(other, f"plan is rooted at {other.root.__name__}, expected {self.root.__name__}")
        merged = {}
        for path in self.paths + other.paths:
            merged[path.key] = path
        return FetchPlan(self.root, tuple(merged.values()))

    def to_options(self) -> list:
        return [path.to_option() for path in self.paths]

    def covers(self, *names: str) -> bool:
        """Whether some path starts with the navigation names given."""
        return any(path.names[:len(names)] == names for path in self.paths)

    def __iter__(self) -> Iterator[FetchPath]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    def __repr__(self):
        return f"<FetchPlan {self.root.__name__} {list(self.paths)!r}>"


def _check_loader(loader: str) -> str:
    if loader not in LOADERS:
        raise PlanCompositionError(loader, f"unknown loader; expected one of {sorted(LOADERS)}")
    return loader


def resolve_path(owner: type, path: PathLike) -> List[QueryableAttribute]:
    """Resolve `path` into relationship attributes starting at `owner`."""
    if isinstance(path, str):
        attributes = []
        cls = owner
        for name in path.split("."):
            try:
                relationships = sa_inspect(cls).relationships
            except NoInspectionAvailable as e:
                raise PlanCompositionError(path, f"{cls.__name__} is not a mapped entity") from e
            if name not in relationships:
                raise PlanCompositionError(path, f"{cls.__name__} has no navigation '{name}'")
            attributes.append(getattr(cls, name))
            cls = relationships[name].mapper.class_
        return attributes

    if callable(path) and not isinstance(path, QueryableAttribute):
        try:
            path = path(owner)
        except AttributeError as e:
            raise PlanCompositionError(path, str(e)) from e

    prop = getattr(path, "property", None)
    if not isinstance(prop, RelationshipProperty):
        raise PlanCompositionError(path, "not a navigation (relationship) attribute")
    if not issubclass(owner, path.class_):
        raise PlanCompositionError(path, f"expected a navigation of {owner.__name__}, got one of {path.class_.__name__}")
    return [path]


class FetchPlanBuilder:
    """Fluent builder for a FetchPlan.

    ``fetch`` starts a chain at the root entity; ``and_`` continues it from
    the target of the previous hop::

        builder.fetch(Customer.orders).and_(Order.order_items).and_(OrderItem.product)
    """

    def __init__(self, root: type, loader: Optional[str] = None):
        self._root = root
        self._loader = _check_loader(loader or config.default_loader())
        self._paths: List[FetchPath] = []
        self._current: Optional[int] = None

    @property
    def root(self) -> type:
        return self._root

    def fetch(self, path: PathLike, loader: Optional[str] = None) -> FetchPlanBuilder:
        loader = _check_loader(loader or self._loader)
        attributes = resolve_path(self._root, path)
        self._paths.append(FetchPath(tuple(attributes), (loader,) * len(attributes)))
        self._current = len(self._paths) - 1
        return self

    def and_(self, path: PathLike, loader: Optional[str] = None) -> FetchPlanBuilder:
        if self._current is None:
            raise PlanCompositionError(path, "and_() called before fetch()")
        loader = _check_loader(loader or self._loader)
        current = self._paths[self._current]
        attributes = resolve_path(current.target, path)
        self._paths[self._current] = current.extend(attributes, loader)
        return self

    def build(self) -> FetchPlan:
        return FetchPlan(self._root, tuple(self._paths))
