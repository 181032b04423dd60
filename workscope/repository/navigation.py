"""Helpers for lazy navigation fields.

After a scope closes its entities are detached. What an unloaded
navigation does then depends on the factory's ``detached_navigation``
policy: with ``raise`` plain attribute access raises SQLAlchemy's
``DetachedInstanceError``; with ``empty`` the navigation was set to
``None``/``[]`` when the scope closed. :func:`load` always raises
``DetachedAccessError`` for a detached entity whose navigation is not
loaded.

``DetachedAccessError`` subclasses ``DetachedInstanceError``, so callers
handling both plain attribute access and :func:`load` should catch
``sqlalchemy.orm.exc.DetachedInstanceError``.

Navigations emptied by the ``empty`` policy load normally again once the
entity is attached or saved in a new scope.
"""
from sqlalchemy import inspect as sa_inspect

from workscope.exceptions import DetachedAccessError


def _check_navigation(insp, name: str) -> None:
    if name not in insp.mapper.relationships:
        raise AttributeError(f"{insp.mapper.class_.__name__} has no navigation '{name}'")


def is_loaded(entity, name: str) -> bool:
    insp = sa_inspect(entity)
    _check_navigation(insp, name)
    return name not in insp.unloaded


def load(entity, name: str):
    """Load and return navigation `name` of `entity`, querying its session if needed."""
    insp = sa_inspect(entity)
    _check_navigation(insp, name)
    if name in insp.unloaded and insp.detached:
        raise DetachedAccessError(entity, name)
    return getattr(entity, name)
