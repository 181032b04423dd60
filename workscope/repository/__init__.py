from .query import RepositoryQuery
from .repository import Repository
from . import navigation

__all__ = ["Repository", "RepositoryQuery", "navigation"]
