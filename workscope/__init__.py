"""WorkScope: unit-of-work scoped repositories over SQLAlchemy."""
from .domain import FetchPlan, FetchPlanBuilder, Specification
from .exceptions import (
    AlreadyTrackedError,
    ConcurrencyConflict,
    DetachedAccessError,
    LifecycleError,
    NoActiveUnitOfWorkError,
    NotTrackedError,
    PlanCompositionError,
    TranslationError,
    UnknownDataSourceError,
    WorkScopeError,
)
from .db import DataSourceRegistry
from .repository import Repository, navigation
from .services import PlanFetchingStrategy, StrategyRegistry
from .unit_of_work import ScopeState, UnitOfWorkFactory, UnitOfWorkScope

__all__ = [
    "AlreadyTrackedError",
    "ConcurrencyConflict",
    "DataSourceRegistry",
    "DetachedAccessError",
    "FetchPlan",
    "FetchPlanBuilder",
    "LifecycleError",
    "NoActiveUnitOfWorkError",
    "NotTrackedError",
    "PlanCompositionError",
    "PlanFetchingStrategy",
    "Repository",
    "ScopeState",
    "Specification",
    "StrategyRegistry",
    "TranslationError",
    "UnitOfWorkFactory",
    "UnitOfWorkScope",
    "UnknownDataSourceError",
    "WorkScopeError",
    "navigation",
]
