from .protocols import FetchingStrategy
from .fetching_strategies import PlanFetchingStrategy, StrategyRegistry

__all__ = ["FetchingStrategy", "PlanFetchingStrategy", "StrategyRegistry"]
