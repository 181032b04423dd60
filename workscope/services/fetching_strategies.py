from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Tuple

from workscope.domain.fetch_plan import FetchPlanBuilder
from workscope.services.protocols import FetchingStrategy

logger = logging.getLogger(__name__)


class PlanFetchingStrategy:
    """Fetching strategy built from a plan-builder callable."""

    def __init__(self, build: Callable[[FetchPlanBuilder], FetchPlanBuilder]):
        self._build = build

    def define(self, repository) -> None:
        repository.eagerly(self._build)


class StrategyRegistry:
    """Thread-safe registry of fetching strategies.

    Keyed by ``(entity_type, context)``; each key holds strategies in the
    order they were registered. Populated at startup and injected into
    repositories.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._strategies: Dict[Tuple[type, type], List[FetchingStrategy]] = {}

    def register(self, entity_type: type, context: type, strategy: FetchingStrategy) -> FetchingStrategy:
        if not isinstance(strategy, FetchingStrategy):
            raise TypeError(f"{strategy!r} does not implement define(repository)")
        with self._lock:
            self._strategies.setdefault((entity_type, context), []).append(strategy)
        logger.debug("Registered fetching strategy %s for (%s, %s)", type(strategy).__name__, entity_type.__name__, context.__name__)
        return strategy

    def strategy(self, entity_type: type, context: type):
        """Class decorator registering an instance of the decorated strategy."""
        def decorator(cls):
            self.register(entity_type, context, cls())
            return cls
        return decorator

    def resolve(self, entity_type: type, context: type) -> List[FetchingStrategy]:
        with self._lock:
            return list(self._strategies.get((entity_type, context), ()))

    def clear(self) -> None:
        with self._lock:
            self._strategies.clear()
