"""Protocol (interface) definitions for pluggable services."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class FetchingStrategy(Protocol):
    """A reusable eager-fetch definition for one entity type and context.

    Implementations usually call ``repository.eagerly(...)`` or
    ``repository.with_(...)`` from ``define``.
    """
    def define(self, repository) -> None:
        """Apply this strategy's fetch plan to `repository`."""
        ...
