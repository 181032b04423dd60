from .scope import ScopeState, UnitOfWorkScope
from .factory import ScopeStack, UnitOfWorkFactory

__all__ = ["ScopeState", "UnitOfWorkScope", "ScopeStack", "UnitOfWorkFactory"]
