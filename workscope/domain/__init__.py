"""Query-side domain objects - explicit re-exports to satisfy linters."""
from .specification import Specification as Specification
from .fetch_plan import FetchPath as FetchPath
from .fetch_plan import FetchPlan as FetchPlan
from .fetch_plan import FetchPlanBuilder as FetchPlanBuilder

__all__ = ["Specification", "FetchPath", "FetchPlan", "FetchPlanBuilder"]
