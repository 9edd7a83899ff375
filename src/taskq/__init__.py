"""taskq - Filter, sort and group task collections with index-backed query optimization."""

from taskq.cli import main
from taskq.engine import FilterService, HierarchicalResult, OptimizationAnalysis
from taskq.filters import FilterCondition, FilterGroup, FilterQuery, parse_filter
from taskq.model import Task, UserField
from taskq.statuses import StatusCatalogue, StatusDefinition
from taskq.store import InMemoryTaskStore


__version__ = "0.1.0"

__all__ = [
    "FilterCondition",
    "FilterGroup",
    "FilterQuery",
    "FilterService",
    "HierarchicalResult",
    "InMemoryTaskStore",
    "OptimizationAnalysis",
    "StatusCatalogue",
    "StatusDefinition",
    "Task",
    "UserField",
    "__version__",
    "main",
]
