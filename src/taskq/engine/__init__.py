"""Query engine: index optimization, sorting, grouping, caching and the filter service."""

from taskq.engine.cache import FilterOptionsCache, IndexQueryCache
from taskq.engine.grouping import group_tasks, group_tasks_hierarchically
from taskq.engine.optimizer import (
    OptimizationAnalysis,
    analyze_query_optimization,
    get_index_optimized_paths,
)
from taskq.engine.service import FilterService, HierarchicalResult
from taskq.engine.sorting import sort_tasks


__all__ = [
    "FilterOptionsCache",
    "FilterService",
    "HierarchicalResult",
    "IndexQueryCache",
    "OptimizationAnalysis",
    "analyze_query_optimization",
    "get_index_optimized_paths",
    "group_tasks",
    "group_tasks_hierarchically",
    "sort_tasks",
]
