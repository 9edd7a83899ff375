"""Index-backed candidate pruning for filter queries.

A query may only be answered from a reduced candidate set when every task
that the full filter would accept is guaranteed to be in that set. This holds
for indexable conditions reachable from the root through ``and`` groups only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from taskq.dates import date_part, format_date
from taskq.engine.cache import IndexQueryCache
from taskq.filters.ast import FilterCondition, FilterGroup, FilterNode
from taskq.store import TaskIndex


logger = logging.getLogger("taskq")

OptimizationStrategy: TypeAlias = Literal["single", "intersect"]

DUE_INDEX_OPERATORS = ("is", "is-before", "is-after")


@dataclass(frozen=True)
class OptimizationAnalysis:
    """Outcome of the optimization safety analysis."""

    can_optimize: bool
    strategy: OptimizationStrategy | None = None
    conditions: tuple[FilterCondition, ...] = field(default_factory=tuple)
    reason: str | None = None


def is_indexable_condition(node: FilterNode) -> bool:
    """Check whether a condition can be answered from an index."""
    if not isinstance(node, FilterCondition):
        return False
    if not isinstance(node.value, str) or not node.value.strip():
        return False
    if node.property == "status":
        return node.operator == "is"
    if node.property == "due":
        return node.operator in DUE_INDEX_OPERATORS
    return False


def find_indexable_conditions(node: FilterNode) -> list[tuple[FilterCondition, bool]]:
    """Return indexable conditions with whether every ancestor is an ``and`` group."""
    found: list[tuple[FilterCondition, bool]] = []

    def visit(current: FilterNode, all_and: bool) -> None:
        if isinstance(current, FilterCondition):
            if is_indexable_condition(current):
                found.append((current, all_and))
            return
        child_all_and = all_and and current.conjunction == "and"
        for child in current.children:
            visit(child, child_all_and)

    visit(node, True)
    return found


def analyze_query_optimization(query: FilterGroup) -> OptimizationAnalysis:
    """Decide whether the candidate set can be pruned with indexes.

    Returns:
        ``single`` for one indexable condition outside any ``or`` group,
        ``intersect`` for several indexable conditions that are all direct
        children of an ``and`` root, otherwise a non-optimizable analysis
    """
    found = find_indexable_conditions(query)
    conditions = tuple(found_condition for found_condition, _ in found)

    if not found:
        return OptimizationAnalysis(False, None, (), "No indexable conditions found")

    if not all(all_and for _, all_and in found):
        return OptimizationAnalysis(
            False,
            None,
            conditions,
            "Indexable condition inside an OR group - optimization not safe",
        )

    if len(found) == 1:
        return OptimizationAnalysis(True, "single", conditions)

    root_children = {id(child) for child in query.children}
    if query.conjunction == "and" and all(id(item) in root_children for item in conditions):
        return OptimizationAnalysis(True, "intersect", conditions)

    return OptimizationAnalysis(
        False,
        None,
        conditions,
        "Indexable conditions nested below the root - optimization not safe",
    )


def paths_for_indexable_condition(
    condition: FilterCondition,
    index: TaskIndex,
    cache: IndexQueryCache | None = None,
) -> set[str]:
    """Return the candidate paths an index gives for one condition."""
    value = str(condition.value)
    key = (condition.property, condition.operator, value)

    def compute() -> set[str]:
        if condition.property == "status" and condition.operator == "is":
            return set(index.get_task_paths_by_status(value))
        if condition.property == "due" and condition.operator == "is":
            day = date_part(value)
            return set(index.get_tasks_for_date(format_date(day))) if day is not None else set()
        # No range index yet; the full filter narrows range conditions.
        return set(index.get_all_task_paths())

    if cache is None:
        return compute()
    return cache.get_or_compute(key, compute)


def get_index_optimized_paths(
    query: FilterGroup,
    index: TaskIndex,
    cache: IndexQueryCache | None = None,
) -> set[str]:
    """Return the candidate paths to evaluate for a query.

    Falls back to every known path when pruning is not provably safe or the
    index lookup fails.
    """
    analysis = analyze_query_optimization(query)
    if not analysis.can_optimize:
        logger.debug("Full scan: %s", analysis.reason)
        return set(index.get_all_task_paths())

    try:
        candidates = paths_for_indexable_condition(analysis.conditions[0], index, cache)
        for condition in analysis.conditions[1:]:
            candidates &= paths_for_indexable_condition(condition, index, cache)
    except Exception as err:
        logger.warning("Index lookup failed, falling back to a full scan: %s", err)
        return set(index.get_all_task_paths())

    logger.debug(
        "Index optimization %s over %d conditions: %d candidates",
        analysis.strategy,
        len(analysis.conditions),
        len(candidates),
    )
    return candidates
