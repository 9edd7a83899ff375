"""Query pipeline: prune candidates, evaluate, sort and group."""

from __future__ import annotations

from typing import TypeAlias

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from taskq.config import EngineSettings
from taskq.engine.cache import (
    Clock,
    FilterOptionsCache,
    FilterOptionsCacheStats,
    IndexCacheStats,
    IndexQueryCache,
)
from taskq.engine.grouping import (
    Groups,
    HierarchicalGroups,
    group_tasks,
    group_tasks_hierarchically,
)
from taskq.engine.optimizer import (
    OptimizationAnalysis,
    analyze_query_optimization,
    get_index_optimized_paths,
)
from taskq.engine.sorting import sort_tasks
from taskq.filters.ast import FilterQuery
from taskq.filters.errors import FilterEvaluationError, FilterValidationError
from taskq.filters.evaluator import evaluate_filter_node, validate_filter_node
from taskq.filters.properties import EvaluationContext, build_user_property_definitions
from taskq.model import FilterOptions, Task, UserField
from taskq.statuses import StatusCatalogue
from taskq.store import STORE_EVENTS, PropertyResolver, TaskStore


logger = logging.getLogger("taskq")

ROOT_FOLDER_LABEL = "(Root)"

DataChangedCallback: TypeAlias = Callable[[], None]


@dataclass(frozen=True)
class HierarchicalResult:
    """Flat groups plus optional two-level groups."""

    groups: Groups
    hierarchical_groups: HierarchicalGroups | None = None


def extract_unique_folders(paths: Iterable[str]) -> tuple[str, ...]:
    """Return sorted folder paths, labelling root-level tasks as ``(Root)``."""
    folders: set[str] = set()
    for path in paths:
        folder, sep, _ = path.rpartition("/")
        if not sep:
            folders.add("")
        elif folder:
            folders.add(folder)
    return tuple(ROOT_FOLDER_LABEL if folder == "" else folder for folder in sorted(folders))


class FilterService:
    """Filter, sort and group tasks from a task store.

    Owns the index query cache and the filter options cache. Call
    :meth:`initialize` to invalidate caches on store change events and
    :meth:`cleanup` to detach.
    """

    def __init__(
        self,
        store: TaskStore,
        statuses: StatusCatalogue | None = None,
        user_fields: Sequence[UserField] = (),
        property_resolver: PropertyResolver | None = None,
        settings: EngineSettings | None = None,
        clock: Clock = time.monotonic,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.statuses = statuses or StatusCatalogue()
        self.user_fields = tuple(user_fields)
        self.property_resolver = property_resolver
        self.settings = settings or EngineSettings()
        self._today = today
        self._now = now
        self.index_cache = IndexQueryCache(self.settings.index_cache_ttl_seconds, clock)
        self.options_cache = FilterOptionsCache(
            self.settings.filter_options_ttl_seconds,
            self.settings.filter_options_min_invalidation_age_seconds,
            clock,
        )
        self._listeners: list[DataChangedCallback] = []
        self._subscribed = False

    def initialize(self) -> None:
        """Subscribe to store change events."""
        if self._subscribed:
            return
        for event in STORE_EVENTS:
            self.store.on(event, self._handle_store_change)
        self._subscribed = True

    def cleanup(self) -> None:
        """Unsubscribe from the store and drop every cache."""
        if self._subscribed:
            for event in STORE_EVENTS:
                self.store.off(event, self._handle_store_change)
            self._subscribed = False
        self.clear_index_query_cache()
        self.options_cache.invalidate()
        self._listeners.clear()

    def on_data_changed(self, callback: DataChangedCallback) -> None:
        """Register a callback run after the store reports a change."""
        self._listeners.append(callback)

    def off_data_changed(self, callback: DataChangedCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _handle_store_change(self, payload: Mapping[str, object]) -> None:
        logger.debug("Store changed: %s", dict(payload))
        self.clear_index_query_cache()
        self.options_cache.check_and_invalidate()
        for callback in list(self._listeners):
            callback()

    def clear_index_query_cache(self) -> None:
        self.index_cache.clear()

    def refresh_filter_options(self) -> None:
        """Force the next :meth:`get_filter_options` call to recompute."""
        self.options_cache.invalidate()

    def get_cache_stats(self) -> IndexCacheStats:
        return self.index_cache.stats()

    def get_filter_options_cache_stats(self) -> FilterOptionsCacheStats:
        return self.options_cache.stats()

    def evaluation_context(self, target_date: date | None = None) -> EvaluationContext:
        """Build the evaluation context for one query run."""
        return EvaluationContext(
            reference_date=target_date or self._today(),
            statuses=self.statuses,
            user_fields=self.user_fields,
            property_resolver=self.property_resolver,
        )

    def analyze(self, query: FilterQuery) -> OptimizationAnalysis:
        """Return the optimization analysis for a query."""
        return analyze_query_optimization(query)

    async def get_grouped_tasks(
        self, query: FilterQuery, target_date: date | None = None
    ) -> Groups:
        """Return filtered, sorted and grouped tasks.

        Malformed filters are logged and produce an empty result.
        """
        try:
            context, tasks = await self._filtered_sorted_tasks(query, target_date)
            return group_tasks(
                tasks,
                query.group_key,
                context.reference_date,
                context,
                query.sort_key,
                query.sort_direction,
                self.settings.hide_completed_from_overdue,
                self._current_time(context.reference_date),
            )
        except (FilterValidationError, FilterEvaluationError) as err:
            _log_filter_error(err)
            return {}

    async def get_hierarchical_grouped_tasks(
        self, query: FilterQuery, target_date: date | None = None
    ) -> HierarchicalResult:
        """Return flat groups and, when a subgroup key is active, two-level groups."""
        try:
            context, tasks = await self._filtered_sorted_tasks(query, target_date)
            now = self._current_time(context.reference_date)
            groups = group_tasks(
                tasks,
                query.group_key,
                context.reference_date,
                context,
                query.sort_key,
                query.sort_direction,
                self.settings.hide_completed_from_overdue,
                now,
            )
            subgroup_key = query.subgroup_key
            if not subgroup_key or subgroup_key == "none" or query.group_key == "none":
                return HierarchicalResult(groups)

            hierarchical = group_tasks_hierarchically(
                tasks,
                query.group_key,
                subgroup_key,
                context.reference_date,
                context,
                query.sort_key,
                query.sort_direction,
                self.settings.hide_completed_from_overdue,
                now,
            )
            return HierarchicalResult(groups, hierarchical)
        except (FilterValidationError, FilterEvaluationError) as err:
            _log_filter_error(err)
            return HierarchicalResult({})

    async def _filtered_sorted_tasks(
        self, query: FilterQuery, target_date: date | None
    ) -> tuple[EvaluationContext, list[Task]]:
        validate_filter_node(query, strict=False)
        context = self.evaluation_context(target_date)

        candidate_paths = get_index_optimized_paths(query, self.store, self.index_cache)
        candidates = await self.paths_to_tasks(sorted(candidate_paths))
        matching = [task for task in candidates if evaluate_filter_node(query, task, context)]
        logger.info(
            "Query matched %d of %d candidate tasks", len(matching), len(candidates)
        )
        return context, sort_tasks(matching, query.sort_key, query.sort_direction, context)

    async def paths_to_tasks(self, paths: Sequence[str]) -> list[Task]:
        """Resolve paths to tasks in concurrent batches, dropping unknown paths."""
        tasks: list[Task] = []
        batch_size = max(self.settings.batch_size, 1)
        for start in range(0, len(paths), batch_size):
            batch = paths[start : start + batch_size]
            results = await asyncio.gather(
                *(self.store.get_cached_task_info(path) for path in batch)
            )
            tasks.extend(task for task in results if task is not None)
        return tasks

    def get_filter_options(self) -> FilterOptions:
        """Return statuses, tags, folders and user properties for filter building."""
        return self.options_cache.get_or_compute(self._compute_filter_options)

    def _compute_filter_options(self) -> FilterOptions:
        return FilterOptions(
            statuses=tuple(self.statuses.get_all_statuses()),
            tags=tuple(self.store.get_all_tags()),
            folders=extract_unique_folders(self.store.get_all_task_paths()),
            user_properties=tuple(build_user_property_definitions(self.user_fields)),
        )

    def _current_time(self, reference_date: date) -> datetime | None:
        now = self._now()
        return now if now.date() == reference_date else None


def _log_filter_error(err: FilterValidationError | FilterEvaluationError) -> None:
    detail = err.field if isinstance(err, FilterValidationError) else err.property_name
    logger.error("Filter error: %s (node %s, %s)", err, err.node_id, detail)
