"""Tests for the filter service query pipeline."""

from __future__ import annotations

import asyncio
from datetime import date, datetime

import pytest

from taskq.config import EngineSettings
from taskq.engine.service import FilterService, HierarchicalResult, extract_unique_folders
from taskq.filters import FilterCondition, FilterQuery, parse_filter
from taskq.filters.ast import as_query
from taskq.model import Task, UserField
from taskq.store import STORE_EVENTS, InMemoryTaskStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingStore(InMemoryTaskStore):
    """Store recording how task lookups are batched."""

    def __init__(self, *args: object, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.lookups: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_cached_task_info(self, path: str) -> Task | None:
        self.lookups.append(path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return await super().get_cached_task_info(path)


def _tasks() -> list[Task]:
    return [
        Task("work/a.md", title="Alpha", status="open", due="2025-01-01", tags=["work"]),
        Task("work/b.md", title="Beta", status="done", due="2025-01-02", tags=["work"]),
        Task("c.md", title="Gamma", status="open", due="2025-01-03", tags=["home"]),
        Task("home/d.md", title="Delta", status="open"),
    ]


def _service(
    store: InMemoryTaskStore | None = None,
    clock: FakeClock | None = None,
    settings: EngineSettings | None = None,
) -> FilterService:
    store = store or InMemoryTaskStore(_tasks(), today=lambda: date(2025, 1, 2))
    return FilterService(
        store,
        user_fields=(UserField("effort", "effort", "Effort", "number"),),
        property_resolver=store,
        settings=settings,
        clock=clock or FakeClock(),
        today=lambda: date(2025, 1, 2),
        now=lambda: datetime(2025, 1, 2, 12, 0),
    )


def _paths(tasks: list[Task]) -> list[str]:
    return [task.path for task in tasks]


def test_grouped_tasks_default_query() -> None:
    """The default query should return every task sorted by due date."""
    service = _service()

    groups = asyncio.run(service.get_grouped_tasks(as_query(parse_filter(""))))

    assert list(groups) == ["all"]
    assert _paths(groups["all"]) == ["work/a.md", "work/b.md", "c.md", "home/d.md"]


def test_grouped_tasks_filter_sort_and_group() -> None:
    """Matching tasks should be sorted and grouped by the query settings."""
    service = _service()
    query = as_query(
        parse_filter("status is open"), sort_key="title", sort_direction="desc", group_key="due"
    )

    groups = asyncio.run(service.get_grouped_tasks(query))

    assert list(groups) == ["Overdue", "Tomorrow", "No due date"]
    assert {name: _paths(members) for name, members in groups.items()} == {
        "Overdue": ["work/a.md"],
        "Tomorrow": ["c.md"],
        "No due date": ["home/d.md"],
    }


def test_target_date_changes_relative_groups() -> None:
    """An explicit target date should drive due categories."""
    service = _service()
    query = as_query(parse_filter("title is Gamma"), group_key="due")

    groups = asyncio.run(service.get_grouped_tasks(query, date(2025, 1, 3)))

    assert list(groups) == ["Today"]


def test_validation_error_returns_empty_result() -> None:
    """Malformed queries should produce no groups."""
    service = _service()
    query = FilterQuery("root", "and", (FilterCondition("c1", "priority", "is", "high"),))

    assert asyncio.run(service.get_grouped_tasks(query)) == {}
    assert asyncio.run(service.get_hierarchical_grouped_tasks(query)) == HierarchicalResult({})


def test_unknown_conjunction_returns_empty_result() -> None:
    """Unknown conjunctions are rejected before evaluation."""
    service = _service()

    assert asyncio.run(service.get_grouped_tasks(FilterQuery("root", "xor"))) == {}


def test_evaluation_errors_do_not_abort_the_query() -> None:
    """Conditions that fail to evaluate simply do not match."""
    service = _service()
    query = as_query(parse_filter("due is-before soon or status is done"))

    groups = asyncio.run(service.get_grouped_tasks(query))

    assert _paths(groups["all"]) == ["work/b.md"]


def test_hierarchical_result_only_with_subgroup() -> None:
    """Two-level groups are built only when a subgroup key is active."""
    service = _service()
    flat_query = as_query(parse_filter(""), group_key="status")
    nested_query = as_query(parse_filter(""), group_key="status", subgroup_key="tags")
    ungrouped_query = as_query(parse_filter(""), subgroup_key="tags")

    flat = asyncio.run(service.get_hierarchical_grouped_tasks(flat_query))
    nested = asyncio.run(service.get_hierarchical_grouped_tasks(nested_query))
    ungrouped = asyncio.run(service.get_hierarchical_grouped_tasks(ungrouped_query))

    assert flat.hierarchical_groups is None
    assert ungrouped.hierarchical_groups is None
    assert nested.hierarchical_groups is not None
    assert list(nested.groups) == ["open", "done"]
    assert {
        name: _paths(members) for name, members in nested.hierarchical_groups["open"].items()
    } == {"home": ["c.md"], "work": ["work/a.md"], "No tags": ["home/d.md"]}


def test_paths_to_tasks_batches_and_drops_unknown_paths() -> None:
    """Task lookups should run in bounded concurrent batches."""
    store = CountingStore(_tasks())
    service = _service(store, settings=EngineSettings(batch_size=2))

    tasks = asyncio.run(
        service.paths_to_tasks(["work/a.md", "missing.md", "c.md", "home/d.md", "work/b.md"])
    )

    assert _paths(tasks) == ["work/a.md", "c.md", "home/d.md", "work/b.md"]
    assert len(store.lookups) == 5
    assert store.max_in_flight == 2


def test_index_cache_is_used_and_cleared_on_store_events() -> None:
    """Store changes should drop cached index lookups and notify listeners."""
    store = InMemoryTaskStore(_tasks(), today=lambda: date(2025, 1, 2))
    service = _service(store)
    service.initialize()
    notified: list[int] = []
    service.on_data_changed(lambda: notified.append(1))

    asyncio.run(service.get_grouped_tasks(as_query(parse_filter("status is open"))))
    assert service.get_cache_stats().entry_count == 1

    store.add_task(Task("e.md", status="open"))

    assert service.get_cache_stats().entry_count == 0
    assert notified == [1]
    groups = asyncio.run(service.get_grouped_tasks(as_query(parse_filter("status is open"))))
    assert "e.md" in _paths(groups["all"])


@pytest.mark.parametrize("event", STORE_EVENTS)
def test_every_store_event_triggers_invalidation(event: str) -> None:
    """Each store change event should reach the service."""
    store = InMemoryTaskStore(_tasks())
    service = _service(store)
    service.initialize()
    notified: list[int] = []
    service.on_data_changed(lambda: notified.append(1))

    match event:
        case "file-added":
            store.add_task(Task("new.md"))
        case "file-updated":
            store.update_task(Task("c.md", status="done"))
        case "file-deleted":
            store.delete_task("c.md")
        case "file-renamed":
            store.rename_task("c.md", "moved/c.md")
        case "indexes-built":
            store.rebuild_indexes()

    assert notified == [1]


def test_initialize_is_idempotent_and_cleanup_detaches() -> None:
    """Subscribing twice should notify once and cleanup should detach."""
    store = InMemoryTaskStore(_tasks())
    service = _service(store)
    notified: list[int] = []
    service.on_data_changed(lambda: notified.append(1))

    service.initialize()
    service.initialize()
    store.rebuild_indexes()
    assert notified == [1]

    service.cleanup()
    store.rebuild_indexes()
    assert notified == [1]


def test_filter_options_cached_and_invalidated_by_age() -> None:
    """Options should be cached and dropped on change only once old enough."""
    clock = FakeClock()
    store = InMemoryTaskStore(_tasks())
    service = _service(store, clock)
    service.initialize()

    options = service.get_filter_options()
    assert options.tags == ("home", "work")
    assert options.folders == ("(Root)", "home", "work")
    assert [item.value for item in options.statuses] == ["open", "done"]
    assert [item.id for item in options.user_properties] == ["user:effort"]

    store.add_task(Task("x.md", tags=["errands"]))
    assert service.get_filter_options() is options

    clock.now = 31.0
    store.add_task(Task("y.md", tags=["garden"]))
    refreshed = service.get_filter_options()

    assert refreshed is not options
    assert "errands" in refreshed.tags
    assert "garden" in refreshed.tags
    stats = service.get_filter_options_cache_stats()
    assert stats.computes == 2
    assert stats.hits == 1


def test_refresh_filter_options_forces_recompute() -> None:
    """Explicit refreshes should ignore the minimum age."""
    service = _service()
    first = service.get_filter_options()

    service.refresh_filter_options()

    assert service.get_filter_options() is not first


def test_extract_unique_folders() -> None:
    """Root-level paths should be reported as the root folder."""
    assert extract_unique_folders(["a.md", "x/y/b.md", "x/c.md", "x/y/d.md"]) == (
        "(Root)",
        "x",
        "x/y",
    )
    assert extract_unique_folders([]) == ()
