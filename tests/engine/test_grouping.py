"""Tests for flat and hierarchical task grouping."""

from __future__ import annotations

from datetime import date, datetime

from taskq.engine.grouping import (
    ALL_GROUP,
    NO_DUE_DATE,
    NO_STATUS,
    NO_TAGS,
    group_tasks,
    group_tasks_hierarchically,
)
from taskq.filters import EvaluationContext
from taskq.model import Task, UserField
from taskq.statuses import StatusCatalogue, StatusDefinition
from taskq.store import InMemoryTaskStore


REFERENCE = date(2025, 1, 2)


def _context(**kwargs: object) -> EvaluationContext:
    return EvaluationContext(REFERENCE, **kwargs)  # type: ignore[arg-type]


def _names(groups: dict[str, list[Task]]) -> dict[str, list[str]]:
    return {name: [task.path for task in members] for name, members in groups.items()}


def test_group_none_returns_single_bucket() -> None:
    """Ungrouped results should keep every task in one bucket."""
    tasks = [Task("a.md"), Task("b.md")]

    assert _names(group_tasks(tasks, "none", REFERENCE)) == {ALL_GROUP: ["a.md", "b.md"]}


def test_group_by_due_buckets_in_fixed_order() -> None:
    """Due buckets should follow the relative date order."""
    tasks = [
        Task("none.md"),
        Task("later.md", due="2025-02-01"),
        Task("week.md", due="2025-01-09"),
        Task("tomorrow.md", due="2025-01-03"),
        Task("today.md", due="2025-01-02T18:00"),
        Task("overdue.md", due="2024-12-31"),
    ]

    groups = group_tasks(tasks, "due", REFERENCE, _context())

    assert list(groups) == [
        "Overdue",
        "Today",
        "Tomorrow",
        "Next seven days",
        "Later",
        NO_DUE_DATE,
    ]
    assert _names(groups) == {
        "Overdue": ["overdue.md"],
        "Today": ["today.md"],
        "Tomorrow": ["tomorrow.md"],
        "Next seven days": ["week.md"],
        "Later": ["later.md"],
        NO_DUE_DATE: ["none.md"],
    }


def test_completed_tasks_are_hidden_from_overdue() -> None:
    """Completed past-due tasks should not be filed as overdue by default."""
    task = Task("done.md", status="done", due="2024-12-01")

    hidden = group_tasks([task], "due", REFERENCE, _context())
    shown = group_tasks(
        [task], "due", REFERENCE, _context(), hide_completed_from_overdue=False
    )

    assert list(hidden) == ["Next seven days"]
    assert list(shown) == ["Overdue"]


def test_timed_due_today_is_overdue_after_its_time() -> None:
    """A timed due value on the reference day is overdue once passed."""
    task = Task("meeting.md", due="2025-01-02T09:00")

    before = group_tasks([task], "due", REFERENCE, _context(), now=datetime(2025, 1, 2, 8, 0))
    after = group_tasks([task], "due", REFERENCE, _context(), now=datetime(2025, 1, 2, 10, 0))

    assert list(before) == ["Today"]
    assert list(after) == ["Overdue"]


def test_recurring_task_due_on_reference_day() -> None:
    """Recurring tasks with an occurrence today should be grouped as today."""
    task = Task("daily.md", recurrence="FREQ=DAILY", due="2024-12-01")

    assert list(group_tasks([task], "due", REFERENCE, _context())) == ["Today"]


def test_group_by_tags_puts_task_in_each_tag() -> None:
    """Multi-tag tasks should appear in every tag bucket."""
    tasks = [Task("a.md", tags=["work", "home"]), Task("b.md"), Task("c.md", tags=["Admin"])]

    groups = group_tasks(tasks, "tags", REFERENCE, _context())

    assert list(groups) == ["Admin", "home", "work", NO_TAGS]
    assert _names(groups) == {
        "Admin": ["c.md"],
        "home": ["a.md"],
        "work": ["a.md"],
        NO_TAGS: ["b.md"],
    }


def test_group_by_status_uses_catalogue_order() -> None:
    """Status buckets should follow catalogue order, unknown and blank last."""
    statuses = StatusCatalogue(
        [
            StatusDefinition("todo", "To do", False, 0),
            StatusDefinition("doing", "Doing", False, 1),
            StatusDefinition("done", "Done", True, 2),
        ]
    )
    tasks = [
        Task("a.md", status="done"),
        Task("b.md", status=""),
        Task("c.md", status="todo"),
        Task("d.md", status="doing"),
    ]

    groups = group_tasks(tasks, "status", REFERENCE, _context(statuses=statuses))

    assert list(groups) == ["todo", "doing", "done", NO_STATUS]


def test_group_by_completed_date() -> None:
    """Completion buckets should list recent dates first and open tasks last."""
    tasks = [
        Task("open.md"),
        Task("old.md", completed_date="2024-12-30"),
        Task("bad.md", completed_date="yesterday"),
        Task("new.md", completed_date="2025-01-01T08:00"),
    ]

    groups = group_tasks(tasks, "completedDate", REFERENCE, _context())

    assert list(groups) == ["2025-01-01", "2024-12-30", "Invalid date", "Not completed"]


def test_group_by_user_number_field() -> None:
    """Numeric user buckets should sort ascending with placeholder buckets last."""
    store = InMemoryTaskStore(
        properties={
            "a.md": {"effort": "10 pts"},
            "b.md": {"effort": 2.0},
            "c.md": {"effort": "lots"},
        },
    )
    context = _context(
        user_fields=(UserField("effort", "effort", "Effort", "number"),),
        property_resolver=store,
    )
    tasks = [Task("a.md"), Task("b.md"), Task("c.md"), Task("d.md")]

    groups = group_tasks(tasks, "user:effort", REFERENCE, context)

    assert list(groups) == ["2", "10", "non-numeric", "no-value"]
    assert _names(groups) == {
        "2": ["b.md"],
        "10": ["a.md"],
        "no-value": ["d.md"],
        "non-numeric": ["c.md"],
    }


def test_group_by_user_text_field_puts_missing_values_last() -> None:
    """Blank and unset text values should follow every real bucket."""
    store = InMemoryTaskStore(
        properties={
            "a.md": {"owner": "zed"},
            "b.md": {},
            "c.md": {"owner": "   "},
            "d.md": {"owner": "Ann"},
        },
    )
    context = _context(
        user_fields=(UserField("owner", "owner", "Owner", "text"),),
        property_resolver=store,
    )
    tasks = [Task("a.md"), Task("b.md"), Task("c.md"), Task("d.md")]

    groups = group_tasks(tasks, "user:owner", REFERENCE, context)

    assert list(groups) == ["Ann", "zed", "empty", "no-value"]


def test_user_field_groups_reverse_when_sorted_descending() -> None:
    """Grouping by the sort field should follow a descending sort."""
    store = InMemoryTaskStore(properties={"a.md": {"flag": True}, "b.md": {"flag": "false"}})
    context = _context(
        user_fields=(UserField("flag", "flag", "Flag", "boolean"),),
        property_resolver=store,
    )
    tasks = [Task("a.md"), Task("b.md")]

    ascending = group_tasks(tasks, "user:flag", REFERENCE, context)
    descending = group_tasks(
        tasks, "user:flag", REFERENCE, context, sort_key="user:flag", sort_direction="desc"
    )

    assert list(ascending) == ["true", "false"]
    assert list(descending) == ["false", "true"]


def test_unknown_user_field_groups_as_unknown() -> None:
    """Grouping by an unconfigured user field should not fail."""
    groups = group_tasks([Task("a.md")], "user:missing", REFERENCE, _context())

    assert list(groups) == ["unknown-field"]


def test_group_contents_keep_input_order() -> None:
    """Bucket members should keep the order they were given in."""
    tasks = [Task("b.md", status="open"), Task("a.md", status="open")]

    assert _names(group_tasks(tasks, "status", REFERENCE, _context())) == {
        "open": ["b.md", "a.md"]
    }


def test_hierarchical_grouping_by_status_then_tags() -> None:
    """Each primary bucket should be partitioned by the subgroup key."""
    tasks = [
        Task("a.md", status="open", tags=["work"]),
        Task("b.md", status="done", tags=["home", "work"]),
        Task("c.md", status="open"),
    ]

    hierarchy = group_tasks_hierarchically(tasks, "status", "tags", REFERENCE, _context())

    assert list(hierarchy) == ["open", "done"]
    assert _names(hierarchy["open"]) == {"work": ["a.md"], NO_TAGS: ["c.md"]}
    assert _names(hierarchy["done"]) == {"home": ["b.md"], "work": ["b.md"]}


def test_hierarchical_user_list_subgroups() -> None:
    """List user fields should fan tasks out by display token."""
    store = InMemoryTaskStore(
        properties={"a.md": {"people": "[[people/Ann]], Bob"}, "b.md": {}},
    )
    context = _context(
        user_fields=(UserField("people", "people", "People", "list"),),
        property_resolver=store,
    )
    tasks = [Task("a.md", status="open"), Task("b.md", status="open")]

    hierarchy = group_tasks_hierarchically(tasks, "status", "user:people", REFERENCE, context)

    assert _names(hierarchy["open"]) == {
        "Ann": ["a.md"],
        "Bob": ["a.md"],
        "No People": ["b.md"],
    }


def test_hierarchical_with_none_subgroup() -> None:
    """A none subgroup should wrap each bucket in a single all group."""
    tasks = [Task("a.md", status="open")]

    hierarchy = group_tasks_hierarchically(tasks, "status", "none", REFERENCE, _context())

    assert _names(hierarchy["open"]) == {ALL_GROUP: ["a.md"]}
