"""Single-level and hierarchical task grouping with type-aware bucket order."""

from __future__ import annotations

from typing import TypeAlias

import functools
import re
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta

from taskq.dates import date_part, format_date, parse_timestamp
from taskq.filters.properties import (
    EvaluationContext,
    USER_PROPERTY_PREFIX,
    coerce_boolean,
    display_list_tokens,
    is_user_property,
    lookup_raw_user_value,
    normalize_user_list_value,
)
from taskq.model import Task, UserField
from taskq.recurrence import is_due_by_rrule, is_overdue
from taskq.text_utils import locale_compare, locale_key


Groups: TypeAlias = dict[str, list[Task]]
HierarchicalGroups: TypeAlias = dict[str, dict[str, list[Task]]]

GROUP_KEYS: tuple[str, ...] = ("none", "status", "due", "tags", "completedDate")
ALL_GROUP = "all"
NO_STATUS = "no-status"
NO_TAGS = "No tags"
NOT_COMPLETED = "Not completed"
INVALID_DATE = "Invalid date"

OVERDUE = "Overdue"
TODAY = "Today"
TOMORROW = "Tomorrow"
NEXT_SEVEN_DAYS = "Next seven days"
LATER = "Later"
NO_DUE_DATE = "No due date"
DUE_GROUP_ORDER: tuple[str, ...] = (OVERDUE, TODAY, TOMORROW, NEXT_SEVEN_DAYS, LATER, NO_DUE_DATE)

UNKNOWN_FIELD = "unknown-field"
NO_VALUE = "no-value"
NON_NUMERIC = "non-numeric"
NO_DATE = "no-date"
EMPTY = "empty"

# Placeholder buckets sort after every real value, in this order.
_SENTINEL_RANK: dict[str, int] = {
    NON_NUMERIC: 1,
    NO_DATE: 1,
    EMPTY: 2,
    NO_VALUE: 3,
    UNKNOWN_FIELD: 4,
}

_LEADING_NUMBER = re.compile(r"^(\d+(?:\.\d+)?)")


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def due_date_group(
    task: Task,
    reference: date,
    context: EvaluationContext,
    hide_completed_from_overdue: bool = True,
    now: datetime | None = None,
) -> str:
    """Return the relative due category of a task on the reference date.

    A recurring task with an occurrence on the reference date is grouped as
    due that day.
    """
    is_completed = context.statuses.is_completed_status(task.status)

    def categorize(value: str) -> str:
        if is_overdue(value, reference, now, is_completed, hide_completed_from_overdue):
            return OVERDUE
        day = date_part(value)
        if day is None:
            return INVALID_DATE
        if day == reference:
            return TODAY
        if day == reference + timedelta(days=1):
            return TOMORROW
        if day <= reference + timedelta(days=7):
            return NEXT_SEVEN_DAYS
        return LATER

    if task.recurrence and is_due_by_rrule(task, reference):
        return categorize(format_date(reference))
    if not task.due:
        return NO_DUE_DATE
    return categorize(task.due)


def completed_date_group(task: Task) -> str:
    if not task.completed_date:
        return NOT_COMPLETED
    day = date_part(task.completed_date)
    return format_date(day) if day is not None else INVALID_DATE


def user_field_group_value(
    task: Task, user_field: UserField | None, context: EvaluationContext
) -> str:
    """Derive the single bucket name of a task for a user field."""
    if user_field is None:
        return UNKNOWN_FIELD
    if context.property_resolver is None:
        return NO_VALUE
    raw = lookup_raw_user_value(context.property_resolver, task.path, user_field)

    match user_field.type:
        case "boolean":
            flag = coerce_boolean(raw)
            return NO_VALUE if flag is None else str(flag).lower()
        case "number":
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                return _format_number(raw)
            if isinstance(raw, str):
                match = _LEADING_NUMBER.match(raw)
                return match.group(1) if match else NON_NUMERIC
            return NO_VALUE
        case "date":
            return str(raw) if raw else NO_DATE
        case "list":
            if isinstance(raw, str) and not raw.strip():
                return EMPTY
            if isinstance(raw, (list, tuple, str)):
                tokens = normalize_user_list_value(raw)
                return tokens[0] if tokens else EMPTY
            return NO_VALUE
        case _:
            if not raw:
                return NO_VALUE
            return str(raw).strip() or EMPTY


def user_field_subgroup_values(
    task: Task, field_id: str, user_field: UserField | None, context: EvaluationContext
) -> list[str]:
    """Derive subgroup buckets for a user field.

    List fields yield one bucket per display token; missing values go to a
    ``No <label>`` bucket.
    """
    missing = f"No {user_field.label if user_field is not None else field_id}"
    if user_field is None or context.property_resolver is None:
        return [missing]
    raw = lookup_raw_user_value(context.property_resolver, task.path, user_field)

    match user_field.type:
        case "boolean":
            flag = coerce_boolean(raw)
            return [missing] if flag is None else [str(flag).lower()]
        case "number":
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                return [_format_number(raw)]
            if isinstance(raw, str):
                match = _LEADING_NUMBER.match(raw)
                return [match.group(1)] if match else [missing]
            return [missing]
        case "date":
            return [str(raw)] if raw else [missing]
        case "list":
            tokens = display_list_tokens(normalize_user_list_value(raw))
            return tokens or [missing]
        case _:
            text = str(raw if raw is not None else "").strip()
            return [text] if text else [missing]


def _group_values(
    task: Task,
    key: str,
    context: EvaluationContext,
    hide_completed_from_overdue: bool,
    now: datetime | None,
    subgroup: bool = False,
) -> list[str]:
    if key == "tags":
        return list(dict.fromkeys(task.tags)) or [NO_TAGS]
    if is_user_property(key):
        user_field = context.find_user_field(key)
        if subgroup:
            field_id = key.removeprefix(USER_PROPERTY_PREFIX)
            return user_field_subgroup_values(task, field_id, user_field, context)
        return [user_field_group_value(task, user_field, context)]
    match key:
        case "status":
            return [task.status or NO_STATUS]
        case "due":
            return [
                due_date_group(
                    task, context.reference_date, context, hide_completed_from_overdue, now
                )
            ]
        case "completedDate":
            return [completed_date_group(task)]
    return ["unknown"]


def _partition(
    tasks: Iterable[Task],
    key: str,
    context: EvaluationContext,
    hide_completed_from_overdue: bool,
    now: datetime | None,
    subgroup: bool = False,
) -> Groups:
    groups: Groups = {}
    for task in tasks:
        for value in _group_values(task, key, context, hide_completed_from_overdue, now, subgroup):
            groups.setdefault(value, []).append(task)
    return groups


def _compare_tag_groups(left: str, right: str) -> int:
    if left == NO_TAGS or right == NO_TAGS:
        return (left == NO_TAGS) - (right == NO_TAGS)
    return locale_compare(left, right)


def _compare_completed_dates(left: str, right: str) -> int:
    trailing = (INVALID_DATE, NOT_COMPLETED)
    if left in trailing or right in trailing:
        left_rank = trailing.index(left) + 1 if left in trailing else 0
        right_rank = trailing.index(right) + 1 if right in trailing else 0
        return left_rank - right_rank
    return (left < right) - (left > right)


def _user_key_comparator(user_field: UserField) -> Callable[[str, str], int]:
    def fallback(left: str, right: str) -> int:
        left_rank = _SENTINEL_RANK.get(left, 0)
        right_rank = _SENTINEL_RANK.get(right, 0)
        return (left_rank - right_rank) or locale_compare(left, right)

    match user_field.type:
        case "number":

            def compare_numbers(left: str, right: str) -> int:
                left_number = _parse_float(left)
                right_number = _parse_float(right)
                if left_number is not None and right_number is not None:
                    return (left_number > right_number) - (left_number < right_number)
                if left_number is not None:
                    return -1
                if right_number is not None:
                    return 1
                return fallback(left, right)

            return compare_numbers
        case "boolean":
            rank = {"true": 0, "false": 1}

            def compare_flags(left: str, right: str) -> int:
                difference = rank.get(left, 2) - rank.get(right, 2)
                return difference or fallback(left, right)

            return compare_flags
        case "date":

            def compare_dates(left: str, right: str) -> int:
                left_time = parse_timestamp(left)
                right_time = parse_timestamp(right)
                if left_time is not None and right_time is not None:
                    return (left_time > right_time) - (left_time < right_time)
                if left_time is not None:
                    return -1
                if right_time is not None:
                    return 1
                return fallback(left, right)

            return compare_dates
    return fallback


def _parse_float(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def order_group_keys(
    keys: Iterable[str],
    group_key: str,
    context: EvaluationContext,
    sort_key: str | None = None,
    sort_direction: str = "asc",
) -> list[str]:
    """Order bucket names for a group key."""
    names = list(keys)
    if is_user_property(group_key):
        user_field = context.find_user_field(group_key)
        if user_field is None:
            return sorted(names)
        ordered = sorted(names, key=functools.cmp_to_key(_user_key_comparator(user_field)))
        if sort_key == group_key and sort_direction == "desc":
            ordered.reverse()
        return ordered

    match group_key:
        case "status":
            return sorted(names, key=context.statuses.get_status_order)
        case "due":
            return sorted(
                names,
                key=lambda name: (
                    DUE_GROUP_ORDER.index(name) if name in DUE_GROUP_ORDER else len(DUE_GROUP_ORDER)
                ),
            )
        case "tags":
            return sorted(names, key=functools.cmp_to_key(_compare_tag_groups))
        case "completedDate":
            return sorted(names, key=functools.cmp_to_key(_compare_completed_dates))
    return sorted(names, key=locale_key)


def _ordered(groups: Groups, order: Iterable[str]) -> Groups:
    return {name: groups[name] for name in order}


def group_tasks(
    tasks: Sequence[Task],
    group_key: str,
    reference_date: date | None = None,
    context: EvaluationContext | None = None,
    sort_key: str | None = None,
    sort_direction: str = "asc",
    hide_completed_from_overdue: bool = True,
    now: datetime | None = None,
) -> Groups:
    """Partition tasks into ordered buckets.

    Args:
        tasks: Tasks in display order; bucket contents keep this order
        group_key: none, status, due, tags, completedDate or ``user:<id>``
        reference_date: Day relative due categories are computed against
        context: Status catalogue, user fields and property resolver
        sort_key: Active sort key, used to reverse user field buckets
        sort_direction: Active sort direction
        hide_completed_from_overdue: Never file completed tasks as overdue
        now: Current time for time-aware overdue checks on the reference date

    Returns:
        Insertion-ordered mapping of bucket name to tasks
    """
    context = _with_reference(context, reference_date)
    if group_key == "none":
        return {ALL_GROUP: list(tasks)}

    groups = _partition(tasks, group_key, context, hide_completed_from_overdue, now)
    order = order_group_keys(groups, group_key, context, sort_key, sort_direction)
    return _ordered(groups, order)


def group_tasks_hierarchically(
    tasks: Sequence[Task],
    group_key: str,
    subgroup_key: str,
    reference_date: date | None = None,
    context: EvaluationContext | None = None,
    sort_key: str | None = None,
    sort_direction: str = "asc",
    hide_completed_from_overdue: bool = True,
    now: datetime | None = None,
) -> HierarchicalGroups:
    """Partition tasks by group key, then each bucket by subgroup key.

    Primary buckets follow the flat order of :func:`group_tasks`.
    """
    context = _with_reference(context, reference_date)
    primary = group_tasks(
        tasks,
        group_key,
        context.reference_date,
        context,
        sort_key,
        sort_direction,
        hide_completed_from_overdue,
        now,
    )
    if subgroup_key == "none":
        return {name: {ALL_GROUP: members} for name, members in primary.items()}

    hierarchy: HierarchicalGroups = {}
    for name, members in primary.items():
        subgroups = _partition(
            members, subgroup_key, context, hide_completed_from_overdue, now, subgroup=True
        )
        order = order_group_keys(subgroups, subgroup_key, context, sort_key, sort_direction)
        hierarchy[name] = _ordered(subgroups, order)
    return hierarchy


def _with_reference(
    context: EvaluationContext | None, reference_date: date | None
) -> EvaluationContext:
    if context is None:
        return EvaluationContext(reference_date or date.today())
    if reference_date is not None and reference_date != context.reference_date:
        return EvaluationContext(
            reference_date,
            context.statuses,
            context.user_fields,
            context.property_resolver,
            context.errors,
        )
    return context
