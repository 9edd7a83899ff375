"""Task ordering by sort key with deterministic fallbacks."""

from __future__ import annotations

from typing import TypeAlias

import functools
import logging
from collections.abc import Callable, Iterable

from taskq.dates import parse_timestamp
from taskq.filters.properties import (
    EvaluationContext,
    coerce_boolean,
    coerce_number,
    is_user_property,
    lookup_raw_user_value,
    normalize_user_list_value,
)
from taskq.model import Task
from taskq.text_utils import locale_compare


logger = logging.getLogger("taskq")

SORT_KEYS: tuple[str, ...] = ("due", "status", "title", "dateCreated", "completedDate", "tags")
FALLBACK_SORT_KEYS: tuple[str, ...] = ("due", "title")

Comparator: TypeAlias = Callable[[Task, Task], int]


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def compare_dates(left: str | None, right: str | None) -> int:
    """Compare optional date strings; missing dates sort last."""
    if not left and not right:
        return 0
    if not left:
        return 1
    if not right:
        return -1
    left_time = parse_timestamp(left)
    right_time = parse_timestamp(right)
    if left_time is None or right_time is None:
        return locale_compare(left, right)
    return (left_time > right_time) - (left_time < right_time)


def compare_tags(left: list[str], right: list[str]) -> int:
    """Compare by first tag; tag-less tasks sort last."""
    if not left and not right:
        return 0
    if not left:
        return 1
    if not right:
        return -1
    return locale_compare(left[0].lower(), right[0].lower())


def _compare_present(left: object, right: object) -> int | None:
    """Order present values before absent ones; None when both are present."""
    if left is None and right is None:
        return 0
    if left is None:
        return 1
    if right is None:
        return -1
    return None


def compare_user_values(left: object, right: object, field_type: str) -> int:
    """Compare raw user property values according to the field type."""
    match field_type:
        case "number":
            left_number, right_number = coerce_number(left), coerce_number(right)
            if left_number is None or right_number is None:
                return _compare_present(left_number, right_number) or 0
            return _sign(left_number - right_number)
        case "boolean":
            left_flag, right_flag = coerce_boolean(left), coerce_boolean(right)
            rank = {True: 0, False: 1, None: 2}
            return rank[left_flag] - rank[right_flag]
        case "date":
            left_time = parse_timestamp(left) if left else None
            right_time = parse_timestamp(right) if right else None
            if left_time is None or right_time is None:
                return _compare_present(left_time, right_time) or 0
            return (left_time > right_time) - (left_time < right_time)
        case "list":
            left_first = _first_list_token(left)
            right_first = _first_list_token(right)
            if left_first is None or right_first is None:
                return _compare_present(left_first, right_first) or 0
            return locale_compare(left_first, right_first)
        case _:
            left_text, right_text = _present_text(left), _present_text(right)
            if left_text is None or right_text is None:
                return _compare_present(left_text, right_text) or 0
            return locale_compare(left_text, right_text)


def _present_text(raw: object) -> str | None:
    if raw is None:
        return None
    text = str(raw)
    return text if text.strip() else None


def _first_list_token(raw: object) -> str | None:
    if not isinstance(raw, (list, tuple, str)):
        return None
    tokens = normalize_user_list_value(raw)
    return tokens[0] if tokens else None


def _user_field_comparator(key: str, context: EvaluationContext) -> Comparator:
    user_field = context.find_user_field(key)
    resolver = context.property_resolver
    if user_field is None or resolver is None:
        return lambda left, right: 0

    values: dict[str, object] = {}

    def raw(task: Task) -> object:
        if task.path not in values:
            values[task.path] = lookup_raw_user_value(resolver, task.path, user_field)
        return values[task.path]

    return lambda left, right: compare_user_values(raw(left), raw(right), user_field.type)


def key_comparator(key: str, context: EvaluationContext) -> Comparator:
    """Return the primary comparator for a sort key."""
    if is_user_property(key):
        return _user_field_comparator(key, context)

    statuses = context.statuses
    match key:
        case "due":
            return lambda left, right: compare_dates(left.due, right.due)
        case "dateCreated":
            return lambda left, right: compare_dates(left.date_created, right.date_created)
        case "completedDate":
            return lambda left, right: compare_dates(left.completed_date, right.completed_date)
        case "status":
            return lambda left, right: (
                statuses.get_status_order(left.status) - statuses.get_status_order(right.status)
            )
        case "title":
            return lambda left, right: locale_compare(left.title, right.title)
        case "tags":
            return lambda left, right: compare_tags(left.tags, right.tags)
    logger.warning("Unknown sort key %r, keeping fallback order", key)
    return lambda left, right: 0


def sort_tasks(
    tasks: Iterable[Task],
    key: str,
    direction: str,
    context: EvaluationContext,
) -> list[Task]:
    """Return tasks sorted by key and direction.

    Ties fall back to due date then title (skipping the primary key) and
    finally path. The direction applies to the combined comparison.
    """
    primary = key_comparator(key, context)
    fallbacks = [key_comparator(name, context) for name in FALLBACK_SORT_KEYS if name != key]
    fallbacks.append(lambda left, right: (left.path > right.path) - (left.path < right.path))
    sign = -1 if direction == "desc" else 1

    def compare(left: Task, right: Task) -> int:
        result = primary(left, right)
        for fallback in fallbacks:
            if result != 0:
                break
            result = fallback(left, right)
        return sign * result

    return sorted(tasks, key=functools.cmp_to_key(compare))
