"""Recurrence helpers for RFC 5545 rule strings."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta

from dateutil.rrule import rrulestr

from taskq.dates import date_part, format_date, parse_timestamp
from taskq.model import Task
from taskq.statuses import StatusCatalogue


logger = logging.getLogger("taskq")

DTSTART_PATTERN = re.compile(r"DTSTART[:=]([0-9TZ]+)", re.IGNORECASE)


def _split_rule(recurrence: str) -> tuple[str, datetime | None]:
    """Separate an embedded DTSTART from the rule body.

    Accepts ``DTSTART:20250101T000000Z;FREQ=DAILY`` as well as the newline
    separated form.
    """
    match = DTSTART_PATTERN.search(recurrence)
    start: datetime | None = None
    if match is not None:
        start = _parse_compact_timestamp(match.group(1))

    parts = [part.strip() for part in re.split(r"[;\n]", recurrence) if part.strip()]
    body_parts = [
        part for part in parts if not part.upper().startswith(("DTSTART", "RRULE:DTSTART"))
    ]
    body = ";".join(part.removeprefix("RRULE:") for part in body_parts)
    return body, start


def _parse_compact_timestamp(value: str) -> datetime | None:
    text = value.rstrip("Zz")
    for fmt in ("%Y%m%dT%H%M%S", "%Y%m%d"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _rule_anchor(task: Task, target: date) -> datetime:
    for candidate in (task.due, task.date_created):
        day = date_part(candidate)
        if day is not None:
            return datetime.combine(day, time.min)
    return datetime.combine(target, time.min)


def is_due_by_rrule(task: Task, target: date) -> bool:
    """Check whether a recurring task has an occurrence on the target date.

    Invalid rules are logged and treated as never firing.
    """
    if not task.recurrence:
        return False

    body, start = _split_rule(task.recurrence)
    if not body:
        return False
    anchor = start or _rule_anchor(task, target)

    try:
        rule = rrulestr(body, dtstart=anchor, ignoretz=True)
    except (ValueError, TypeError) as err:
        logger.warning("Invalid recurrence rule for %s: %s", task.path, err)
        return False

    day_start = datetime.combine(target, time.min)
    day_end = day_start + timedelta(days=1) - timedelta(microseconds=1)
    try:
        return bool(rule.between(day_start, day_end, inc=True))
    except (ValueError, TypeError) as err:
        logger.warning("Failed to expand recurrence rule for %s: %s", task.path, err)
        return False


def get_effective_status(task: Task, target: date, statuses: StatusCatalogue) -> str:
    """Return the status a task has on the target date.

    Recurring tasks track completion per instance; the stored status only
    applies when it is not a completed one.
    """
    if not task.recurrence:
        return task.status

    target_string = format_date(target)
    completed_days = {date_part(value) for value in task.complete_instances}
    if target in completed_days or target_string in task.complete_instances:
        return statuses.first_completed_status()
    if statuses.is_completed_status(task.status):
        return statuses.default_open_status()
    return task.status


def is_overdue(
    due: str,
    reference: date,
    now: datetime | None = None,
    is_completed: bool = False,
    hide_completed_from_overdue: bool = True,
) -> bool:
    """Check whether a due value lies before the reference date.

    A due value with a time is also overdue on the reference date once that
    time has passed.
    """
    if is_completed and hide_completed_from_overdue:
        return False

    day = date_part(due)
    if day is None:
        return False
    if day < reference:
        return True
    if day == reference and now is not None and now.date() == reference and ":" in due:
        timestamp = parse_timestamp(due)
        return timestamp is not None and timestamp < now
    return False
