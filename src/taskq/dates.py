"""Date helpers for date-only and date-time task fields.

Task dates are stored as strings: ``YYYY-MM-DD`` for all-day values or an ISO
date-time such as ``YYYY-MM-DDThh:mm`` with an optional offset. Calendar
comparisons only ever look at the date part as written, so a value never moves
to another day because of the local timezone.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time


DATE_PART_PATTERN = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")


def date_part(value: object) -> date | None:
    """Return the calendar date written at the start of value, if any."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    match = DATE_PART_PATTERN.match(value)
    if match is None:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def has_time(value: str) -> bool:
    """Check whether a date string carries a time component."""
    return "T" in value.strip() or " " in value.strip()


def parse_timestamp(value: object) -> datetime | None:
    """Parse a date or date-time string as a naive wall-clock datetime.

    Offsets are dropped rather than converted, keeping the written wall time.
    """
    day = date_part(value)
    if day is None:
        return None
    if not isinstance(value, str) or not has_time(value):
        return datetime.combine(day, time.min)

    text = value.strip().replace(" ", "T", 1)
    if text.endswith(("Z", "z")):
        text = text[:-1]
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return datetime.combine(day, time.min)
    return parsed.replace(tzinfo=None)


def format_date(value: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return value.isoformat()
