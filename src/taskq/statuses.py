"""Status catalogue resolving raw status values to completion and ordering."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class StatusDefinition:
    """One configured status value."""

    value: str
    label: str
    is_completed: bool = False
    order: int = 0


DEFAULT_STATUSES: tuple[StatusDefinition, ...] = (
    StatusDefinition(value="open", label="To do", is_completed=False, order=0),
    StatusDefinition(value="done", label="Done", is_completed=True, order=1),
)

UNKNOWN_STATUS_ORDER = 999


class StatusCatalogue:
    """Ordered set of status definitions."""

    def __init__(self, statuses: Iterable[StatusDefinition] | None = None) -> None:
        definitions = list(DEFAULT_STATUSES if statuses is None else statuses)
        if not definitions:
            definitions = list(DEFAULT_STATUSES)
        self._statuses = sorted(definitions, key=lambda status: status.order)
        self._by_value = {status.value: status for status in self._statuses}

    def get_all_statuses(self) -> list[StatusDefinition]:
        """Return definitions sorted by order."""
        return list(self._statuses)

    def get_status(self, value: str) -> StatusDefinition | None:
        """Return the definition for a value, if configured."""
        return self._by_value.get(value)

    def is_completed_status(self, value: str | None) -> bool:
        """Check whether a raw status value counts as completed."""
        if not value:
            return False
        status = self._by_value.get(value)
        return status is not None and status.is_completed

    def get_status_order(self, value: str | None) -> int:
        """Return the ordinal of a status; unknown values sort last."""
        if not value:
            return UNKNOWN_STATUS_ORDER
        status = self._by_value.get(value)
        return status.order if status is not None else UNKNOWN_STATUS_ORDER

    def default_open_status(self) -> str:
        """Return the first non-completed status value."""
        for status in self._statuses:
            if not status.is_completed:
                return status.value
        return self._statuses[0].value

    def first_completed_status(self) -> str:
        """Return the first completed status value."""
        for status in self._statuses:
            if status.is_completed:
                return status.value
        return self._statuses[-1].value
