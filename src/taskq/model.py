"""Task records and filter metadata types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from taskq.statuses import StatusDefinition


UserFieldType: TypeAlias = Literal["text", "number", "boolean", "date", "list"]

USER_FIELD_TYPES: tuple[str, ...] = ("text", "number", "boolean", "date", "list")


@dataclass
class Task:
    """A task record owned by the task store.

    Identity is the path. User-defined property values are not stored here;
    they are looked up through a property resolver.
    """

    path: str
    title: str = ""
    status: str = ""
    due: str | None = None
    completed_date: str | None = None
    date_created: str | None = None
    date_modified: str | None = None
    tags: list[str] = field(default_factory=list)
    archived: bool = False
    recurrence: str | None = None
    complete_instances: list[str] = field(default_factory=list)
    skipped_instances: list[str] = field(default_factory=list)


def task_from_dict(data: Mapping[str, object]) -> Task:
    """Build a task from a JSON-compatible mapping using camelCase or snake_case keys.

    Raises:
        ValueError: If the mapping has no string path
    """
    path = data.get("path")
    if not isinstance(path, str) or not path:
        raise ValueError("Task records require a non-empty 'path'")

    def text(*keys: str) -> str | None:
        for key in keys:
            value = data.get(key)
            if value is not None and value != "":
                return str(value)
        return None

    def strings(*keys: str) -> list[str]:
        for key in keys:
            value = data.get(key)
            if isinstance(value, (list, tuple)):
                return [str(item) for item in value]
            if isinstance(value, str) and value:
                return [value]
        return []

    return Task(
        path=path,
        title=text("title") or "",
        status=text("status") or "",
        due=text("due"),
        completed_date=text("completedDate", "completed_date"),
        date_created=text("dateCreated", "date_created"),
        date_modified=text("dateModified", "date_modified"),
        tags=strings("tags"),
        archived=data.get("archived") is True,
        recurrence=text("recurrence"),
        complete_instances=strings("complete_instances", "completeInstances"),
        skipped_instances=strings("skipped_instances", "skippedInstances"),
    )


@dataclass(frozen=True)
class UserField:
    """User-configured property mapped onto a metadata key."""

    id: str
    key: str
    display_name: str
    type: str = "text"

    @property
    def property_id(self) -> str:
        """Filter property identifier for this field."""
        return f"user:{self.id or self.key}"

    @property
    def label(self) -> str:
        """Display label falling back to key and id."""
        return self.display_name or self.key or self.id


@dataclass(frozen=True)
class PropertyDefinition:
    """Metadata describing a filterable property."""

    id: str
    label: str
    category: str
    supported_operators: tuple[str, ...]
    value_input_type: str


@dataclass(frozen=True)
class OperatorDefinition:
    """Metadata describing a filter operator."""

    id: str
    label: str
    requires_value: bool


@dataclass(frozen=True)
class FilterOptions:
    """Snapshot of values available for building filters."""

    statuses: tuple[StatusDefinition, ...]
    tags: tuple[str, ...]
    folders: tuple[str, ...]
    user_properties: tuple[PropertyDefinition, ...] = ()


def task_to_dict(task: Task) -> dict[str, object]:
    """Serialize a task using camelCase keys."""
    return {
        "path": task.path,
        "title": task.title,
        "status": task.status,
        "due": task.due,
        "completedDate": task.completed_date,
        "dateCreated": task.date_created,
        "dateModified": task.date_modified,
        "tags": list(task.tags),
        "archived": task.archived,
        "recurrence": task.recurrence,
        "completeInstances": list(task.complete_instances),
        "skippedInstances": list(task.skipped_instances),
    }
