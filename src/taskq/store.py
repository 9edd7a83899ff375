"""Task store collaborators and an in-memory reference store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Protocol, TypeAlias

from taskq.dates import date_part, format_date
from taskq.model import Task
from taskq.statuses import StatusCatalogue


logger = logging.getLogger("taskq")

STORE_EVENTS: tuple[str, ...] = (
    "file-added",
    "file-updated",
    "file-deleted",
    "file-renamed",
    "indexes-built",
)

EventCallback: TypeAlias = Callable[[Mapping[str, object]], None]


class TaskIndex(Protocol):
    """Precomputed lookups over the task collection."""

    def get_all_task_paths(self) -> set[str]:
        """Return every known task path."""
        raise NotImplementedError

    def get_task_paths_by_status(self, status: str) -> set[str]:
        """Return paths whose raw status equals status."""
        raise NotImplementedError

    def get_tasks_for_date(self, day: str) -> set[str]:
        """Return paths due on a ``YYYY-MM-DD`` date."""
        raise NotImplementedError

    def get_overdue_task_paths(self) -> set[str]:
        """Return paths of open tasks due before today."""
        raise NotImplementedError

    def get_all_tags(self) -> list[str]:
        """Return every tag in use."""
        raise NotImplementedError


class TaskStore(TaskIndex, Protocol):
    """Task record source with change notifications."""

    async def get_cached_task_info(self, path: str) -> Task | None:
        """Return the task stored under path, if any."""
        raise NotImplementedError

    def on(self, event: str, callback: EventCallback) -> None:
        """Subscribe to a change event."""
        raise NotImplementedError

    def off(self, event: str, callback: EventCallback) -> None:
        """Unsubscribe from a change event."""
        raise NotImplementedError


class PropertyResolver(Protocol):
    """Source of raw user property values."""

    def get_property(self, path: str, key: str) -> object:
        """Return the raw metadata value stored under key for path."""
        raise NotImplementedError


class InMemoryTaskStore:
    """Task store over an in-memory task list.

    Maintains status, due date and overdue indexes and emits change events
    when tasks are added, updated, deleted or renamed.
    """

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        properties: Mapping[str, Mapping[str, object]] | None = None,
        statuses: StatusCatalogue | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._tasks: dict[str, Task] = {task.path: task for task in tasks}
        self._properties: dict[str, dict[str, object]] = {
            path: dict(values) for path, values in (properties or {}).items()
        }
        self._statuses = statuses or StatusCatalogue()
        self._today = today
        self._listeners: dict[str, list[EventCallback]] = {event: [] for event in STORE_EVENTS}
        self._by_status: dict[str, set[str]] = {}
        self._by_date: dict[str, set[str]] = {}
        self._overdue: set[str] = set()
        self._build_indexes()

    def get_all_task_paths(self) -> set[str]:
        return set(self._tasks)

    def get_task_paths_by_status(self, status: str) -> set[str]:
        return set(self._by_status.get(status, set()))

    def get_tasks_for_date(self, day: str) -> set[str]:
        return set(self._by_date.get(day, set()))

    def get_overdue_task_paths(self) -> set[str]:
        return set(self._overdue)

    def get_all_tags(self) -> list[str]:
        tags: dict[str, None] = {}
        for task in self._tasks.values():
            for tag in task.tags:
                tags.setdefault(tag, None)
        return sorted(tags)

    async def get_cached_task_info(self, path: str) -> Task | None:
        return self._tasks.get(path)

    def get_property(self, path: str, key: str) -> object:
        return self._properties.get(path, {}).get(key)

    def on(self, event: str, callback: EventCallback) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown store event: {event}")
        self._listeners[event].append(callback)

    def off(self, event: str, callback: EventCallback) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def add_task(self, task: Task, properties: Mapping[str, object] | None = None) -> None:
        """Add a task and notify ``file-added`` listeners."""
        self._tasks[task.path] = task
        if properties is not None:
            self._properties[task.path] = dict(properties)
        self._build_indexes()
        self._emit("file-added", {"path": task.path})

    def update_task(self, task: Task, properties: Mapping[str, object] | None = None) -> None:
        """Replace a task and notify ``file-updated`` listeners."""
        if task.path not in self._tasks:
            raise KeyError(task.path)
        self._tasks[task.path] = task
        if properties is not None:
            self._properties[task.path] = dict(properties)
        self._build_indexes()
        self._emit("file-updated", {"path": task.path})

    def delete_task(self, path: str) -> None:
        """Remove a task and notify ``file-deleted`` listeners."""
        self._tasks.pop(path)
        self._properties.pop(path, None)
        self._build_indexes()
        self._emit("file-deleted", {"path": path})

    def rename_task(self, old_path: str, new_path: str) -> None:
        """Move a task to a new path and notify ``file-renamed`` listeners."""
        task = self._tasks.pop(old_path)
        task.path = new_path
        self._tasks[new_path] = task
        if old_path in self._properties:
            self._properties[new_path] = self._properties.pop(old_path)
        self._build_indexes()
        self._emit("file-renamed", {"old_path": old_path, "path": new_path})

    def rebuild_indexes(self) -> None:
        """Rebuild every index and notify ``indexes-built`` listeners."""
        self._build_indexes()
        self._emit("indexes-built", {})

    def _build_indexes(self) -> None:
        today = self._today()
        by_status: dict[str, set[str]] = {}
        by_date: dict[str, set[str]] = {}
        overdue: set[str] = set()
        for path, task in self._tasks.items():
            by_status.setdefault(task.status, set()).add(path)
            due_day = date_part(task.due)
            if due_day is None:
                continue
            by_date.setdefault(format_date(due_day), set()).add(path)
            if due_day < today and not self._statuses.is_completed_status(task.status):
                overdue.add(path)
        self._by_status = by_status
        self._by_date = by_date
        self._overdue = overdue
        logger.debug("Indexed %d tasks", len(self._tasks))

    def _emit(self, event: str, payload: Mapping[str, object]) -> None:
        for callback in list(self._listeners[event]):
            callback(payload)
