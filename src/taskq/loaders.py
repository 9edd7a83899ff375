"""Load task collections from JSON exports and org-mode files."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import cast

import orgparse
import typer
from orgparse.date import OrgDate

from taskq.model import Task, task_from_dict
from taskq.statuses import StatusCatalogue


logger = logging.getLogger("taskq")


@dataclass
class LoadedTasks:
    """Tasks plus their raw user property values keyed by path."""

    tasks: list[Task] = field(default_factory=list)
    properties: dict[str, dict[str, object]] = field(default_factory=dict)

    def extend(self, other: LoadedTasks) -> None:
        self.tasks.extend(other.tasks)
        self.properties.update(other.properties)


def _read_text(name: str) -> str:
    try:
        with open(name, encoding="utf-8") as f:
            logger.info("Processing %s...", name)
            return f.read()
    except FileNotFoundError as err:
        raise typer.BadParameter(f"File '{name}' not found") from err
    except PermissionError as err:
        raise typer.BadParameter(f"Permission denied for '{name}'") from err
    except IsADirectoryError as err:
        raise typer.BadParameter(f"'{name}' is a directory") from err


def load_json_tasks(name: str) -> LoadedTasks:
    """Load a JSON task export.

    The file holds either a list of task objects or an object with a
    ``tasks`` list. User property values live under each task's
    ``properties`` key.

    Raises:
        typer.BadParameter: If the file is unreadable or malformed
    """
    try:
        data = json.loads(_read_text(name))
    except json.JSONDecodeError as err:
        raise typer.BadParameter(f"File '{name}' is not valid JSON") from err

    if isinstance(data, dict):
        data = data.get("tasks")
    if not isinstance(data, list):
        raise typer.BadParameter(f"File '{name}' must contain a list of tasks")

    loaded = LoadedTasks()
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise typer.BadParameter(f"Task #{index} in '{name}' is not an object")
        try:
            task = task_from_dict(entry)
        except ValueError as err:
            raise typer.BadParameter(f"Task #{index} in '{name}': {err}") from err
        loaded.tasks.append(task)
        properties = entry.get("properties")
        if isinstance(properties, dict):
            loaded.properties[task.path] = {str(key): value for key, value in properties.items()}
    return loaded


def _format_org_date(value: OrgDate | None) -> str | None:
    if value is None or not bool(value):
        return None
    start = value.start
    if isinstance(start, datetime):
        if value.has_time():
            return start.strftime("%Y-%m-%dT%H:%M")
        return start.date().isoformat()
    if isinstance(start, date):
        return start.isoformat()
    return None


def _org_status(
    keyword: str | None, done_keys: Iterable[str], statuses: StatusCatalogue
) -> str:
    if not keyword:
        return ""
    if statuses.get_status(keyword) is not None:
        return keyword
    lowered = keyword.lower()
    if statuses.get_status(lowered) is not None:
        return lowered
    if keyword in done_keys:
        return statuses.first_completed_status()
    return statuses.default_open_status()


def load_org_tasks(
    name: str, statuses: StatusCatalogue, base_dir: Path | None = None
) -> LoadedTasks:
    """Load org-mode headings carrying a TODO keyword as tasks.

    Task paths are ``<file>#<line>`` relative to base_dir, so the file's
    folder becomes the task folder.
    """
    contents = _read_text(name).replace("24:00", "00:00")
    root = cast(orgparse.node.OrgRootNode, orgparse.loads(contents, filename=name))
    done_keys = list(root.env.done_keys)
    relative = _relative_name(name, base_dir)

    loaded = LoadedTasks()
    for node in root[1:]:
        if not node.todo:
            continue
        path = f"{relative}#{node.linenumber}"
        properties = {str(key): value for key, value in node.properties.items()}
        loaded.tasks.append(
            Task(
                path=path,
                title=node.heading,
                status=_org_status(node.todo, done_keys, statuses),
                due=_format_org_date(node.deadline) or _format_org_date(node.scheduled),
                completed_date=_format_org_date(node.closed),
                date_created=_timestamp_property(properties, "CREATED"),
                tags=sorted(node.tags),
                recurrence=_string_property(properties, "RRULE"),
            )
        )
        loaded.properties[path] = properties
    return loaded


def _string_property(properties: Mapping[str, object], key: str) -> str | None:
    value = properties.get(key)
    return str(value) if value not in (None, "") else None


def _timestamp_property(properties: Mapping[str, object], key: str) -> str | None:
    value = _string_property(properties, key)
    if value is None:
        return None
    return value.strip("[]<> ") or None


def _relative_name(name: str, base_dir: Path | None) -> str:
    path = Path(name)
    if base_dir is not None and path.resolve().is_relative_to(base_dir.resolve()):
        return path.resolve().relative_to(base_dir.resolve()).as_posix()
    return path.as_posix()


def load_tasks(
    filenames: list[str], statuses: StatusCatalogue, base_dir: Path | None = None
) -> LoadedTasks:
    """Load tasks from every file, choosing the reader by extension.

    Raises:
        typer.BadParameter: If a file cannot be read or has an unknown extension
    """
    loaded = LoadedTasks()
    for name in filenames:
        suffix = Path(name).suffix.lower()
        if suffix == ".json":
            loaded.extend(load_json_tasks(name))
        elif suffix == ".org":
            loaded.extend(load_org_tasks(name, statuses, base_dir))
        else:
            raise typer.BadParameter(f"Unsupported task file '{name}' (expected .json or .org)")
    logger.info("Loaded %d tasks from %d files", len(loaded.tasks), len(filenames))
    return loaded
