"""Console setup and text rendering for query results."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Protocol

from rich.console import Console

from taskq.color import colorize, dim, get_group_color, get_status_color, heading, should_use_color
from taskq.engine.grouping import ALL_GROUP
from taskq.model import Task
from taskq.statuses import StatusCatalogue


class ColorArgs(Protocol):
    """Protocol for arguments carrying the color flag."""

    color_flag: bool | None


def setup_output(args: ColorArgs) -> bool:
    """Resolve whether the command should emit colored output."""
    return should_use_color(args.color_flag)


def build_console(color_enabled: bool) -> Console:
    """Build the console used for command output."""
    return Console(no_color=not color_enabled, highlight=False, soft_wrap=True)


@contextmanager
def processing_status(console: Console, color_enabled: bool) -> Iterator[None]:
    """Show a spinner while a command runs, only on interactive colored output."""
    if not color_enabled or not console.is_terminal:
        yield
        return
    with console.status("Processing...", spinner="dots"):
        yield


def format_task_line(task: Task, statuses: StatusCatalogue, color_enabled: bool) -> str:
    """Format one task as a single markup line."""
    status_style = get_status_color(task.status, statuses, color_enabled)
    parts = [colorize(task.status or "-", status_style, color_enabled)]
    parts.append(colorize(task.title or task.path, "white", color_enabled))
    if task.due:
        parts.append(dim(f"due {task.due}", color_enabled))
    if task.tags:
        parts.append(colorize(" ".join(f"#{tag}" for tag in task.tags), "magenta", color_enabled))
    parts.append(dim(f"({task.path})", color_enabled))
    return " ".join(parts)


def format_group_lines(
    groups: Mapping[str, list[Task]],
    statuses: StatusCatalogue,
    color_enabled: bool,
    indent: str = "",
) -> list[str]:
    """Format flat groups; the single ``all`` bucket is printed without a heading."""
    lines: list[str] = []
    flat = list(groups) == [ALL_GROUP]
    task_indent = indent if flat else f"{indent}  "
    for name, tasks in groups.items():
        if not flat:
            if lines:
                lines.append("")
            style = get_group_color(name, color_enabled)
            lines.append(f"{indent}{colorize(name, style, color_enabled)} ({len(tasks)})")
        lines.extend(
            f"{task_indent}{format_task_line(task, statuses, color_enabled)}" for task in tasks
        )
    return lines


def format_hierarchy_lines(
    hierarchy: Mapping[str, Mapping[str, list[Task]]],
    statuses: StatusCatalogue,
    color_enabled: bool,
) -> list[str]:
    """Format two-level groups with nested subgroup headings."""
    lines: list[str] = []
    for name, subgroups in hierarchy.items():
        if lines:
            lines.append("")
        total = sum(len(tasks) for tasks in subgroups.values())
        lines.append(f"{heading(name, color_enabled)} ({total})")
        for subgroup_name, tasks in subgroups.items():
            style = get_group_color(subgroup_name, color_enabled)
            lines.append(f"  {colorize(subgroup_name, style, color_enabled)} ({len(tasks)})")
            lines.extend(
                f"    {format_task_line(task, statuses, color_enabled)}" for task in tasks
            )
    return lines


def lines_to_text(lines: list[str]) -> str:
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
