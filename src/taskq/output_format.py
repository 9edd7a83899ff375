"""Output format abstraction and format-specific renderers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from rich.console import Console
from rich.syntax import Syntax

from taskq.color import escape_text, heading
from taskq.engine.optimizer import OptimizationAnalysis
from taskq.engine.service import HierarchicalResult
from taskq.filters.ast import FilterQuery, node_to_dict
from taskq.model import FilterOptions, Task, task_to_dict
from taskq.statuses import StatusCatalogue
from taskq.tui import format_group_lines, format_hierarchy_lines, lines_to_text


DEFAULT_OUTPUT_THEME = "github-dark"


class OutputFormat(StrEnum):
    """Supported output formats."""

    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class OutputOperation:
    """One prepared output operation."""

    kind: str
    text: str | None = None
    renderable: object | None = None
    markup: bool = False


@dataclass(frozen=True)
class PreparedOutput:
    """Prepared output operations ready for console rendering."""

    operations: tuple[OutputOperation, ...]


class QueryOutputFormatter(Protocol):
    """Formatter interface for query, explain and options commands."""

    def prepare_groups(
        self, result: HierarchicalResult, statuses: StatusCatalogue, color_enabled: bool
    ) -> PreparedOutput:
        """Prepare grouped query results for rendering."""
        ...

    def prepare_explain(
        self, query: FilterQuery, analysis: OptimizationAnalysis, color_enabled: bool
    ) -> PreparedOutput:
        """Prepare an optimization analysis for rendering."""
        ...

    def prepare_options(self, options: FilterOptions, color_enabled: bool) -> PreparedOutput:
        """Prepare filter options for rendering."""
        ...


def _write_plain_output(console: Console, text: str) -> None:
    """Write plain output directly to console stream."""
    console.file.write(text if text.endswith("\n") else f"{text}\n")
    console.file.flush()


def print_prepared_output(console: Console, prepared_output: PreparedOutput) -> None:
    """Print already prepared output operations."""
    for operation in prepared_output.operations:
        if operation.kind == "plain_write":
            if operation.text is not None:
                _write_plain_output(console, operation.text)
            continue
        if operation.renderable is not None:
            console.print(operation.renderable)
            continue
        console.print(operation.text if operation.text is not None else "", markup=operation.markup)


def _markup_output(lines: list[str], color_enabled: bool) -> PreparedOutput:
    if not lines:
        return PreparedOutput(
            operations=(OutputOperation(kind="console_print", text="No results", markup=False),)
        )
    if not color_enabled:
        return PreparedOutput(
            operations=(OutputOperation(kind="plain_write", text=lines_to_text(lines)),)
        )
    return PreparedOutput(
        operations=tuple(
            OutputOperation(kind="console_print", text=line, markup=True) for line in lines
        )
    )


def _prepare_json_output(payload: object, color_enabled: bool) -> PreparedOutput:
    """Prepare JSON output with syntax highlighting when color is enabled."""
    text = json.dumps(payload, ensure_ascii=True, indent=2)
    if color_enabled:
        return PreparedOutput(
            operations=(
                OutputOperation(
                    kind="console_print",
                    renderable=Syntax(
                        text,
                        "json",
                        theme=DEFAULT_OUTPUT_THEME,
                        line_numbers=False,
                        word_wrap=True,
                    ),
                ),
            )
        )
    return PreparedOutput(operations=(OutputOperation(kind="plain_write", text=text),))


def _tasks_payload(tasks: list[Task]) -> list[dict[str, object]]:
    return [task_to_dict(task) for task in tasks]


def _analysis_lines(analysis: OptimizationAnalysis) -> list[str]:
    lines = [f"Can optimize: {'yes' if analysis.can_optimize else 'no'}"]
    if analysis.strategy is not None:
        lines.append(f"Strategy: {analysis.strategy}")
    for condition in analysis.conditions:
        lines.append(f"  {condition.property} {condition.operator} {condition.value!r}")
    if analysis.reason:
        lines.append(f"Reason: {analysis.reason}")
    return lines


def _analysis_payload(analysis: OptimizationAnalysis) -> dict[str, object]:
    return {
        "canOptimize": analysis.can_optimize,
        "strategy": analysis.strategy,
        "conditions": [node_to_dict(condition) for condition in analysis.conditions],
        "reason": analysis.reason,
    }


class TextOutputFormatter:
    """Plain text output formatter."""

    def prepare_groups(
        self, result: HierarchicalResult, statuses: StatusCatalogue, color_enabled: bool
    ) -> PreparedOutput:
        if result.hierarchical_groups is not None:
            lines = format_hierarchy_lines(result.hierarchical_groups, statuses, color_enabled)
        elif any(result.groups.values()):
            lines = format_group_lines(result.groups, statuses, color_enabled)
        else:
            lines = []
        return _markup_output(lines, color_enabled)

    def prepare_explain(
        self, query: FilterQuery, analysis: OptimizationAnalysis, color_enabled: bool
    ) -> PreparedOutput:
        del query
        lines = [escape_text(line, color_enabled) for line in _analysis_lines(analysis)]
        return _markup_output(lines, color_enabled)

    def prepare_options(self, options: FilterOptions, color_enabled: bool) -> PreparedOutput:
        def entry(text: str) -> str:
            return f"  {escape_text(text, color_enabled)}"

        lines = [heading("Statuses:", color_enabled)]
        lines.extend(entry(f"{status.value} ({status.label})") for status in options.statuses)
        lines.append(heading("Tags:", color_enabled))
        lines.extend(entry(tag) for tag in options.tags)
        lines.append(heading("Folders:", color_enabled))
        lines.extend(entry(folder) for folder in options.folders)
        if options.user_properties:
            lines.append(heading("User properties:", color_enabled))
            lines.extend(
                entry(f"{definition.id} ({definition.label})")
                for definition in options.user_properties
            )
        return _markup_output(lines, color_enabled)


class JsonOutputFormatter:
    """JSON output formatter."""

    def prepare_groups(
        self, result: HierarchicalResult, statuses: StatusCatalogue, color_enabled: bool
    ) -> PreparedOutput:
        del statuses
        payload: dict[str, object] = {
            "groups": {name: _tasks_payload(tasks) for name, tasks in result.groups.items()}
        }
        if result.hierarchical_groups is not None:
            payload["hierarchicalGroups"] = {
                name: {sub: _tasks_payload(tasks) for sub, tasks in subgroups.items()}
                for name, subgroups in result.hierarchical_groups.items()
            }
        return _prepare_json_output(payload, color_enabled)

    def prepare_explain(
        self, query: FilterQuery, analysis: OptimizationAnalysis, color_enabled: bool
    ) -> PreparedOutput:
        payload = {"query": node_to_dict(query), "analysis": _analysis_payload(analysis)}
        return _prepare_json_output(payload, color_enabled)

    def prepare_options(self, options: FilterOptions, color_enabled: bool) -> PreparedOutput:
        payload = {
            "statuses": [
                {
                    "value": status.value,
                    "label": status.label,
                    "isCompleted": status.is_completed,
                    "order": status.order,
                }
                for status in options.statuses
            ],
            "tags": list(options.tags),
            "folders": list(options.folders),
            "userProperties": [
                {
                    "id": definition.id,
                    "label": definition.label,
                    "category": definition.category,
                    "supportedOperators": list(definition.supported_operators),
                    "valueInputType": definition.value_input_type,
                }
                for definition in options.user_properties
            ],
        }
        return _prepare_json_output(payload, color_enabled)


_TEXT_FORMATTER = TextOutputFormatter()
_JSON_FORMATTER = JsonOutputFormatter()


def get_formatter(output_format: str) -> QueryOutputFormatter:
    """Return the formatter for the selected output format.

    Raises:
        ValueError: If the output format is not supported
    """
    normalized_output = output_format.strip().lower()
    if normalized_output == OutputFormat.TEXT:
        return _TEXT_FORMATTER
    if normalized_output == OutputFormat.JSON:
        return _JSON_FORMATTER
    raise ValueError(f"Unsupported output format '{output_format}'")
