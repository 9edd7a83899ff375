"""Query, explain and options commands."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import click
import typer

from taskq import config as config_module
from taskq.config import EngineSettings
from taskq.dates import date_part
from taskq.engine.optimizer import analyze_query_optimization
from taskq.engine.service import FilterService
from taskq.filters.ast import (
    FilterGroup,
    FilterQuery,
    as_query,
    create_default_query,
    query_from_dict,
)
from taskq.filters.errors import FilterError, FilterParseError, FilterValidationError
from taskq.filters.evaluator import validate_filter_node
from taskq.filters.parser import parse_filter
from taskq.loaders import load_tasks
from taskq.output_format import OutputFormat, get_formatter, print_prepared_output
from taskq.statuses import StatusCatalogue
from taskq.store import InMemoryTaskStore
from taskq.tui import build_console, processing_status, setup_output


@dataclass
class QueryArgs:
    """Arguments for the query and explain commands."""

    files: list[str]
    filter_text: str | None
    named: str | None
    query_file: str | None
    sort_key: str | None
    sort_direction: str | None
    group_key: str | None
    subgroup_key: str | None
    target_date: str | None
    hide_completed_from_overdue: bool
    batch_size: int
    color_flag: bool | None
    out: str


@dataclass
class OptionsArgs:
    """Arguments for the options command."""

    files: list[str]
    color_flag: bool | None
    out: str


def _read_query_file(name: str) -> FilterQuery:
    try:
        with open(name, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as err:
        raise typer.BadParameter(f"File '{name}' not found") from err
    except json.JSONDecodeError as err:
        raise typer.BadParameter(f"File '{name}' is not valid JSON") from err
    if not isinstance(data, dict):
        raise typer.BadParameter(f"File '{name}' must contain a query object")
    try:
        return query_from_dict(data)
    except FilterValidationError as err:
        raise click.UsageError(f"Invalid query in '{name}': {err}") from err


def _filter_source(args: QueryArgs) -> FilterGroup | None:
    sources = [
        source for source in (args.filter_text, args.named, args.query_file) if source is not None
    ]
    if len(sources) > 1:
        raise click.UsageError("Use only one of --filter, --named and --query-file")

    if args.query_file is not None:
        return _read_query_file(args.query_file)

    text = args.filter_text
    if args.named is not None:
        if args.named not in config_module.CONFIG_CUSTOM_FILTERS:
            raise typer.BadParameter(f"Unknown named filter '{args.named}'")
        text = config_module.CONFIG_CUSTOM_FILTERS[args.named]
    if text is None:
        return None
    try:
        return parse_filter(text)
    except FilterParseError as exc:
        raise click.UsageError(str(exc)) from exc


def build_filter_query(args: QueryArgs) -> FilterQuery:
    """Build the query from the filter source and display options.

    Raises:
        click.UsageError: If the filter cannot be parsed or is malformed
    """
    root = _filter_source(args)
    if root is None:
        root = create_default_query()
    filter_query = as_query(
        root,
        sort_key=args.sort_key,
        sort_direction=args.sort_direction,
        group_key=args.group_key,
        subgroup_key=args.subgroup_key,
    )
    try:
        validate_filter_node(filter_query)
    except FilterError as exc:
        raise click.UsageError(str(exc)) from exc
    return filter_query


def parse_target_date(value: str | None) -> date | None:
    """Parse the --date argument."""
    if value is None:
        return None
    parsed = date_part(value)
    if parsed is None:
        raise typer.BadParameter(f"Invalid date '{value}', expected YYYY-MM-DD")
    return parsed


def _statuses() -> StatusCatalogue:
    return StatusCatalogue(config_module.CONFIG_STATUSES or None)


def build_service(
    files: list[str],
    statuses: StatusCatalogue,
    settings: EngineSettings,
    target_date: date | None = None,
) -> FilterService:
    """Load task files into an in-memory store and wrap it in a filter service."""
    loaded = load_tasks(files, statuses, Path.cwd())
    today = (lambda: target_date) if target_date is not None else date.today
    store = InMemoryTaskStore(loaded.tasks, loaded.properties, statuses, today=today)
    return FilterService(
        store,
        statuses=statuses,
        user_fields=config_module.CONFIG_USER_FIELDS,
        property_resolver=store,
        settings=settings,
    )


def _validate_output(out: str) -> None:
    if out not in {fmt.value for fmt in OutputFormat}:
        raise typer.BadParameter(f"--out must be one of: {', '.join(OutputFormat)}")


def run_query(args: QueryArgs) -> None:
    """Run the query command."""
    _validate_output(args.out)
    if args.batch_size < 1:
        raise typer.BadParameter("--batch-size must be positive")
    if args.sort_direction is not None and args.sort_direction not in config_module.SORT_DIRECTIONS:
        raise typer.BadParameter("--sort-direction must be asc or desc")
    target_date = parse_target_date(args.target_date)
    filter_query = build_filter_query(args)
    color_enabled = setup_output(args)
    console = build_console(color_enabled)
    formatter = get_formatter(args.out)
    statuses = _statuses()
    settings = EngineSettings(
        batch_size=args.batch_size,
        hide_completed_from_overdue=args.hide_completed_from_overdue,
    )

    with processing_status(console, color_enabled):
        service = build_service(args.files, statuses, settings, target_date)
        result = asyncio.run(service.get_hierarchical_grouped_tasks(filter_query, target_date))
        prepared_output = formatter.prepare_groups(result, statuses, color_enabled)

    print_prepared_output(console, prepared_output)


def run_explain(args: QueryArgs) -> None:
    """Run the explain command."""
    _validate_output(args.out)
    filter_query = build_filter_query(args)
    color_enabled = setup_output(args)
    console = build_console(color_enabled)
    analysis = analyze_query_optimization(filter_query)
    formatter = get_formatter(args.out)
    print_prepared_output(console, formatter.prepare_explain(filter_query, analysis, color_enabled))


def run_options(args: OptionsArgs) -> None:
    """Run the options command."""
    _validate_output(args.out)
    color_enabled = setup_output(args)
    console = build_console(color_enabled)
    statuses = _statuses()
    formatter = get_formatter(args.out)

    with processing_status(console, color_enabled):
        service = build_service(args.files, statuses, EngineSettings())
        prepared_output = formatter.prepare_options(service.get_filter_options(), color_enabled)

    print_prepared_output(console, prepared_output)


def _log_arguments(args: object, command_name: str) -> None:
    config_module.log_applied_config_defaults(command_name)
    config_module.log_command_arguments(args, command_name)


def register(app: typer.Typer) -> None:
    """Register the query, explain and options commands."""

    @app.command("query")
    def query_command(  # noqa: PLR0913
        files: list[str] = typer.Argument(  # noqa: B008
            ..., metavar="FILE", help="Task files to query (.json or .org)"
        ),
        filter_text: str | None = typer.Option(
            None, "--filter", "-f", metavar="EXPR", help="Filter expression"
        ),
        named: str | None = typer.Option(
            None, "--named", metavar="NAME", help="Named filter from the config file"
        ),
        query_file: str | None = typer.Option(
            None, "--query-file", metavar="FILE", help="JSON file holding a saved query"
        ),
        sort_key: str | None = typer.Option(
            None,
            "--sort-key",
            help="due, status, title, dateCreated, completedDate, tags or user:<id>",
        ),
        sort_direction: str | None = typer.Option(
            None, "--sort-direction", help="Sort direction: asc or desc"
        ),
        group_key: str | None = typer.Option(
            None, "--group-key", help="none, status, due, tags, completedDate or user:<id>"
        ),
        subgroup_key: str | None = typer.Option(
            None, "--subgroup-key", help="Second grouping level, same keys as --group-key"
        ),
        target_date: str | None = typer.Option(
            None, "--date", metavar="YYYY-MM-DD", help="Reference date (defaults to today)"
        ),
        hide_completed_from_overdue: bool = typer.Option(
            True,
            "--hide-completed-from-overdue/--show-completed-in-overdue",
            help="Keep completed tasks out of the Overdue group",
        ),
        batch_size: int = typer.Option(
            50, "--batch-size", metavar="N", help="Tasks fetched concurrently per batch"
        ),
        config: str = typer.Option(
            config_module.DEFAULT_CONFIG_NAME,
            "--config",
            metavar="FILE",
            help="Config file name to load from current directory",
        ),
        color_flag: bool | None = typer.Option(
            None, "--color/--no-color", help="Force colored output"
        ),
        out: str = typer.Option(OutputFormat.TEXT, "--out", help="Output format: text or json"),
    ) -> None:
        """Filter, sort and group tasks."""
        del config
        args = QueryArgs(
            files=files,
            filter_text=filter_text,
            named=named,
            query_file=query_file,
            sort_key=sort_key,
            sort_direction=sort_direction,
            group_key=group_key,
            subgroup_key=subgroup_key,
            target_date=target_date,
            hide_completed_from_overdue=hide_completed_from_overdue,
            batch_size=batch_size,
            color_flag=color_flag,
            out=out,
        )
        _log_arguments(args, "query")
        run_query(args)

    @app.command("explain")
    def explain_command(  # noqa: PLR0913
        filter_text: str | None = typer.Option(
            None, "--filter", "-f", metavar="EXPR", help="Filter expression"
        ),
        named: str | None = typer.Option(
            None, "--named", metavar="NAME", help="Named filter from the config file"
        ),
        query_file: str | None = typer.Option(
            None, "--query-file", metavar="FILE", help="JSON file holding a saved query"
        ),
        config: str = typer.Option(
            config_module.DEFAULT_CONFIG_NAME,
            "--config",
            metavar="FILE",
            help="Config file name to load from current directory",
        ),
        color_flag: bool | None = typer.Option(
            None, "--color/--no-color", help="Force colored output"
        ),
        out: str = typer.Option(OutputFormat.TEXT, "--out", help="Output format: text or json"),
    ) -> None:
        """Show whether a filter can be answered from the task indexes."""
        del config
        args = QueryArgs(
            files=[],
            filter_text=filter_text,
            named=named,
            query_file=query_file,
            sort_key=None,
            sort_direction=None,
            group_key=None,
            subgroup_key=None,
            target_date=None,
            hide_completed_from_overdue=True,
            batch_size=1,
            color_flag=color_flag,
            out=out,
        )
        _log_arguments(args, "explain")
        run_explain(args)

    @app.command("options")
    def options_command(
        files: list[str] = typer.Argument(  # noqa: B008
            ..., metavar="FILE", help="Task files to inspect (.json or .org)"
        ),
        config: str = typer.Option(
            config_module.DEFAULT_CONFIG_NAME,
            "--config",
            metavar="FILE",
            help="Config file name to load from current directory",
        ),
        color_flag: bool | None = typer.Option(
            None, "--color/--no-color", help="Force colored output"
        ),
        out: str = typer.Option(OutputFormat.TEXT, "--out", help="Output format: text or json"),
    ) -> None:
        """List statuses, tags, folders and user properties available to filters."""
        del config
        args = OptionsArgs(files=files, color_flag=color_flag, out=out)
        _log_arguments(args, "options")
        run_options(args)
