#!/usr/bin/env python
"""Command line entry point for taskq."""

from __future__ import annotations

import sys

import typer

from taskq import config, logging_config
from taskq.commands import query


app = typer.Typer(
    help="Query task collections with filters, sorting and grouping.",
    no_args_is_help=True,
)

# Set from the config file before the command line is parsed.
DEFAULT_VERBOSE: dict[str, bool] = {"value": False}


@app.callback()
def main_callback(
    verbose: bool | None = typer.Option(
        None,
        "--verbose",
        "-v",
        help="Log progress and applied defaults",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log optimizer and cache decisions",
    ),
) -> None:
    """Configure logging for every command."""
    effective_verbose = DEFAULT_VERBOSE["value"] if verbose is None else verbose
    if effective_verbose or debug:
        logging_config.configure_logging(effective_verbose, debug)


query.register(app)


def main() -> None:
    """Load the config file, then dispatch to the Typer app."""
    loaded = config.load_cli_config(sys.argv)
    defaults = loaded.defaults
    DEFAULT_VERBOSE["value"] = bool(defaults.pop("verbose", False))
    config.apply_loaded_config(loaded)

    typer.main.get_command(app).main(
        args=sys.argv[1:],
        prog_name="taskq",
        standalone_mode=True,
        default_map=config.build_default_map(defaults) if defaults else None,
    )


if __name__ == "__main__":
    main()
