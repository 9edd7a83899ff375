"""Color support for CLI output using Rich markup."""

import sys

from rich.markup import escape

from taskq.statuses import StatusCatalogue


def should_use_color(color_flag: bool | None) -> bool:
    """Resolve --color/--no-color, falling back to TTY detection when unset."""
    if color_flag is not None:
        return color_flag
    return sys.stdout.isatty()


def escape_text(text: str, enabled: bool) -> str:
    """Escape markup characters when color output is enabled."""
    if not enabled:
        return text
    return escape(text)


def colorize(text: str, style: str, enabled: bool) -> str:
    """Apply Rich markup style to text if enabled.

    Args:
        text: Text to colorize
        style: Rich style string (e.g., "green", "bold white")
        enabled: Whether coloring is enabled

    Returns:
        Styled text if enabled, original text otherwise
    """
    if not enabled or not style:
        return escape_text(text, enabled)
    return f"[{style}]{escape(text)}[/]"


def heading(text: str, enabled: bool) -> str:
    return colorize(text, "bold white", enabled)


def dim(text: str, enabled: bool) -> str:
    return colorize(text, "dim white", enabled)


def get_status_color(status: str, statuses: StatusCatalogue, enabled: bool) -> str:
    """Get the Rich style for a task status.

    Completed statuses are green, unknown statuses yellow and open ones dim.
    """
    if not enabled:
        return ""
    if statuses.is_completed_status(status):
        return "bold green"
    if status == "" or statuses.get_status(status) is not None:
        return "dim white"
    return "bold yellow"


def get_group_color(name: str, enabled: bool) -> str:
    """Get the Rich style for a group heading."""
    if not enabled:
        return ""
    if name == "Overdue":
        return "bold red"
    if name == "Today":
        return "bold yellow"
    return "bold blue"
