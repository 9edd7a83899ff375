"""Configuration handling for the taskq CLI."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeGuard, cast

import typer

from taskq.model import USER_FIELD_TYPES, UserField
from taskq.statuses import StatusDefinition


DEFAULT_CONFIG_NAME = ".taskq.json"

COMMAND_OPTION_NAMES = {
    "batch_size",
    "color_flag",
    "group_key",
    "hide_completed_from_overdue",
    "out",
    "sort_direction",
    "sort_key",
    "subgroup_key",
    "verbose",
}

DEST_TO_OPTION_NAME: dict[str, str] = {
    "batch_size": "--batch-size",
    "color_flag": "--color/--no-color",
    "group_key": "--group-key",
    "hide_completed_from_overdue": "--hide-completed-from-overdue",
    "out": "--out",
    "sort_direction": "--sort-direction",
    "sort_key": "--sort-key",
    "subgroup_key": "--subgroup-key",
    "verbose": "--verbose",
}

STR_OPTIONS: dict[str, str] = {
    "--sort-key": "sort_key",
    "--sort-direction": "sort_direction",
    "--group-key": "group_key",
    "--subgroup-key": "subgroup_key",
    "--out": "out",
}
INT_OPTIONS: dict[str, tuple[str, int | None]] = {
    "--batch-size": ("batch_size", 1),
}
BOOL_OPTIONS: dict[str, str] = {
    "--verbose": "verbose",
    "--hide-completed-from-overdue": "hide_completed_from_overdue",
}

SORT_DIRECTIONS = ("asc", "desc")
OUTPUT_FORMATS = ("text", "json")
OUTPUT_OPTION_NAMES = frozenset({"color_flag", "out"})


CONFIG_DEFAULTS: dict[str, object] = {}
CONFIG_CUSTOM_FILTERS: dict[str, str] = {}
CONFIG_STATUSES: list[StatusDefinition] = []
CONFIG_USER_FIELDS: list[UserField] = []


logger = logging.getLogger("taskq")


@dataclass
class EngineSettings:
    """Engine tunables."""

    index_cache_ttl_seconds: float = 30.0
    filter_options_ttl_seconds: float = 300.0
    filter_options_min_invalidation_age_seconds: float = 30.0
    batch_size: int = 50
    hide_completed_from_overdue: bool = True


@dataclass
class LoadedCliConfig:
    """Fully parsed CLI config payload."""

    defaults: dict[str, object]
    custom_filters: dict[str, str]
    statuses: list[StatusDefinition] = field(default_factory=list)
    user_fields: list[UserField] = field(default_factory=list)


def load_config(filepath: str) -> tuple[dict[str, object], bool]:
    """Read the JSON config file.

    A missing file is an empty config. Unreadable files, invalid JSON and
    anything other than a top-level object are reported as malformed.

    Returns:
        Tuple of (config dict, malformed flag)
    """
    path = Path(filepath)
    if not path.exists():
        return ({}, False)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return ({}, True)

    if isinstance(raw, dict):
        return (raw, False)
    return ({}, True)


def is_string_dict(value: object) -> TypeGuard[dict[str, str]]:
    """Check if value is dict[str, str]."""
    return isinstance(value, dict) and all(
        isinstance(key, str) and isinstance(item, str) for key, item in value.items()
    )


def is_object_list(value: object) -> TypeGuard[list[dict[str, object]]]:
    """Check if value is a list of JSON objects."""
    return isinstance(value, list) and all(isinstance(item, dict) for item in value)


def validate_str_option(key: str, value: object) -> str | None:
    """Validate string option value."""
    if not isinstance(value, str) or not value.strip():
        return None
    if key == "--sort-direction" and value not in SORT_DIRECTIONS:
        return None
    if key == "--out" and value not in OUTPUT_FORMATS:
        return None
    return value


def validate_int_option(value: object, min_value: int | None) -> int | None:
    """Validate integer option value."""
    if not isinstance(value, int) or isinstance(value, bool):
        return None
    if min_value is not None and value < min_value:
        return None
    return value


def parse_color_defaults(config: dict[str, object]) -> tuple[dict[str, object], bool]:
    """Map --color/--no-color config switches onto color_flag."""
    enabled: list[bool] = []
    for option, flag_value in (("--color", True), ("--no-color", False)):
        if option not in config:
            continue
        value = config[option]
        if not isinstance(value, bool):
            return ({}, False)
        if value:
            enabled.append(flag_value)

    if len(enabled) > 1:
        return ({}, False)
    return ({"color_flag": enabled[0]} if enabled else {}, True)


def apply_config_entry(key: str, value: object, defaults: dict[str, object]) -> bool:
    """Apply a config entry to defaults if valid."""
    if key in STR_OPTIONS:
        str_value = validate_str_option(key, value)
        if str_value is None:
            return False
        defaults[STR_OPTIONS[key]] = str_value
        return True

    if key in INT_OPTIONS:
        dest, min_value = INT_OPTIONS[key]
        int_value = validate_int_option(value, min_value)
        if int_value is None:
            return False
        defaults[dest] = int_value
        return True

    if key in BOOL_OPTIONS:
        if not isinstance(value, bool):
            return False
        defaults[BOOL_OPTIONS[key]] = value
        return True

    return False


def build_config_defaults(config: dict[str, object]) -> dict[str, object] | None:
    """Validate the defaults section and build option defaults.

    Returns:
        Option defaults keyed by destination, or None if malformed
    """
    defaults, color_valid = parse_color_defaults(config)
    if not color_valid:
        return None

    for key, value in config.items():
        if key in ("--color", "--no-color"):
            continue
        if not apply_config_entry(key, value, defaults):
            return None

    return defaults


def parse_statuses(value: object) -> list[StatusDefinition] | None:
    """Parse the statuses section."""
    if not is_object_list(value):
        return None

    statuses: list[StatusDefinition] = []
    for index, entry in enumerate(value):
        status_value = entry.get("value")
        label = entry.get("label", status_value)
        is_completed = entry.get("is_completed", False)
        order = entry.get("order", index)
        if not isinstance(status_value, str) or not status_value:
            return None
        if not isinstance(label, str) or not isinstance(is_completed, bool):
            return None
        if not isinstance(order, int) or isinstance(order, bool):
            return None
        statuses.append(StatusDefinition(status_value, label, is_completed, order))
    return statuses


def parse_user_fields(value: object) -> list[UserField] | None:
    """Parse the user-fields section."""
    if not is_object_list(value):
        return None

    user_fields: list[UserField] = []
    for entry in value:
        key = entry.get("key")
        field_id = entry.get("id", key)
        display_name = entry.get("display_name", key)
        field_type = entry.get("type", "text")
        if not isinstance(key, str) or not key:
            return None
        if not isinstance(field_id, str) or not isinstance(display_name, str):
            return None
        if field_type not in USER_FIELD_TYPES:
            return None
        user_fields.append(UserField(field_id, key, display_name, cast(str, field_type)))
    return user_fields


def parse_config_sections(raw_config: dict[str, object]) -> LoadedCliConfig | None:
    """Parse top-level config sections.

    Accepted shape:
      {
        "defaults": { ... },
        "statuses": [{"value": ..., "label": ..., "is_completed": ..., "order": ...}],
        "user-fields": [{"id": ..., "key": ..., "display_name": ..., "type": ...}],
        "filter": {"name": "filter expression"}
      }
    """
    allowed_keys = {"defaults", "statuses", "user-fields", "filter"}
    if any(key not in allowed_keys for key in raw_config):
        return None

    defaults_section = raw_config.get("defaults", {})
    if not isinstance(defaults_section, dict):
        return None
    defaults = build_config_defaults(cast(dict[str, object], defaults_section))
    if defaults is None:
        return None

    filter_section = raw_config.get("filter", {})
    if not is_string_dict(filter_section):
        return None

    statuses = parse_statuses(raw_config.get("statuses", []))
    if statuses is None:
        return None

    user_fields = parse_user_fields(raw_config.get("user-fields", []))
    if user_fields is None:
        return None

    return LoadedCliConfig(
        defaults=defaults,
        custom_filters=dict(filter_section),
        statuses=statuses,
        user_fields=user_fields,
    )


def parse_config_argument(argv: list[str]) -> str:
    """Find the --config path in argv before Click parses it."""
    args = iter(argv[1:])
    for arg in args:
        name, separator, value = arg.partition("=")
        if name != "--config":
            continue
        if separator:
            return value
        return next(args, DEFAULT_CONFIG_NAME)
    return DEFAULT_CONFIG_NAME


def load_cli_config(argv: list[str]) -> LoadedCliConfig:
    """Load config from the configured file path.

    Raises:
        typer.BadParameter: If the config file is unreadable or malformed
    """
    config_name = parse_config_argument(argv)
    config_path = Path(config_name)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_name
    config, load_error = load_config(str(config_path))

    if load_error:
        raise typer.BadParameter("Malformed config")

    loaded = parse_config_sections(config)
    if loaded is None:
        raise typer.BadParameter("Malformed config")

    loaded.defaults = {
        key: value for key, value in loaded.defaults.items() if key in COMMAND_OPTION_NAMES
    }
    return loaded


def apply_loaded_config(loaded: LoadedCliConfig) -> None:
    """Install loaded config as the process-wide defaults."""
    CONFIG_DEFAULTS.clear()
    CONFIG_DEFAULTS.update(loaded.defaults)
    CONFIG_CUSTOM_FILTERS.clear()
    CONFIG_CUSTOM_FILTERS.update(loaded.custom_filters)
    CONFIG_STATUSES[:] = loaded.statuses
    CONFIG_USER_FIELDS[:] = loaded.user_fields


def build_default_map(defaults: dict[str, object]) -> dict[str, dict[str, object]]:
    """Build Click default_map for Typer commands."""
    query_defaults = {key: value for key, value in defaults.items() if key != "verbose"}
    output_defaults = {
        key: value for key, value in query_defaults.items() if key in OUTPUT_OPTION_NAMES
    }
    return {
        "query": query_defaults,
        "explain": dict(output_defaults),
        "options": dict(output_defaults),
    }


def log_applied_config_defaults(command_name: str) -> None:
    """Log config defaults loaded from config file."""
    if not logger.isEnabledFor(logging.INFO):
        return

    entries = [
        f"{DEST_TO_OPTION_NAME[dest]}={value!r}"
        for dest, value in sorted(CONFIG_DEFAULTS.items())
        if dest in DEST_TO_OPTION_NAME
    ]
    if entries:
        logger.info("Config defaults applied (%s): %s", command_name, ", ".join(entries))


def log_command_arguments(args: object, command_name: str) -> None:
    """Log all final argument values used to run a command."""
    if not logger.isEnabledFor(logging.INFO):
        return

    try:
        arg_values = vars(args)
    except TypeError:
        return

    entries = [f"{name}={arg_values[name]!r}" for name in sorted(arg_values)]
    logger.info("Command arguments (%s): %s", command_name, ", ".join(entries))
