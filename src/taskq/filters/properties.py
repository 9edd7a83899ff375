"""Filter property catalogue and task property value resolution."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date

from taskq.filters.errors import FilterEvaluationError
from taskq.model import OperatorDefinition, PropertyDefinition, Task, UserField
from taskq.recurrence import get_effective_status
from taskq.statuses import StatusCatalogue
from taskq.store import PropertyResolver


logger = logging.getLogger("taskq")

USER_PROPERTY_PREFIX = "user:"

_DATE_OPERATORS = (
    "is",
    "is-not",
    "is-before",
    "is-after",
    "is-on-or-before",
    "is-on-or-after",
    "is-empty",
    "is-not-empty",
)
_TEXT_OPERATORS = ("is", "is-not", "contains", "does-not-contain", "is-empty", "is-not-empty")
_SELECT_OPERATORS = ("contains", "does-not-contain", "is-empty", "is-not-empty")
_NUMBER_OPERATORS = (
    "is",
    "is-not",
    "is-greater-than",
    "is-less-than",
    "is-greater-than-or-equal",
    "is-less-than-or-equal",
    "is-empty",
    "is-not-empty",
)
_BOOLEAN_OPERATORS = ("is-checked", "is-not-checked")


FILTER_PROPERTIES: tuple[PropertyDefinition, ...] = (
    PropertyDefinition("title", "Title", "text", _TEXT_OPERATORS, "text"),
    PropertyDefinition("path", "Path", "select", _SELECT_OPERATORS, "select"),
    PropertyDefinition(
        "status", "Status", "select", ("is", "is-not", *_BOOLEAN_OPERATORS), "select"
    ),
    PropertyDefinition("tags", "Tags", "select", _SELECT_OPERATORS, "select"),
    PropertyDefinition("due", "Due Date", "date", _DATE_OPERATORS, "date"),
    PropertyDefinition("completedDate", "Completed Date", "date", _DATE_OPERATORS, "date"),
    PropertyDefinition("dateCreated", "Created Date", "date", _DATE_OPERATORS, "date"),
    PropertyDefinition("dateModified", "Modified Date", "date", _DATE_OPERATORS, "date"),
    PropertyDefinition("archived", "Archived", "boolean", _BOOLEAN_OPERATORS, "none"),
    PropertyDefinition("recurrence", "Recurrence", "special", ("is-empty", "is-not-empty"), "none"),
    PropertyDefinition("status.isCompleted", "Completed", "boolean", _BOOLEAN_OPERATORS, "none"),
)

FILTER_OPERATORS: tuple[OperatorDefinition, ...] = (
    OperatorDefinition("is", "is", True),
    OperatorDefinition("is-not", "is not", True),
    OperatorDefinition("contains", "contains", True),
    OperatorDefinition("does-not-contain", "does not contain", True),
    OperatorDefinition("is-before", "is before", True),
    OperatorDefinition("is-after", "is after", True),
    OperatorDefinition("is-on-or-before", "is on or before", True),
    OperatorDefinition("is-on-or-after", "is on or after", True),
    OperatorDefinition("is-empty", "is empty", False),
    OperatorDefinition("is-not-empty", "is not empty", False),
    OperatorDefinition("is-checked", "is checked", False),
    OperatorDefinition("is-not-checked", "is not checked", False),
    OperatorDefinition("is-greater-than", "is greater than", True),
    OperatorDefinition("is-less-than", "is less than", True),
    OperatorDefinition("is-greater-than-or-equal", "is equal or greater than", True),
    OperatorDefinition("is-less-than-or-equal", "is equal or less than", True),
)

PROPERTY_IDS: frozenset[str] = frozenset(definition.id for definition in FILTER_PROPERTIES)
OPERATORS_BY_ID: dict[str, OperatorDefinition] = {
    definition.id: definition for definition in FILTER_OPERATORS
}

BOOLEAN_STYLE_OPERATORS = frozenset(_BOOLEAN_OPERATORS)

_BUILTIN_TYPES: dict[str, str] = {
    "title": "text",
    "path": "text",
    "status": "text",
    "tags": "list",
    "due": "date",
    "completedDate": "date",
    "dateCreated": "date",
    "dateModified": "date",
    "archived": "boolean",
    "recurrence": "text",
    "status.isCompleted": "boolean",
}

_NUMERIC_PREFIX = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")
_WIKILINK = re.compile(r"^\[\[([^|\]]+)(?:\|([^\]]+))?\]\]$")


@dataclass
class EvaluationContext:
    """Inputs shared by every condition evaluated for one query run."""

    reference_date: date
    statuses: StatusCatalogue = field(default_factory=StatusCatalogue)
    user_fields: Sequence[UserField] = ()
    property_resolver: PropertyResolver | None = None
    errors: list[FilterEvaluationError] = field(default_factory=list)

    def find_user_field(self, property_name: str) -> UserField | None:
        """Return the user field behind a ``user:<id>`` property."""
        return find_user_field(self.user_fields, property_name)


def find_user_field(user_fields: Iterable[UserField], property_name: str) -> UserField | None:
    """Find a configured user field by property id, field id or key."""
    field_id = property_name.removeprefix(USER_PROPERTY_PREFIX)
    for user_field in user_fields:
        if (user_field.id or user_field.key) == field_id:
            return user_field
    return None


def is_user_property(property_name: str) -> bool:
    return property_name.startswith(USER_PROPERTY_PREFIX)


def is_known_property(property_name: str) -> bool:
    """Check whether a property id is built in or user-scoped."""
    return property_name in PROPERTY_IDS or (
        is_user_property(property_name) and len(property_name) > len(USER_PROPERTY_PREFIX)
    )


def operator_requires_value(operator: str) -> bool:
    """Return whether an operator needs an operand; unknown operators do."""
    definition = OPERATORS_BY_ID.get(operator)
    return definition.requires_value if definition is not None else True


def build_user_property_definitions(user_fields: Iterable[UserField]) -> list[PropertyDefinition]:
    """Build property definitions for configured user fields.

    Fields without a key or display name are skipped.
    """
    definitions: list[PropertyDefinition] = []
    for user_field in user_fields:
        if not user_field.key or not user_field.display_name:
            continue
        match user_field.type:
            case "number":
                operators, input_type, category = _NUMBER_OPERATORS, "number", "numeric"
            case "date":
                operators, input_type, category = _DATE_OPERATORS, "date", "date"
            case "boolean":
                operators, input_type, category = _BOOLEAN_OPERATORS, "none", "boolean"
            case "list":
                operators, input_type, category = _SELECT_OPERATORS, "text", "text"
            case _:
                operators, input_type, category = _TEXT_OPERATORS, "text", "text"
        definitions.append(
            PropertyDefinition(
                id=user_field.property_id,
                label=user_field.display_name,
                category=category,
                supported_operators=operators,
                value_input_type=input_type,
            )
        )
    return definitions


def property_type(
    property_name: str,
    context: EvaluationContext,
    operator: str | None = None,
) -> str:
    """Return the value type a property resolves to for an operator."""
    if property_name == "status":
        return "boolean" if operator in BOOLEAN_STYLE_OPERATORS else "status"
    if is_user_property(property_name):
        user_field = context.find_user_field(property_name)
        return user_field.type if user_field is not None else "text"
    return _BUILTIN_TYPES.get(property_name, "text")


def resolve_property_value(
    task: Task,
    property_name: str,
    context: EvaluationContext,
    operator: str | None = None,
) -> object:
    """Return the typed value of a property for a task, or None when absent.

    Bare ``status`` resolves to the raw status value for value-bearing
    operators and to the effective completion flag for ``is-checked`` style
    operators.
    """
    if property_name == "status.isCompleted" or (
        property_name == "status" and operator in BOOLEAN_STYLE_OPERATORS
    ):
        effective = get_effective_status(task, context.reference_date, context.statuses)
        return context.statuses.is_completed_status(effective)

    if is_user_property(property_name):
        return resolve_user_property_value(task, property_name, context)

    match property_name:
        case "title":
            return task.title
        case "path":
            return task.path
        case "status":
            return task.status or None
        case "tags":
            return list(task.tags)
        case "due":
            return task.due
        case "completedDate":
            return task.completed_date
        case "dateCreated":
            return task.date_created
        case "dateModified":
            return task.date_modified
        case "archived":
            return task.archived
        case "recurrence":
            return task.recurrence
    return None


def resolve_user_property_value(
    task: Task,
    property_name: str,
    context: EvaluationContext,
) -> object:
    """Resolve and coerce a user property value; failures yield None."""
    user_field = context.find_user_field(property_name)
    if user_field is None or context.property_resolver is None:
        return None
    raw = lookup_raw_user_value(context.property_resolver, task.path, user_field)
    return coerce_user_value(raw, user_field.type)


def lookup_raw_user_value(resolver: PropertyResolver, path: str, user_field: UserField) -> object:
    """Fetch a raw metadata value, treating resolver failures as absent."""
    try:
        return resolver.get_property(path, user_field.key)
    except Exception as err:
        logger.debug("Failed to read %s for %s: %s", user_field.key, path, err)
        return None


def coerce_user_value(raw: object, field_type: str) -> object:
    """Coerce a raw metadata value to the declared user field type."""
    if raw is None:
        return None
    match field_type:
        case "boolean":
            return coerce_boolean(raw)
        case "number":
            return coerce_number(raw)
        case "list":
            return normalize_user_list_value(raw)
        case "date":
            text = str(raw).strip()
            return text or None
        case _:
            return str(raw)


def coerce_boolean(raw: object) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def coerce_number(raw: object) -> float | None:
    """Coerce numerics and numeric-prefixed strings such as ``42kg``."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        match = _NUMERIC_PREFIX.match(raw)
        if match is not None:
            return float(match.group(1))
    return None


def split_list_preserving_links_and_quotes(text: str) -> list[str]:
    """Split a comma separated string, keeping ``[[a, b]]`` links and quotes intact.

    Surrounding quotes are removed from quoted segments.
    """
    parts: list[str] = []
    current: list[str] = []
    link_depth = 0
    quote: str | None = None
    index = 0
    while index < len(text):
        char = text[index]
        pair = text[index : index + 2]
        if quote is not None:
            if char == quote:
                quote = None
            else:
                current.append(char)
        elif pair == "[[":
            link_depth += 1
            current.append(pair)
            index += 2
            continue
        elif pair == "]]" and link_depth > 0:
            link_depth -= 1
            current.append(pair)
            index += 2
            continue
        elif char in "\"'" and link_depth == 0 and not "".join(current).strip():
            quote = char
        elif char == "," and link_depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def normalize_user_list_value(raw: object) -> list[str]:
    """Normalize list-like metadata into comparable tokens.

    Wikilinks contribute their display text (alias, or last path segment of
    the target) followed by the raw link. Duplicates are dropped in order.
    """
    tokens: list[str] = []

    def push(token: str) -> None:
        trimmed = token.strip()
        if not trimmed:
            return
        match = _WIKILINK.match(trimmed)
        if match is not None:
            target, alias = match.group(1), match.group(2)
            base = alias or target.split("#")[0].split("/")[-1] or target
            if base:
                tokens.append(base)
        tokens.append(trimmed)

    if isinstance(raw, (list, tuple)):
        for item in raw:
            if item is not None:
                push(str(item))
    elif isinstance(raw, str):
        for part in split_list_preserving_links_and_quotes(raw):
            push(part)
    elif raw is not None:
        push(str(raw))

    return list(dict.fromkeys(tokens))


def display_list_tokens(tokens: Iterable[str]) -> list[str]:
    """Return normalized tokens without raw wikilink fallbacks."""
    return [token for token in tokens if not token.startswith("[[")]
