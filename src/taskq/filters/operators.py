"""Operator semantics for resolved property values."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from taskq.dates import date_part
from taskq.filters.errors import FilterEvaluationError
from taskq.filters.properties import OPERATORS_BY_ID, coerce_boolean, coerce_number


ABSENT_RESULTS: dict[str, bool] = {
    "is-empty": True,
    "is-not-empty": False,
    "is-not": True,
    "does-not-contain": True,
    "is-not-checked": True,
}

_DATE_COMPARISONS: dict[str, Callable[[date, date], bool]] = {
    "is-before": lambda left, right: left < right,
    "is-after": lambda left, right: left > right,
    "is-on-or-before": lambda left, right: left <= right,
    "is-on-or-after": lambda left, right: left >= right,
}

_NUMBER_COMPARISONS: dict[str, Callable[[float, float], bool]] = {
    "is-greater-than": lambda left, right: left > right,
    "is-less-than": lambda left, right: left < right,
    "is-greater-than-or-equal": lambda left, right: left >= right,
    "is-less-than-or-equal": lambda left, right: left <= right,
}


def is_empty_value(value: object) -> bool:
    """Check for None, blank strings and empty sequences."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def apply_operator(
    value: object,
    operator: str,
    operand: object,
    node_id: str | None = None,
    property_type: str = "text",
    property_name: str | None = None,
) -> bool:
    """Apply operator to a resolved value and a query operand.

    Args:
        value: Resolved property value, None when absent
        operator: Operator identifier
        operand: Condition value
        node_id: Condition id used in error reports
        property_type: One of text, number, boolean, date, list, status
        property_name: Property id used in error reports

    Returns:
        Whether the value satisfies the operator

    Raises:
        FilterEvaluationError: If the operator is unknown or the operand cannot
            be interpreted for the property type
    """
    if operator not in OPERATORS_BY_ID:
        raise FilterEvaluationError(f"Unknown operator: {operator}", node_id, property_name)

    if operator == "is-empty":
        return is_empty_value(value)
    if operator == "is-not-empty":
        return not is_empty_value(value)

    if value is None:
        return ABSENT_RESULTS.get(operator, False)

    match operator:
        case "is":
            return _equals(value, operand, property_type, node_id, property_name)
        case "is-not":
            return not _equals(value, operand, property_type, node_id, property_name)
        case "contains":
            return _contains(value, operand)
        case "does-not-contain":
            return not _contains(value, operand)
        case "is-checked":
            return _checked(value)
        case "is-not-checked":
            return not _checked(value)

    if operator in _DATE_COMPARISONS:
        right = _operand_date(operand, node_id, property_name)
        left = date_part(value)
        if left is None:
            return False
        return _DATE_COMPARISONS[operator](left, right)

    right_number = _operand_number(operand, node_id, property_name)
    left_number = coerce_number(value)
    if left_number is None:
        return False
    return _NUMBER_COMPARISONS[operator](left_number, right_number)


def _equals(
    value: object,
    operand: object,
    property_type: str,
    node_id: str | None,
    property_name: str | None,
) -> bool:
    if property_type == "status":
        if isinstance(operand, (list, tuple)):
            return value in {str(item) for item in operand}
        return value == str(operand)

    if property_type == "date":
        right = _operand_date(operand, node_id, property_name)
        left = date_part(value)
        return left is not None and left == right

    if property_type == "boolean" or isinstance(value, bool):
        expected = operand if isinstance(operand, bool) else coerce_boolean(str(operand))
        if expected is None:
            raise FilterEvaluationError(
                f"Expected a boolean operand, got {operand!r}", node_id, property_name
            )
        return _checked(value) == expected

    if property_type == "number":
        right_number = _operand_number(operand, node_id, property_name)
        left_number = coerce_number(value)
        return left_number is not None and left_number == right_number

    needles = {_fold(item) for item in _operand_tokens(operand)}
    if isinstance(value, (list, tuple)):
        return any(_fold(item) in needles for item in value)
    return _fold(value) in needles


def _contains(value: object, operand: object) -> bool:
    needles = [_fold(item) for item in _operand_tokens(operand)]
    items = value if isinstance(value, (list, tuple)) else [value]
    haystack = [_fold(item) for item in items]
    return any(needle in item for needle in needles for item in haystack)


def _checked(value: object) -> bool:
    if isinstance(value, str):
        return coerce_boolean(value) is True
    return bool(value)


def _operand_tokens(operand: object) -> list[object]:
    if isinstance(operand, (list, tuple)):
        return list(operand)
    return [operand if operand is not None else ""]


def _fold(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip().casefold()


def _operand_date(operand: object, node_id: str | None, property_name: str | None) -> date:
    parsed = date_part(operand)
    if parsed is None:
        raise FilterEvaluationError(f"Invalid date value: {operand!r}", node_id, property_name)
    return parsed


def _operand_number(operand: object, node_id: str | None, property_name: str | None) -> float:
    parsed = coerce_number(operand)
    if parsed is None:
        raise FilterEvaluationError(f"Invalid number value: {operand!r}", node_id, property_name)
    return parsed
