"""Tests for operator semantics."""

from __future__ import annotations

import pytest

from taskq.filters import FilterEvaluationError, apply_operator
from taskq.filters.operators import ABSENT_RESULTS, is_empty_value


@pytest.mark.parametrize(
    ("operator", "expected"),
    [
        ("is-empty", True),
        ("is-not-empty", False),
        ("is", False),
        ("is-not", True),
        ("contains", False),
        ("does-not-contain", True),
        ("is-before", False),
        ("is-after", False),
        ("is-on-or-before", False),
        ("is-on-or-after", False),
        ("is-checked", False),
        ("is-not-checked", True),
        ("is-greater-than", False),
        ("is-less-than-or-equal", False),
    ],
)
def test_absent_value_results(operator: str, expected: bool) -> None:
    """Absent values should follow the fixed per-operator table."""
    assert apply_operator(None, operator, "x") is expected


def test_absent_results_table_only_lists_true_cases() -> None:
    """Only negative operators match an absent value."""
    assert {name for name, result in ABSENT_RESULTS.items() if result} == {
        "is-empty",
        "is-not",
        "does-not-contain",
        "is-not-checked",
    }


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, True), ("", True), ("   ", True), ([], True), ("x", False), (["a"], False), (0, False)],
)
def test_is_empty_value(value: object, expected: bool) -> None:
    """Blank strings and empty lists count as empty."""
    assert is_empty_value(value) is expected


def test_text_is_and_contains_are_case_insensitive() -> None:
    """Text equality and containment should ignore case."""
    assert apply_operator("Weekly Report", "is", "weekly report") is True
    assert apply_operator("Weekly Report", "contains", "REPORT") is True
    assert apply_operator("Weekly Report", "does-not-contain", "report") is False
    assert apply_operator("Weekly Report", "is-not", "Daily Report") is True


def test_list_operand_matches_any_item() -> None:
    """List operands should match when any item matches."""
    assert apply_operator(["work", "home"], "contains", ("garden", "Home")) is True
    assert apply_operator(["work"], "is", ("home", "work")) is True
    assert apply_operator(["work"], "does-not-contain", ("home",)) is True


def test_status_equality_is_exact() -> None:
    """Status equality should match the raw value exactly."""
    assert apply_operator("open", "is", "open", property_type="status") is True
    assert apply_operator("open", "is", "Open", property_type="status") is False
    assert apply_operator("open", "is-not", "done", property_type="status") is True


def test_date_comparisons_use_calendar_day() -> None:
    """Date operators should compare only the date part."""
    assert apply_operator("2025-01-10", "is-before", "2025-01-11", property_type="date") is True
    assert apply_operator("2025-01-10T23:30", "is", "2025-01-10", property_type="date") is True
    assert apply_operator("2025-01-10T08:00", "is-on-or-after", "2025-01-10") is True
    assert apply_operator("2025-01-10", "is-after", "2025-01-10") is False


def test_unparseable_value_date_is_no_match() -> None:
    """Values that are not dates should simply not match range operators."""
    assert apply_operator("someday", "is-before", "2025-01-01", property_type="date") is False


def test_invalid_date_operand_raises() -> None:
    """Invalid date operands should raise an evaluation error with context."""
    with pytest.raises(FilterEvaluationError) as exc_info:
        apply_operator("2025-01-10", "is-before", "tomorrow", "c1", "date", "due")

    assert exc_info.value.node_id == "c1"
    assert exc_info.value.property_name == "due"


def test_number_comparisons() -> None:
    """Number operators should coerce numeric prefixes."""
    assert apply_operator(5.0, "is-greater-than", 3) is True
    assert apply_operator("7 points", "is-greater-than-or-equal", "7") is True
    assert apply_operator(2, "is", "2", property_type="number") is True
    assert apply_operator(2, "is-less-than", 2) is False


def test_invalid_number_operand_raises() -> None:
    """Non-numeric operands should raise an evaluation error."""
    with pytest.raises(FilterEvaluationError):
        apply_operator(5, "is-greater-than", "lots")


def test_checked_operators() -> None:
    """Checked operators should read booleans and boolean-like strings."""
    assert apply_operator(True, "is-checked", None) is True
    assert apply_operator(False, "is-not-checked", None) is True
    assert apply_operator("TRUE", "is-checked", None) is True
    assert apply_operator("yes", "is-checked", None) is False


def test_boolean_equality() -> None:
    """Boolean equality should accept boolean and textual operands."""
    assert apply_operator(True, "is", True, property_type="boolean") is True
    assert apply_operator(False, "is", "false", property_type="boolean") is True
    with pytest.raises(FilterEvaluationError):
        apply_operator(True, "is", "maybe", property_type="boolean")


def test_unknown_operator_raises() -> None:
    """Unknown operators should raise an evaluation error."""
    with pytest.raises(FilterEvaluationError, match="Unknown operator"):
        apply_operator("x", "resembles", "y")
