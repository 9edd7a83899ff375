"""Errors for filter validation, evaluation and parsing."""

from __future__ import annotations


class FilterError(Exception):
    """Base exception for filter failures."""


class FilterValidationError(FilterError):
    """Raised when a filter tree is structurally malformed."""

    def __init__(self, message: str, node_id: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.field = field


class FilterEvaluationError(FilterError):
    """Raised when an operator cannot be applied to a value/operand pair."""

    def __init__(
        self, message: str, node_id: str | None = None, property_name: str | None = None
    ) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.property_name = property_name


class FilterParseError(FilterError):
    """Raised when filter text cannot be parsed."""
