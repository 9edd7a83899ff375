"""Recursive filter tree evaluation and structural validation."""

from __future__ import annotations

import logging

from taskq.filters.ast import CONJUNCTIONS, FilterCondition, FilterGroup, FilterNode
from taskq.filters.errors import FilterEvaluationError, FilterValidationError
from taskq.filters.operators import apply_operator
from taskq.filters.properties import (
    OPERATORS_BY_ID,
    EvaluationContext,
    is_known_property,
    is_user_property,
    operator_requires_value,
    property_type,
    resolve_property_value,
)
from taskq.model import Task


logger = logging.getLogger("taskq")


def is_filter_node_complete(node: FilterNode) -> bool:
    """Check whether a node takes part in evaluation.

    Groups are always complete. Conditions are complete when their operator
    needs no value or a non-empty value is present.
    """
    if not isinstance(node, FilterCondition):
        return True
    if not operator_requires_value(node.operator):
        return True
    value = node.value
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, tuple):
        return len(value) > 0
    return True


def evaluate_filter_node(node: object, task: Task, context: EvaluationContext) -> bool:
    """Evaluate a filter node against a task.

    Unknown node shapes and unknown conjunctions match everything.
    """
    if isinstance(node, FilterCondition):
        return evaluate_condition(node, task, context)
    if isinstance(node, FilterGroup):
        return evaluate_group(node, task, context)
    logger.warning("Ignoring unknown filter node: %r", node)
    return True


def evaluate_group(group: FilterGroup, task: Task, context: EvaluationContext) -> bool:
    """Evaluate a group, skipping incomplete conditions."""
    children = [child for child in group.children if is_filter_node_complete(child)]
    if not children:
        return True

    if group.conjunction == "and":
        return all(evaluate_filter_node(child, task, context) for child in children)
    if group.conjunction == "or":
        return any(evaluate_filter_node(child, task, context) for child in children)

    logger.warning("Unknown conjunction %r in group %s", group.conjunction, group.id)
    return True


def evaluate_condition(condition: FilterCondition, task: Task, context: EvaluationContext) -> bool:
    """Evaluate one condition; operator failures count as a non-match.

    A condition on an undefined user field only matches is-empty.
    """
    if is_user_property(condition.property):
        if context.find_user_field(condition.property) is None:
            return condition.operator == "is-empty"
    value = resolve_property_value(task, condition.property, context, condition.operator)
    value_type = property_type(condition.property, context, condition.operator)
    try:
        return apply_operator(
            value,
            condition.operator,
            condition.value,
            condition.id,
            value_type,
            condition.property,
        )
    except FilterEvaluationError as err:
        logger.error(
            "Filter evaluation error in condition %s (%s): %s", err.node_id, err.property_name, err
        )
        context.errors.append(err)
        return False


def validate_filter_node(node: object, strict: bool = False) -> None:
    """Validate the structure of a filter tree.

    Args:
        node: Root node to validate
        strict: Also reject incomplete conditions

    Raises:
        FilterValidationError: On the first malformed node found
    """
    if isinstance(node, FilterCondition):
        _validate_condition(node, strict)
        return
    if not isinstance(node, FilterGroup):
        raise FilterValidationError(f"Unknown filter node type: {type(node).__name__}")

    if not node.id:
        raise FilterValidationError("Filter group is missing an id", None, "id")
    if node.conjunction not in CONJUNCTIONS:
        raise FilterValidationError(
            f"Unknown conjunction: {node.conjunction!r}", node.id, "conjunction"
        )
    if not isinstance(node.children, (tuple, list)):
        raise FilterValidationError("Group children must be a sequence", node.id, "children")
    for child in node.children:
        validate_filter_node(child, strict)


def _validate_condition(condition: FilterCondition, strict: bool) -> None:
    if not condition.id:
        raise FilterValidationError("Filter condition is missing an id", None, "id")
    if not is_known_property(condition.property):
        raise FilterValidationError(
            f"Unknown property: {condition.property!r}", condition.id, "property"
        )
    if condition.operator not in OPERATORS_BY_ID:
        raise FilterValidationError(
            f"Unknown operator: {condition.operator!r}", condition.id, "operator"
        )
    if strict and not is_filter_node_complete(condition):
        raise FilterValidationError(
            f"Condition {condition.property} {condition.operator} requires a value",
            condition.id,
            "value",
        )
