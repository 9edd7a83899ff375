"""Public API for filter trees, evaluation and the filter syntax."""

from taskq.filters.ast import (
    FilterCondition,
    FilterGroup,
    FilterNode,
    FilterQuery,
    add_quick_toggle_condition,
    append_child,
    condition,
    create_default_query,
    group,
    iter_conditions,
    node_from_dict,
    node_to_dict,
    query,
    query_from_dict,
    remove_children,
    replace_node,
    with_children,
)
from taskq.filters.errors import (
    FilterError,
    FilterEvaluationError,
    FilterParseError,
    FilterValidationError,
)
from taskq.filters.evaluator import (
    evaluate_filter_node,
    is_filter_node_complete,
    validate_filter_node,
)
from taskq.filters.operators import apply_operator
from taskq.filters.parser import parse_filter
from taskq.filters.properties import (
    FILTER_OPERATORS,
    FILTER_PROPERTIES,
    EvaluationContext,
    normalize_user_list_value,
    resolve_property_value,
)


__all__ = [
    "FILTER_OPERATORS",
    "FILTER_PROPERTIES",
    "EvaluationContext",
    "FilterCondition",
    "FilterError",
    "FilterEvaluationError",
    "FilterGroup",
    "FilterNode",
    "FilterParseError",
    "FilterQuery",
    "FilterValidationError",
    "add_quick_toggle_condition",
    "append_child",
    "apply_operator",
    "condition",
    "create_default_query",
    "evaluate_filter_node",
    "group",
    "is_filter_node_complete",
    "iter_conditions",
    "node_from_dict",
    "node_to_dict",
    "normalize_user_list_value",
    "parse_filter",
    "query",
    "query_from_dict",
    "remove_children",
    "replace_node",
    "resolve_property_value",
    "validate_filter_node",
    "with_children",
]
