"""Filter tree nodes and structural-copy builders."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Literal, TypeAlias, cast
from uuid import uuid4

from taskq.filters.errors import FilterValidationError


FilterValue: TypeAlias = str | int | float | bool | tuple[str, ...] | None
Conjunction: TypeAlias = Literal["and", "or"]
SortDirection: TypeAlias = Literal["asc", "desc"]


CONJUNCTIONS: tuple[str, ...] = ("and", "or")
SORT_DIRECTIONS: tuple[str, ...] = ("asc", "desc")

DEFAULT_SORT_KEY = "due"
DEFAULT_SORT_DIRECTION: SortDirection = "asc"
DEFAULT_GROUP_KEY = "none"


@dataclass(frozen=True, slots=True)
class FilterCondition:
    """Leaf node testing one property with one operator and value."""

    id: str
    property: str
    operator: str
    value: FilterValue = None


@dataclass(frozen=True, slots=True)
class FilterGroup:
    """Internal node combining children with a conjunction."""

    id: str
    conjunction: str = "and"
    children: tuple[FilterNode, ...] = ()


FilterNode: TypeAlias = FilterCondition | FilterGroup


@dataclass(frozen=True, slots=True)
class FilterQuery(FilterGroup):
    """Root group carrying display properties."""

    sort_key: str = DEFAULT_SORT_KEY
    sort_direction: str = DEFAULT_SORT_DIRECTION
    group_key: str = DEFAULT_GROUP_KEY
    subgroup_key: str | None = None


def generate_id() -> str:
    """Return a fresh node identifier."""
    return uuid4().hex[:12]


def condition(
    property_name: str,
    operator: str,
    value: object = None,
    node_id: str | None = None,
) -> FilterCondition:
    """Build a condition node, normalizing list values to tuples."""
    return FilterCondition(
        id=node_id or generate_id(),
        property=property_name,
        operator=operator,
        value=_normalize_value(value),
    )


def group(
    conjunction: str = "and",
    *children: FilterNode,
    node_id: str | None = None,
) -> FilterGroup:
    """Build a group node."""
    return FilterGroup(id=node_id or generate_id(), conjunction=conjunction, children=children)


def query(
    conjunction: str = "and",
    *children: FilterNode,
    node_id: str | None = None,
    sort_key: str = DEFAULT_SORT_KEY,
    sort_direction: str = DEFAULT_SORT_DIRECTION,
    group_key: str = DEFAULT_GROUP_KEY,
    subgroup_key: str | None = None,
) -> FilterQuery:
    """Build a root query node."""
    return FilterQuery(
        id=node_id or generate_id(),
        conjunction=conjunction,
        children=children,
        sort_key=sort_key,
        sort_direction=sort_direction,
        group_key=group_key,
        subgroup_key=subgroup_key,
    )


def create_default_query() -> FilterQuery:
    """Return an empty query matching everything, sorted by due date, ungrouped."""
    return query()


def as_query(root: FilterGroup, **display: object) -> FilterQuery:
    """Promote a group to a query root, keeping its id, conjunction and children."""
    if isinstance(root, FilterQuery) and not display:
        return root
    base: dict[str, object] = {
        "sort_key": DEFAULT_SORT_KEY,
        "sort_direction": DEFAULT_SORT_DIRECTION,
        "group_key": DEFAULT_GROUP_KEY,
        "subgroup_key": None,
    }
    if isinstance(root, FilterQuery):
        base.update(
            sort_key=root.sort_key,
            sort_direction=root.sort_direction,
            group_key=root.group_key,
            subgroup_key=root.subgroup_key,
        )
    base.update({key: value for key, value in display.items() if value is not None})
    return FilterQuery(
        id=root.id,
        conjunction=root.conjunction,
        children=root.children,
        sort_key=cast(str, base["sort_key"]),
        sort_direction=cast(str, base["sort_direction"]),
        group_key=cast(str, base["group_key"]),
        subgroup_key=cast(str | None, base["subgroup_key"]),
    )


def with_children(node: FilterGroup, children: tuple[FilterNode, ...]) -> FilterGroup:
    """Return a copy of the group with new children."""
    return replace(node, children=children)


def append_child(node: FilterGroup, child: FilterNode) -> FilterGroup:
    """Return a copy of the group with child appended."""
    return with_children(node, (*node.children, child))


def remove_children(node: FilterGroup, predicate: Callable[[FilterNode], bool]) -> FilterGroup:
    """Return a copy of the group without the direct children matching predicate."""
    return with_children(node, tuple(child for child in node.children if not predicate(child)))


def replace_node(root: FilterGroup, node_id: str, new_node: FilterNode | None) -> FilterGroup:
    """Return a copy of the tree with node_id replaced (or removed when new_node is None).

    Only the groups on the path to the replaced node are copied.
    """
    new_children: list[FilterNode] = []
    changed = False
    for child in root.children:
        if child.id == node_id:
            changed = True
            if new_node is not None:
                new_children.append(new_node)
            continue
        if isinstance(child, FilterGroup):
            updated = replace_node(child, node_id, new_node)
            if updated is not child:
                changed = True
            new_children.append(updated)
            continue
        new_children.append(child)
    if not changed:
        return root
    return with_children(root, tuple(new_children))


_TOGGLE_CONDITIONS: dict[str, tuple[str, str]] = {
    "showCompleted": ("status.isCompleted", "is-not-checked"),
    "showArchived": ("archived", "is-not-checked"),
    "showRecurrent": ("recurrence", "is-empty"),
}


def add_quick_toggle_condition(source: FilterQuery, toggle: str, enabled: bool) -> FilterQuery:
    """Apply a quick toggle to the root of a query.

    Any existing root condition for the toggle's property is removed; when the
    toggle is disabled, a hiding condition is appended.
    """
    if toggle not in _TOGGLE_CONDITIONS:
        supported = ", ".join(_TOGGLE_CONDITIONS)
        raise ValueError(f"Unknown quick toggle: {toggle}. Supported toggles: {supported}")

    property_name, operator = _TOGGLE_CONDITIONS[toggle]
    updated = remove_children(
        source,
        lambda child: isinstance(child, FilterCondition) and child.property == property_name,
    )
    if enabled:
        return cast(FilterQuery, updated)
    return cast(FilterQuery, append_child(updated, condition(property_name, operator)))


def iter_conditions(node: FilterNode) -> list[FilterCondition]:
    """Return all conditions beneath node in depth-first order."""
    if isinstance(node, FilterCondition):
        return [node]
    conditions: list[FilterCondition] = []
    for child in node.children:
        conditions.extend(iter_conditions(child))
    return conditions


def _normalize_value(value: object) -> FilterValue:
    """Normalize condition values to hashable forms."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(item) for item in value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def node_from_dict(data: Mapping[str, object]) -> FilterNode:
    """Build a filter node from its JSON-compatible mapping form.

    Raises:
        FilterValidationError: If the mapping has no recognizable node shape
    """
    node_type = data.get("type")
    raw_id = data.get("id")
    node_id = raw_id if isinstance(raw_id, str) and raw_id else generate_id()

    if node_type == "condition":
        property_name = data.get("property", "")
        operator = data.get("operator", "")
        if not isinstance(property_name, str):
            raise FilterValidationError("Condition property must be a string", node_id, "property")
        if not isinstance(operator, str):
            raise FilterValidationError("Condition operator must be a string", node_id, "operator")
        return condition(property_name, operator, data.get("value"), node_id)

    if node_type == "group":
        conjunction = data.get("conjunction", "and")
        return FilterGroup(
            id=node_id,
            conjunction=conjunction if isinstance(conjunction, str) else "",
            children=_children_from_dict(data, node_id),
        )

    raise FilterValidationError(f"Unknown filter node type: {node_type!r}", node_id, "type")


def query_from_dict(data: Mapping[str, object]) -> FilterQuery:
    """Build a query from a possibly partial mapping, filling defaults."""
    raw_id = data.get("id")
    conjunction = data.get("conjunction") or "and"
    root = FilterGroup(
        id=raw_id if isinstance(raw_id, str) and raw_id else generate_id(),
        conjunction=conjunction if isinstance(conjunction, str) else "",
        children=_children_from_dict(data, raw_id if isinstance(raw_id, str) else None),
    )
    subgroup_key = data.get("subgroupKey")
    return as_query(
        root,
        sort_key=_string_or_none(data.get("sortKey")),
        sort_direction=_string_or_none(data.get("sortDirection")),
        group_key=_string_or_none(data.get("groupKey")),
        subgroup_key=subgroup_key if isinstance(subgroup_key, str) and subgroup_key else None,
    )


def node_to_dict(node: FilterNode) -> dict[str, object]:
    """Return the JSON-compatible mapping form of a node."""
    if isinstance(node, FilterCondition):
        value: object = list(node.value) if isinstance(node.value, tuple) else node.value
        return {
            "type": "condition",
            "id": node.id,
            "property": node.property,
            "operator": node.operator,
            "value": value,
        }
    payload: dict[str, object] = {
        "type": "group",
        "id": node.id,
        "conjunction": node.conjunction,
        "children": [node_to_dict(child) for child in node.children],
    }
    if isinstance(node, FilterQuery):
        payload.update(
            sortKey=node.sort_key,
            sortDirection=node.sort_direction,
            groupKey=node.group_key,
        )
        if node.subgroup_key is not None:
            payload["subgroupKey"] = node.subgroup_key
    return payload


def _children_from_dict(data: Mapping[str, object], node_id: str | None) -> tuple[FilterNode, ...]:
    """Build child nodes of a group mapping."""
    raw_children = data.get("children", [])
    if not isinstance(raw_children, list):
        raise FilterValidationError("Group children must be a list", node_id, "children")
    children: list[FilterNode] = []
    for child in raw_children:
        if not isinstance(child, Mapping):
            raise FilterValidationError("Filter nodes must be objects", node_id, "children")
        children.append(node_from_dict(cast(Mapping[str, object], child)))
    return tuple(children)


def _string_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None
