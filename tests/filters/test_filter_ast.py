"""Tests for filter tree builders and mapping conversion."""

from __future__ import annotations

import pytest

from taskq.filters import (
    FilterCondition,
    FilterGroup,
    FilterQuery,
    FilterValidationError,
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
    replace_node,
)


def test_create_default_query_matches_everything() -> None:
    """Default query should be an empty and-group sorted by due date."""
    default = create_default_query()

    assert isinstance(default, FilterQuery)
    assert default.conjunction == "and"
    assert default.children == ()
    assert default.sort_key == "due"
    assert default.sort_direction == "asc"
    assert default.group_key == "none"
    assert default.subgroup_key is None


def test_builders_generate_unique_ids() -> None:
    """Every built node should get its own id."""
    first = condition("status", "is", "open")
    second = condition("status", "is", "open")

    assert first.id
    assert first.id != second.id


def test_append_child_returns_copy() -> None:
    """Appending should leave the original group untouched."""
    root = group("and", node_id="g1")
    child = condition("title", "contains", "report", node_id="c1")

    updated = append_child(root, child)

    assert root.children == ()
    assert updated.children == (child,)
    assert updated.id == "g1"


def test_replace_node_copies_only_changed_path() -> None:
    """Replacing a nested node should keep untouched siblings identical."""
    untouched = group("and", condition("tags", "contains", "a", node_id="c1"), node_id="g1")
    target = condition("status", "is", "open", node_id="c2")
    nested = group("or", target, node_id="g2")
    root = query("and", untouched, nested, node_id="root")

    replacement = condition("status", "is", "done", node_id="c2")
    updated = replace_node(root, "c2", replacement)

    assert updated is not root
    assert updated.children[0] is untouched
    assert updated.children[1].children == (replacement,)
    assert root.children[1].children == (target,)


def test_replace_node_with_none_removes_node() -> None:
    """Replacing with None should drop the node."""
    root = query("and", condition("status", "is", "open", node_id="c1"), node_id="root")

    updated = replace_node(root, "c1", None)

    assert updated.children == ()


def test_replace_node_unknown_id_returns_same_tree() -> None:
    """No match should return the original object."""
    root = query("and", condition("status", "is", "open", node_id="c1"), node_id="root")

    assert replace_node(root, "missing", None) is root


def test_quick_toggle_disabled_appends_hiding_condition() -> None:
    """Disabling showCompleted should hide completed tasks at the root."""
    base = query("and", condition("tags", "contains", "work", node_id="c1"), node_id="root")

    updated = add_quick_toggle_condition(base, "showCompleted", False)

    added = updated.children[-1]
    assert isinstance(added, FilterCondition)
    assert added.property == "status.isCompleted"
    assert added.operator == "is-not-checked"
    assert isinstance(updated, FilterQuery)
    assert updated.sort_key == base.sort_key


def test_quick_toggle_enabled_removes_existing_condition() -> None:
    """Enabling a toggle should remove its root condition and add nothing."""
    base = query(
        "and",
        condition("archived", "is-not-checked", node_id="c1"),
        condition("tags", "contains", "work", node_id="c2"),
        node_id="root",
    )

    updated = add_quick_toggle_condition(base, "showArchived", True)

    assert [child.id for child in updated.children] == ["c2"]


def test_quick_toggle_is_idempotent() -> None:
    """Applying the same disabled toggle twice should keep one condition."""
    base = create_default_query()

    once = add_quick_toggle_condition(base, "showRecurrent", False)
    twice = add_quick_toggle_condition(once, "showRecurrent", False)

    assert len(twice.children) == 1


def test_quick_toggle_unknown_name_raises() -> None:
    """Unknown toggles should raise ValueError."""
    with pytest.raises(ValueError, match="Unknown quick toggle"):
        add_quick_toggle_condition(create_default_query(), "showEverything", False)


def test_iter_conditions_depth_first() -> None:
    """Conditions should be listed in document order."""
    root = group(
        "and",
        condition("status", "is", "open", node_id="c1"),
        group("or", condition("tags", "contains", "a", node_id="c2"), node_id="g2"),
        condition("due", "is-empty", node_id="c3"),
        node_id="g1",
    )

    assert [item.id for item in iter_conditions(root)] == ["c1", "c2", "c3"]


def test_query_from_dict_fills_defaults_and_keeps_children() -> None:
    """Partial mappings should produce a complete query."""
    data = {
        "id": "root",
        "children": [
            {
                "type": "condition",
                "id": "c1",
                "property": "tags",
                "operator": "contains",
                "value": ["work", "home"],
            },
        ],
        "groupKey": "status",
    }

    parsed = query_from_dict(data)

    assert parsed.id == "root"
    assert parsed.conjunction == "and"
    assert parsed.sort_key == "due"
    assert parsed.group_key == "status"
    only = parsed.children[0]
    assert isinstance(only, FilterCondition)
    assert only.value == ("work", "home")


def test_node_mapping_round_trip_for_nested_query() -> None:
    """Serialized queries should parse back to equal trees."""
    original = query(
        "or",
        condition("status", "is", "open", node_id="c1"),
        group("and", condition("due", "is-before", "2025-01-01", node_id="c2"), node_id="g1"),
        node_id="root",
        sort_key="title",
        group_key="due",
        subgroup_key="tags",
    )

    assert query_from_dict(node_to_dict(original)) == original


def test_node_from_dict_unknown_type_raises() -> None:
    """Unknown node types should raise validation errors."""
    with pytest.raises(FilterValidationError) as exc_info:
        node_from_dict({"type": "banana", "id": "x"})

    assert exc_info.value.node_id == "x"
    assert exc_info.value.field == "type"


def test_node_from_dict_children_must_be_list() -> None:
    """Group children must be a JSON list."""
    with pytest.raises(FilterValidationError):
        node_from_dict({"type": "group", "id": "g", "children": "nope"})


def test_group_builder_defaults_to_and() -> None:
    """Groups should default to the and conjunction."""
    built = group()

    assert isinstance(built, FilterGroup)
    assert built.conjunction == "and"
