"""Parser for the textual filter syntax.

Conditions are written as ``<property> <operator> [<value>]`` and combined
with ``and``/``or``; ``and`` binds tighter and parentheses group explicitly::

    status is open and (tags contains work or due is-before 2025-01-01)
"""

from __future__ import annotations

import ast
from collections.abc import Generator
from dataclasses import dataclass
from typing import TypeAlias, cast

from parsy import ParseError, Parser, eof, forward_declaration, generate, regex, string

from taskq.filters.ast import FilterCondition, FilterGroup, FilterNode, FilterValue
from taskq.filters.errors import FilterParseError
from taskq.filters.properties import FILTER_OPERATORS, operator_requires_value


@dataclass(frozen=True)
class _RawCondition:
    property: str
    operator: str
    value: FilterValue


@dataclass(frozen=True)
class _RawGroup:
    conjunction: str
    children: tuple[_RawNode, ...]


_RawNode: TypeAlias = _RawCondition | _RawGroup


def _parse_line_and_column(line_info: str) -> tuple[int, int]:
    """Parse line and column from parsy line info string."""
    line_text, sep, column_text = line_info.partition(":")
    if sep == "" or not line_text.isdigit() or not column_text.isdigit():
        return (0, 0)
    return (int(line_text), int(column_text))


def _format_parse_error(text: str, exc: ParseError) -> str:
    """Build parse error message with a pointer under the failing column."""
    line_number, column_number = _parse_line_and_column(exc.line_info())
    lines = text.splitlines() or [text]
    error_line = lines[line_number] if 0 <= line_number < len(lines) else text
    pointer = " " * max(column_number, 0) + "^"
    return f"Invalid filter syntax: {exc}\n\n{error_line}\n{pointer}"


def _decode_string(token_value: str) -> str:
    """Decode a quoted string literal token."""
    decoded = ast.literal_eval(token_value)
    if isinstance(decoded, str):
        return decoded
    raise FilterParseError("Invalid string literal")


def _keyword(name: str) -> Parser:
    """Build a keyword parser with word boundary."""
    return regex(rf"{name}(?![A-Za-z0-9_\-])").desc(name)


def _lexeme(parser: Parser) -> Parser:
    """Consume optional whitespace after parser."""
    return parser << regex(r"\s*")


def _symbol(value: str) -> Parser:
    """Build a symbol token parser."""
    return _lexeme(string(value))


def _build_value_parser() -> Parser:
    """Build parser for condition operands."""
    string_token = _lexeme(regex(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'')).map(_decode_string)
    bare_word = _lexeme(
        regex(r"(?!(?:and|or)(?![^\s()\[\],]))[^\s()\[\],\"']+").desc("value")
    )
    number = _lexeme(regex(r"-?\d+(?:\.\d+)?(?=[\s()\],]|$)").desc("number")).map(
        lambda v: float(v) if "." in v else int(v)
    )
    true_literal = _lexeme(_keyword("true")).result(True)
    false_literal = _lexeme(_keyword("false")).result(False)
    item = string_token | bare_word
    list_literal = (_symbol("[") >> item.sep_by(_symbol(",")) << _symbol("]")).map(
        lambda items: tuple(str(value) for value in items)
    )
    return string_token | list_literal | true_literal | false_literal | number | bare_word


def _build_operator_parser() -> Parser:
    """Build parser matching the longest operator identifier first."""
    names = sorted((definition.id for definition in FILTER_OPERATORS), key=len, reverse=True)
    parser: Parser | None = None
    for name in names:
        option = _lexeme(_keyword(name)).result(name)
        parser = option if parser is None else parser | option
    return cast(Parser, parser).desc("operator")


def _chain(term: Parser, conjunction: str) -> Parser:
    """Build a conjunction-level parser flattening repeated conjunctions."""

    @generate
    def parser() -> Generator[Parser, object, _RawNode]:
        first = yield term
        rest = yield (_lexeme(_keyword(conjunction)) >> term).many()
        nodes = cast(list[_RawNode], [first, *cast(list[object], rest)])
        if len(nodes) == 1:
            return nodes[0]
        return _RawGroup(conjunction, tuple(nodes))

    return parser


def _make_parser() -> Parser:
    """Build the full filter parser."""
    property_name = _lexeme(
        regex(r"user:[A-Za-z0-9_\-]+|[A-Za-z][A-Za-z]*(?:\.[A-Za-z]+)?").desc("property")
    )
    operator = _build_operator_parser()
    value = _build_value_parser()
    expr = forward_declaration()

    @generate
    def condition() -> Generator[Parser, object, _RawCondition]:
        name = yield property_name
        op = yield operator
        if not isinstance(name, str) or not isinstance(op, str):
            raise FilterParseError("Invalid condition")
        operand: FilterValue = None
        if operator_requires_value(op):
            operand = cast(FilterValue, (yield value))
        return _RawCondition(name, op, operand)

    term = (_symbol("(") >> expr << _symbol(")")) | condition
    expr.become(_chain(_chain(term, "and"), "or"))
    return regex(r"\s*") >> expr.optional() << eof


FILTER_PARSER = _make_parser()


def _build_nodes(raw: _RawNode, counter: list[int]) -> FilterNode:
    counter[0] += 1
    node_id = f"n{counter[0]}"
    if isinstance(raw, _RawCondition):
        return FilterCondition(node_id, raw.property, raw.operator, raw.value)
    children = tuple(_build_nodes(child, counter) for child in raw.children)
    return FilterGroup(node_id, raw.conjunction, children)


def parse_filter(text: str) -> FilterGroup:
    """Parse filter text into a filter tree rooted at a group.

    Node ids are assigned in document order as ``n1``, ``n2``, ...

    Raises:
        FilterParseError: If the text is not valid filter syntax
    """
    try:
        result = FILTER_PARSER.parse(text)
    except ParseError as exc:
        raise FilterParseError(_format_parse_error(text, exc)) from exc

    if result is None:
        return FilterGroup("n1", "and", ())
    raw = cast(_RawNode, result)
    if isinstance(raw, _RawCondition):
        raw = _RawGroup("and", (raw,))
    return cast(FilterGroup, _build_nodes(raw, [0]))
