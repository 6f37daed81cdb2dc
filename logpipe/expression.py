"""Path expressions over decoded JSON: compiler and evaluator.

Supported syntax::

    message               top-level member
    complex.log.prop      nested members
    complex.log.array[1]  array index (non-negative integers only)
    [0].name              index into a top-level array
    "foo-bar".baz         quoted member name (JSON string escapes allowed)

An empty query is the identity expression: it looks up the top-level member
named exactly like the output key, without parsing the key.
"""

import json
import re
from dataclasses import dataclass
from typing import Union

from logpipe.values import Kind, Value

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DIGITS_RE = re.compile(r"[0-9]+")


class ExpressionSyntaxError(ValueError):
    """Raised when a query does not match the path grammar."""

    def __init__(self, message: str, query: str, position: int):
        super().__init__(message)
        self.message = message
        self.query = query
        self.position = position

    def __str__(self) -> str:
        return f"SyntaxError: {self.message}"


@dataclass(frozen=True)
class Field:
    name: str


@dataclass(frozen=True)
class Index:
    position: int


Segment = Union[Field, Index]


@dataclass(frozen=True)
class CompiledExpression:
    key: str
    query: str
    segments: tuple[Segment, ...]

    @property
    def is_identity(self) -> bool:
        return self.query == ""


# Token kinds
_NAME = "name"
_NUMBER = "number"
_DOT = "."
_LBRACKET = "["
_RBRACKET = "]"


def _tokenize(query: str) -> list[tuple[str, object, int]]:
    tokens = []
    pos = 0
    while pos < len(query):
        ch = query[pos]
        if ch in (_DOT, _LBRACKET, _RBRACKET):
            tokens.append((ch, ch, pos))
            pos += 1
            continue
        if ch == '"':
            end = pos + 1
            while end < len(query) and query[end] != '"':
                end += 2 if query[end] == "\\" else 1
            if end >= len(query):
                raise ExpressionSyntaxError(
                    f"Unterminated quoted name starting at {pos}", query, pos
                )
            try:
                name = json.loads(query[pos:end + 1])
            except ValueError:
                raise ExpressionSyntaxError(
                    f"Invalid quoted name starting at {pos}", query, pos
                ) from None
            tokens.append((_NAME, name, pos))
            pos = end + 1
            continue
        m = _IDENT_RE.match(query, pos)
        if m:
            tokens.append((_NAME, m.group(), pos))
            pos = m.end()
            continue
        m = _DIGITS_RE.match(query, pos)
        if m:
            tokens.append((_NUMBER, int(m.group()), pos))
            pos = m.end()
            continue
        raise ExpressionSyntaxError(f"Unknown char: {ch!r}", query, pos)
    return tokens


def parse_path(query: str) -> tuple[Segment, ...]:
    """Parse a non-empty query into an ordered tuple of path segments.

    Raises:
        ExpressionSyntaxError: On any character or token outside the grammar.
    """
    tokens = _tokenize(query)
    if not tokens:
        raise ExpressionSyntaxError("Empty expression", query, 0)

    segments: list[Segment] = []
    i = 0

    def index_at(i: int) -> tuple[Index, int]:
        # tokens[i] is "["
        start = tokens[i][2]
        if i + 1 >= len(tokens):
            raise ExpressionSyntaxError(f"Unterminated bracket at {start}", query, start)
        kind, value, pos = tokens[i + 1]
        if kind != _NUMBER:
            raise ExpressionSyntaxError(
                f"Expected a non-negative integer index at {pos}", query, pos
            )
        if i + 2 >= len(tokens) or tokens[i + 2][0] != _RBRACKET:
            raise ExpressionSyntaxError(f"Unterminated bracket at {start}", query, start)
        return Index(value), i + 3

    kind, value, pos = tokens[0]
    if kind == _NAME:
        segments.append(Field(value))
        i = 1
    elif kind == _LBRACKET:
        seg, i = index_at(0)
        segments.append(seg)
    else:
        raise ExpressionSyntaxError(f"Unexpected token {value!r} at {pos}", query, pos)

    while i < len(tokens):
        kind, value, pos = tokens[i]
        if kind == _DOT:
            if i + 1 >= len(tokens):
                raise ExpressionSyntaxError(f"Expected a name after '.' at {pos}", query, pos)
            next_kind, next_value, next_pos = tokens[i + 1]
            if next_kind != _NAME:
                raise ExpressionSyntaxError(
                    f"Expected a name after '.' at {next_pos}", query, next_pos
                )
            segments.append(Field(next_value))
            i += 2
        elif kind == _LBRACKET:
            seg, i = index_at(i)
            segments.append(seg)
        else:
            raise ExpressionSyntaxError(f"Unexpected token {value!r} at {pos}", query, pos)

    return tuple(segments)


def compile_expression(key: str, query: str | None) -> CompiledExpression:
    """Compile *query* into an expression that writes to *key*."""
    if not query:
        return CompiledExpression(key=key, query="", segments=(Field(key),))
    return CompiledExpression(key=key, query=query, segments=parse_path(query))


def evaluate(tree: Value, expr: CompiledExpression) -> tuple[Value | None, bool]:
    """Walk *tree* along the expression's segments.

    Returns ``(value, True)`` when every segment resolves, otherwise
    ``(None, False)``. Never raises on missing keys, wrong node kinds or
    out-of-range indices.
    """
    node = tree
    for seg in expr.segments:
        if isinstance(seg, Field):
            if node.kind is not Kind.OBJECT or seg.name not in node.data:
                return None, False
            node = node.data[seg.name]
        else:
            if node.kind is not Kind.ARRAY or seg.position >= len(node.data):
                return None, False
            node = node.data[seg.position]
    return node, True
