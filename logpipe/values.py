"""Decoded JSON value model, compact re-serialization, and extraction coercion.

Every JSON node is wrapped in a ``Value`` carrying an explicit ``Kind`` so the
evaluator can check shapes without ``isinstance`` chains over raw Python types
(``bool`` is an ``int`` subclass, which makes raw checks easy to get wrong).
"""

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class Kind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


class MalformedJSONError(ValueError):
    """Raised when text cannot be decoded as JSON."""


@dataclass(frozen=True)
class Value:
    kind: Kind
    data: Any = None

    @classmethod
    def from_python(cls, obj: Any) -> "Value":
        """Wrap an object produced by ``json.loads`` into a Value tree."""
        if obj is None:
            return NULL
        if isinstance(obj, bool):
            return cls(Kind.BOOL, obj)
        if isinstance(obj, (int, float)):
            return cls(Kind.NUMBER, float(obj))
        if isinstance(obj, str):
            return cls(Kind.STRING, obj)
        if isinstance(obj, list):
            return cls(Kind.ARRAY, tuple(cls.from_python(item) for item in obj))
        if isinstance(obj, dict):
            return cls(Kind.OBJECT, {k: cls.from_python(v) for k, v in obj.items()})
        raise TypeError(f"Unsupported JSON type: {type(obj).__name__}")

    def to_python(self) -> Any:
        if self.kind is Kind.ARRAY:
            return [item.to_python() for item in self.data]
        if self.kind is Kind.OBJECT:
            return {k: v.to_python() for k, v in self.data.items()}
        return self.data


NULL = Value(Kind.NULL)


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _parse_number(text: str) -> float:
    n = float(text)
    if math.isinf(n):
        raise ValueError(f"number {text} is out of range")
    return n


def decode(text: str) -> Value:
    """Decode *text* into a Value tree.

    Raises:
        MalformedJSONError: If the text is not syntactically valid JSON.
    """
    try:
        data = json.loads(
            text,
            parse_float=_parse_number,
            parse_int=_parse_number,
            parse_constant=_reject_constant,
        )
        return Value.from_python(data)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedJSONError(str(e)) from e


def format_number(n: float) -> str:
    """Shortest round-trip text for a double, without a trailing ``.0``.

    Magnitudes in [1e-6, 1e21) use plain decimal notation, everything else
    uses exponent notation with no zero padding in the exponent (``1e-7``,
    ``1e+21``).
    """
    if n == 0 or 1e-6 <= abs(n) < 1e21:
        return format(Decimal(repr(n)).normalize(), "f")
    text = repr(n)
    mantissa, _, exponent = text.partition("e")
    if exponent.startswith("-0"):
        return f"{mantissa}e-{exponent[2:]}"
    return text


def to_json(value: Value) -> str:
    """Serialize a Value tree as compact JSON, keeping object key order."""
    parts: list[str] = []
    _write(value, parts)
    return "".join(parts)


def _write(value: Value, out: list[str]) -> None:
    kind = value.kind
    if kind is Kind.NULL:
        out.append("null")
    elif kind is Kind.BOOL:
        out.append("true" if value.data else "false")
    elif kind is Kind.NUMBER:
        out.append(format_number(value.data))
    elif kind is Kind.STRING:
        out.append(json.dumps(value.data, ensure_ascii=False))
    elif kind is Kind.ARRAY:
        out.append("[")
        for i, item in enumerate(value.data):
            if i:
                out.append(",")
            _write(item, out)
        out.append("]")
    else:
        out.append("{")
        for i, (key, item) in enumerate(value.data.items()):
            if i:
                out.append(",")
            out.append(json.dumps(key, ensure_ascii=False))
            out.append(":")
            _write(item, out)
        out.append("}")


def coerce(value: Value) -> None | bool | float | str:
    """Map a matched Value to what gets stored in an extraction map.

    Strings and bools are kept, numbers become floats, null becomes ``None``,
    arrays and objects become their compact JSON text.
    """
    kind = value.kind
    if kind is Kind.NULL:
        return None
    if kind in (Kind.STRING, Kind.BOOL):
        return value.data
    if kind is Kind.NUMBER:
        return float(value.data)
    return to_json(value)
