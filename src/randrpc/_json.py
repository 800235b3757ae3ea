"""
Self-contained JSON codec for the randrpc SDK.

This module provides the dynamic value model used across the SDK and a small
recursive-descent parser/serializer pair built on top of it. It deliberately
covers only the subset of JSON exchanged with the random.org JSON-RPC API:

- Objects, arrays, booleans and null
- Strings as raw spans between quotes (no escape decoding, no escaping)
- Numbers that fit a 32-bit integer, a 64-bit integer or a double,
  in that preference order

Known limitations:
    - Escaped quotes inside strings are NOT supported. A backslash is kept
      as-is and the string ends at the next `"` character.
    - Control characters inside strings are written verbatim.
    - A plain `str` starting with `{` is treated as an already-serialized
      object and emitted un-quoted (see `serialize_object`).

Example:
    >>> from randrpc._json import parse, serialize_object
    >>> value = parse('{"a":1,"b":[1,2,3],"c":{"d":true}}')
    >>> value["b"].as_array()[0].as_int()
    1
    >>> serialize_object("jsonrpc", "2.0", "id", 42)
    '{"jsonrpc":"2.0","id":42}'
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

_OPEN_OBJECT = "{"
_CLOSE_OBJECT = "}"
_OPEN_ARRAY = "["
_CLOSE_ARRAY = "]"
_KV_SEPARATOR = ":"
_ENTRY_SEPARATOR = ","
_QUOTE = '"'
_NUMBER_BOUNDARIES = ",}]"
_NUMBER_START = "+-."

# Deepest object/array nesting accepted by the parser
MAX_NESTING_DEPTH = 128

# Integer/double syntax accepted by the invariant-culture parsers.
# Checked before int()/float() since Python also accepts "1_000", "inf" and "nan".
_INTEGER_PATTERN = re.compile(r"\s*[+-]?\d+\s*")
_DOUBLE_PATTERN = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*")


# =============================================================================
# Exceptions
# =============================================================================


class JsonError(ValueError):
    """Base class for every error raised by the JSON codec."""

    pass


class JsonParseError(JsonError):
    """
    Raised when a JSON text can not be parsed.

    Attributes:
        position: Index in the text where the problem was detected.
    """

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(f"{message} (at position {position})")


class UnexpectedEOFError(JsonParseError):
    """Raised when the end of the text is reached while a token was still expected."""

    def __init__(self, position: int, expected: str = "data"):
        self.expected = expected
        super().__init__(f"Expected {expected}, end of input reached", position)


class UnknownTokenError(JsonParseError):
    """Raised when a value starts with a character that begins no known token."""

    def __init__(self, token: str, position: int):
        self.token = token
        super().__init__(f"Unknown token {token!r}", position)


class InvalidNumberError(JsonParseError):
    """Raised when a number token fits neither int32, int64 nor double."""

    def __init__(self, literal: str, position: int):
        self.literal = literal
        super().__init__(f"Invalid number {literal!r}", position)


class JsonFormatError(JsonParseError):
    """
    Raised when a structural expectation is violated.

    Attributes:
        expectation: Human-readable name of what the parser expected.
    """

    def __init__(self, expectation: str, position: int, found: str | None = None):
        self.expectation = expectation
        self.found = found
        detail = f"Expected {expectation}" + (f", found {found!r}" if found is not None else "")
        super().__init__(detail, position)


class InvalidKeyError(JsonFormatError):
    """Raised when an object key is not a quoted string."""

    def __init__(self, position: int, found: str | None = None):
        super().__init__("quoted object key", position, found)


class JsonSerializeError(JsonError):
    """Raised when a value can not be serialized."""

    pass


class KeyTypeError(JsonSerializeError, TypeError):
    """Raised when an object key handed to the serializer is not a string."""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"Key has to be a string, got {type(key).__name__}: {key!r}")


class JsonTypeError(JsonError, TypeError):
    """
    Raised when a safe-cast accessor does not match the value variant.

    Example:
        >>> JsonString("x").as_int()
        Traceback (most recent call last):
        ...
        randrpc._json.JsonTypeError: Expected Integer, got String
    """

    def __init__(self, expected: str, actual: JsonValue):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected}, got {actual.type_name}")


# =============================================================================
# Value Model
# =============================================================================


class JsonValue:
    """
    Base class of the dynamic JSON value model.

    Exactly one variant is active per instance. Variants never coerce into
    each other implicitly: use the `as_*()` accessors, which raise
    `JsonTypeError` on mismatch.
    """

    type_name = "Value"

    def as_object(self) -> JsonObject:
        raise JsonTypeError("Object", self)

    def as_array(self) -> JsonArray:
        raise JsonTypeError("Array", self)

    def as_str(self) -> str:
        raise JsonTypeError("String", self)

    def as_int(self) -> int:
        """Return the value of an Integer (32-bit) variant."""
        raise JsonTypeError("Integer", self)

    def as_long(self) -> int:
        """Return the value of an Integer or Long variant."""
        raise JsonTypeError("Long", self)

    def as_float(self) -> float:
        """Return the value of any numeric variant as a float."""
        raise JsonTypeError("Double", self)

    def as_bool(self) -> bool:
        raise JsonTypeError("Boolean", self)

    def is_null(self) -> bool:
        return False

    def to_python(self) -> Any:
        """Convert this value (recursively) into plain Python objects."""
        raise NotImplementedError


@dataclass(frozen=True)
class JsonObject(JsonValue):
    """Mapping from string keys to values. Insertion order is preserved."""

    members: dict[str, JsonValue] = field(default_factory=dict)

    type_name = "Object"

    def as_object(self) -> JsonObject:
        return self

    def get(self, key: str) -> JsonValue | None:
        return self.members.get(key)

    def keys(self) -> list[str]:
        return list(self.members)

    def without(self, *keys: str) -> JsonObject:
        """Return a copy of this object with the given keys removed."""
        return JsonObject({k: v for k, v in self.members.items() if k not in keys})

    def __getitem__(self, key: str) -> JsonValue:
        return self.members[key]

    def __contains__(self, key: object) -> bool:
        return key in self.members

    def __len__(self) -> int:
        return len(self.members)

    def to_python(self) -> dict[str, Any]:
        return {k: v.to_python() for k, v in self.members.items()}


@dataclass(frozen=True)
class JsonArray(JsonValue):
    """Ordered sequence of values."""

    items: tuple[JsonValue, ...] = ()

    type_name = "Array"

    def as_array(self) -> JsonArray:
        return self

    def __iter__(self) -> Iterator[JsonValue]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> JsonValue:
        return self.items[index]

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class JsonString(JsonValue):
    value: str

    type_name = "String"

    def as_str(self) -> str:
        return self.value

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class JsonInteger(JsonValue):
    """Number that fits a signed 32-bit integer."""

    value: int

    type_name = "Integer"

    def __post_init__(self) -> None:
        if not INT32_MIN <= self.value <= INT32_MAX:
            raise ValueError(f"Integer out of 32-bit range: {self.value}")

    def as_int(self) -> int:
        return self.value

    def as_long(self) -> int:
        return self.value

    def as_float(self) -> float:
        return float(self.value)

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True)
class JsonLong(JsonValue):
    """Number that fits a signed 64-bit integer (used only when Integer does not)."""

    value: int

    type_name = "Long"

    def __post_init__(self) -> None:
        if not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError(f"Long out of 64-bit range: {self.value}")

    def as_long(self) -> int:
        return self.value

    def as_float(self) -> float:
        return float(self.value)

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True)
class JsonDouble(JsonValue):
    value: float

    type_name = "Double"

    def as_float(self) -> float:
        return self.value

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True)
class JsonBoolean(JsonValue):
    value: bool

    type_name = "Boolean"

    def as_bool(self) -> bool:
        return self.value

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True)
class JsonNull(JsonValue):
    type_name = "Null"

    def is_null(self) -> bool:
        return True

    def to_python(self) -> None:
        return None


JSON_NULL = JsonNull()
JSON_TRUE = JsonBoolean(True)
JSON_FALSE = JsonBoolean(False)

_LITERALS: tuple[tuple[str, JsonValue], ...] = (
    ("true", JSON_TRUE),
    ("false", JSON_FALSE),
    ("null", JSON_NULL),
)


# =============================================================================
# Parser
# =============================================================================


@dataclass
class _Cursor:
    """Read position over a JSON text. One cursor per parse call."""

    text: str
    index: int = 0
    depth: int = 0

    @property
    def at_top_level(self) -> bool:
        return self.depth == 0

    def descend(self) -> None:
        """Enter an object or array. The opening bracket is already consumed."""
        if self.depth >= MAX_NESTING_DEPTH:
            raise JsonFormatError(f"nesting depth <= {MAX_NESTING_DEPTH}", self.index - 1, self.text[self.index - 1])
        self.depth += 1

    def ascend(self) -> None:
        self.depth -= 1

    def next_token(self, expected: str = "data") -> str:
        """Skip whitespace and consume the next character."""
        text, length = self.text, len(self.text)
        while self.index < length and text[self.index].isspace():
            self.index += 1
        if self.index >= length:
            raise UnexpectedEOFError(self.index, expected)
        char = text[self.index]
        self.index += 1
        return char

    def at_end(self) -> bool:
        while self.index < len(self.text) and self.text[self.index].isspace():
            self.index += 1
        return self.index >= len(self.text)


def parse(text: str) -> JsonValue:
    """
    Parse a JSON text into a `JsonValue`.

    Args:
        text: The JSON document. Usually an object (JSON-RPC reply).

    Returns:
        The decoded value tree.

    Raises:
        JsonParseError: If the text is malformed. Never returns a partial value.

    Example:
        >>> parse('{"n": 9999999999}')["n"]
        JsonLong(value=9999999999)
    """
    cursor = _Cursor(text)
    value = _read_value(cursor, cursor.next_token("value"))
    if not cursor.at_end():
        raise JsonFormatError("end of input", cursor.index, text[cursor.index])
    return value


def _read_value(cursor: _Cursor, char: str) -> JsonValue:
    if char == _QUOTE:
        return JsonString(_read_string(cursor))
    if char == _OPEN_ARRAY:
        return _read_array(cursor)
    if char == _OPEN_OBJECT:
        return _read_object(cursor)

    # Step back so number and literal readers see the first character
    cursor.index -= 1
    if char.isdigit() or char in _NUMBER_START:
        return _read_number(cursor)
    for literal, value in _LITERALS:
        if cursor.text.startswith(literal, cursor.index):
            cursor.index += len(literal)
            return value
    raise UnknownTokenError(char, cursor.index)


def _read_object(cursor: _Cursor) -> JsonObject:
    members: dict[str, JsonValue] = {}
    cursor.descend()

    char = cursor.next_token("object key")
    if char == _CLOSE_OBJECT:
        cursor.ascend()
        return JsonObject(members)

    while True:
        if char != _QUOTE:
            raise InvalidKeyError(cursor.index - 1, char)
        key = _read_string(cursor)

        char = cursor.next_token("key/value separator")
        if char != _KV_SEPARATOR:
            raise JsonFormatError("key/value separator ':'", cursor.index - 1, char)
        members[key] = _read_value(cursor, cursor.next_token("value"))

        char = cursor.next_token("',' or '}'")
        if char == _CLOSE_OBJECT:
            cursor.ascend()
            return JsonObject(members)
        if char != _ENTRY_SEPARATOR:
            raise JsonFormatError("',' or '}'", cursor.index - 1, char)
        char = cursor.next_token("object key")


def _read_array(cursor: _Cursor) -> JsonArray:
    items: list[JsonValue] = []
    cursor.descend()

    char = cursor.next_token("value or ']'")
    if char == _CLOSE_ARRAY:
        cursor.ascend()
        return JsonArray(())

    while True:
        items.append(_read_value(cursor, char))
        char = cursor.next_token("',' or ']'")
        if char == _CLOSE_ARRAY:
            cursor.ascend()
            return JsonArray(tuple(items))
        if char != _ENTRY_SEPARATOR:
            raise JsonFormatError("',' or ']'", cursor.index - 1, char)
        char = cursor.next_token("value")


def _read_string(cursor: _Cursor) -> str:
    """Read a raw span up to the next quote. The opening quote is already consumed."""
    end = cursor.text.find(_QUOTE, cursor.index)
    if end == -1:
        raise UnexpectedEOFError(len(cursor.text), "closing quote")
    value = cursor.text[cursor.index:end]
    cursor.index = end + 1
    return value


def _read_number(cursor: _Cursor) -> JsonValue:
    """
    Read a number ending right before the nearest of `,`, `}` or `]`.
    A top-level number ends at the end of the text instead.

    Tries int32 first, then int64, then an invariant-culture double.
    """
    text, start = cursor.text, cursor.index

    # Each search is limited to the closest boundary found so far
    right = len(text)
    found = False
    for separator in _NUMBER_BOUNDARIES:
        index = text.find(separator, start, right)
        if index != -1:
            right, found = index, True
    if not found and not cursor.at_top_level:
        raise UnexpectedEOFError(len(text), "',', '}' or ']' after number")

    literal = text[start:right]

    value: JsonValue
    if _INTEGER_PATTERN.fullmatch(literal):
        number = int(literal)
        if INT32_MIN <= number <= INT32_MAX:
            value = JsonInteger(number)
        elif INT64_MIN <= number <= INT64_MAX:
            value = JsonLong(number)
        else:
            value = JsonDouble(float(number))
    elif _DOUBLE_PATTERN.fullmatch(literal):
        value = JsonDouble(float(literal))
    else:
        raise InvalidNumberError(literal.strip(), start)

    cursor.index = right
    return value


# =============================================================================
# Serializer
# =============================================================================


def serialize(value: Any) -> str:
    """
    Serialize a value tree into JSON text.

    Accepts a `JsonValue` or plain Python objects (mappings, collections,
    str, int, float, Decimal, bool, None).

    Raises:
        JsonSerializeError: If the value (or a nested one) can not be serialized.
    """
    parts: list[str] = []
    _write_value(parts, value)
    return "".join(parts)


def serialize_object(*entries: Any) -> str:
    """
    Serialize key/value pairs into a JSON object.

    Accepts either an alternating flat sequence of keys and values, or a
    single mapping (`dict` or `JsonObject`).

    A plain `str` value starting with `{` is emitted un-quoted: it is taken as
    an already-serialized nested object. Nested parameter objects are built
    this way, e.g. `serialize_object("params", serialize_object("n", 5))`.
    Wrap such text in `JsonString` to force a quoted string instead.

    Raises:
        KeyTypeError: If a key is not a string.
        JsonSerializeError: If a key has no value or a value is unsupported.

    Example:
        >>> serialize_object("n", 5, "replacement", True)
        '{"n":5,"replacement":true}'
    """
    if len(entries) == 1 and isinstance(entries[0], (Mapping, JsonObject)):
        pairs = _pairs_of(entries[0])
    else:
        if len(entries) % 2 != 0:
            raise JsonSerializeError(f"Key {entries[-1]!r} has no value")
        pairs = list(zip(entries[0::2], entries[1::2], strict=True))

    parts: list[str] = []
    _write_object(parts, pairs)
    return "".join(parts)


def serialize_array(*values: Any) -> str:
    """
    Serialize a plain sequence of values into a JSON array.

    Example:
        >>> serialize_array(1, "a", None)
        '[1,"a",null]'
    """
    parts: list[str] = []
    _write_array(parts, values)
    return "".join(parts)


def _pairs_of(mapping: Mapping[Any, Any] | JsonObject) -> list[tuple[Any, Any]]:
    if isinstance(mapping, JsonObject):
        return list(mapping.members.items())
    return list(mapping.items())


def _write_object(parts: list[str], pairs: list[tuple[Any, Any]]) -> None:
    parts.append(_OPEN_OBJECT)
    for index, (key, value) in enumerate(pairs):
        if not isinstance(key, str):
            raise KeyTypeError(key)
        if index:
            parts.append(_ENTRY_SEPARATOR)
        parts.append(f"{_QUOTE}{key}{_QUOTE}{_KV_SEPARATOR}")
        _write_value(parts, value)
    parts.append(_CLOSE_OBJECT)


def _write_array(parts: list[str], values: Any) -> None:
    parts.append(_OPEN_ARRAY)
    for index, value in enumerate(values):
        if index:
            parts.append(_ENTRY_SEPARATOR)
        _write_value(parts, value)
    parts.append(_CLOSE_ARRAY)


def _write_value(parts: list[str], value: Any) -> None:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        parts.append("true" if value else "false")
    elif value is None:
        parts.append("null")
    elif isinstance(value, str):
        if value.startswith(_OPEN_OBJECT):
            parts.append(value)
        else:
            parts.append(f"{_QUOTE}{value}{_QUOTE}")
    elif isinstance(value, int):
        parts.append(str(value))
    elif isinstance(value, float):
        parts.append(_format_float(value))
    elif isinstance(value, Decimal):
        if not value.is_finite():
            raise JsonSerializeError(f"Non-finite number can not be serialized: {value}")
        parts.append(str(value))
    elif isinstance(value, JsonValue):
        _write_json_value(parts, value)
    elif isinstance(value, Mapping):
        _write_object(parts, _pairs_of(value))
    elif isinstance(value, (list, tuple, set, frozenset)):
        _write_array(parts, value)
    else:
        raise JsonSerializeError(f"Unsupported value type: {type(value).__name__}")


def _write_json_value(parts: list[str], value: JsonValue) -> None:
    match value:
        case JsonObject():
            _write_object(parts, _pairs_of(value))
        case JsonArray():
            _write_array(parts, value.items)
        case JsonString():
            # Typed strings are always quoted, even when they start with "{"
            parts.append(f"{_QUOTE}{value.value}{_QUOTE}")
        case JsonInteger() | JsonLong():
            parts.append(str(value.value))
        case JsonDouble():
            parts.append(_format_float(value.value))
        case JsonBoolean():
            parts.append("true" if value.value else "false")
        case JsonNull():
            parts.append("null")
        case _:
            raise JsonSerializeError(f"Unsupported value type: {type(value).__name__}")


def _format_float(value: float) -> str:
    if not math.isfinite(value):
        raise JsonSerializeError(f"Non-finite number can not be serialized: {value}")
    # repr() is culture-invariant, round-trips exactly and always reads back as a double
    return repr(value)
