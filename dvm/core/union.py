"""Tagged values for fields that may be a scalar, a list or an object.

Manifests carry fields such as ``event`` or ``mode`` whose shape depends on
content: ``event: VeryLazy`` and ``event: [BufReadPre, BufNewFile]`` are both
valid. Every such field is represented as one of four closed variants:

- :data:`ABSENT`: the field is unset
- :class:`Scalar`: a string (or a bool/number inside free-form objects)
- :class:`ListValue`: an ordered sequence of union values
- :class:`ObjectValue`: a mapping of string keys to union values

Stored attributes are decoded through :func:`decode_blob`, which either
degrades malformed data to ``ABSENT`` or raises, depending on
:class:`DecodeMode`.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from dvm.core.record import NULL_BLOB, Blob
from dvm.exceptions import MalformedAttributeError

logger = logging.getLogger(__name__)


class Absent:
    """Marker for an unset field. Use the :data:`ABSENT` singleton."""

    _instance: "Absent | None" = None

    def __new__(cls) -> "Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = Absent()


@dataclass(frozen=True)
class Scalar:
    """A single value. Strings everywhere, bools and numbers only in objects."""

    value: str | bool | int | float


@dataclass(frozen=True)
class ListValue:
    """An ordered sequence of union values."""

    items: tuple["UnionValue", ...] = ()


@dataclass(frozen=True)
class ObjectValue:
    """A string-keyed mapping of union values, in insertion order."""

    fields: dict[str, "UnionValue"] = field(default_factory=dict)

    def get(self, key: str) -> "UnionValue":
        return self.fields.get(key, ABSENT)


UnionValue = Union[Absent, Scalar, ListValue, ObjectValue]


class Shape(Enum):
    """Expected shape of an attribute, used for validation and encoding."""

    TEXT = "text"
    CODE = "code"
    INT = "int"
    BOOL = "bool"
    STRING_OR_LIST = "string_or_list"
    STRING_LIST = "string_list"
    STRING_MAP = "string_map"
    OBJECT = "object"
    KEYMAPS = "keymaps"
    DEPENDENCIES = "dependencies"

    @property
    def is_raw(self) -> bool:
        """Raw shapes are stored verbatim instead of JSON-encoded."""
        return self in (Shape.TEXT, Shape.CODE)


class DecodeMode(Enum):
    """How :func:`decode_blob` reacts to a malformed stored attribute."""

    LENIENT = "lenient"
    STRICT = "strict"


def classify(native: Any) -> UnionValue:
    """Classify a decoded JSON/YAML value into its union variant.

    ``None`` becomes :data:`ABSENT`; ``None`` entries inside lists and
    objects are dropped.

    Args:
        native: Value produced by ``json.loads`` or ``yaml.safe_load``

    Returns:
        The matching union variant

    Raises:
        ValueError: If the value has no union representation (e.g. a date)
    """
    if native is None:
        return ABSENT
    if isinstance(native, (str, bool, int, float)):
        return Scalar(native)
    if isinstance(native, (list, tuple)):
        items = (classify(item) for item in native)
        return ListValue(tuple(item for item in items if not isinstance(item, Absent)))
    if isinstance(native, dict):
        fields: dict[str, UnionValue] = {}
        for key, item in native.items():
            value = classify(item)
            if not isinstance(value, Absent):
                fields[str(key)] = value
        return ObjectValue(fields)
    raise ValueError(f"unsupported value of type {type(native).__name__}")


def to_native(value: UnionValue) -> Any:
    """Convert a union value back to plain Python data."""
    if isinstance(value, Absent):
        return None
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, ListValue):
        return [to_native(item) for item in value.items]
    if isinstance(value, ObjectValue):
        return {key: to_native(item) for key, item in value.fields.items()}
    raise TypeError(f"not a union value: {value!r}")


def is_empty(value: UnionValue) -> bool:
    """Check whether a value is absent or the zero value of its variant."""
    if isinstance(value, Absent):
        return True
    if isinstance(value, Scalar):
        raw = value.value
        if isinstance(raw, str):
            return raw == ""
        if isinstance(raw, bool):
            return raw is False
        return raw == 0
    if isinstance(value, ListValue):
        return not value.items
    if isinstance(value, ObjectValue):
        return not value.fields
    raise TypeError(f"not a union value: {value!r}")


def string_items(value: UnionValue) -> list[str]:
    """Flatten a string-or-list value into a list of strings.

    Non-string entries are ignored; :data:`ABSENT` yields an empty list.
    """
    if isinstance(value, Absent):
        return []
    if isinstance(value, Scalar):
        return [value.value] if isinstance(value.value, str) else []
    if isinstance(value, ListValue):
        return [
            item.value
            for item in value.items
            if isinstance(item, Scalar) and isinstance(item.value, str)
        ]
    if isinstance(value, ObjectValue):
        return []
    raise TypeError(f"not a union value: {value!r}")


def _is_string(value: UnionValue) -> bool:
    return isinstance(value, Scalar) and isinstance(value.value, str)


def _is_string_list(value: UnionValue) -> bool:
    return isinstance(value, ListValue) and all(_is_string(item) for item in value.items)


def _optional(value: UnionValue, check) -> bool:
    return isinstance(value, Absent) or check(value)


def _keymap_mismatch(entry: UnionValue) -> str | None:
    if not isinstance(entry, ObjectValue):
        return "keymap entries must be objects"
    if not _is_string(entry.get("key")):
        return "keymap entry requires a string 'key'"
    for name in ("action", "desc"):
        if not _optional(entry.get(name), _is_string):
            return f"keymap '{name}' must be a string"
    mode = entry.get("mode")
    if not _optional(mode, lambda v: _is_string(v) or _is_string_list(v)):
        return "keymap 'mode' must be a string or a list of strings"
    return None


def _dependency_mismatch(entry: UnionValue) -> str | None:
    if _is_string(entry):
        return None
    if not isinstance(entry, ObjectValue):
        return "dependency entries must be strings or objects"
    if not _is_string(entry.get("repo")):
        return "dependency object requires a string 'repo'"
    for name in ("build", "version", "branch"):
        if not _optional(entry.get(name), _is_string):
            return f"dependency '{name}' must be a string"
    config = entry.get("config")
    if not _optional(config, lambda v: isinstance(v, Scalar) and isinstance(v.value, bool)):
        return "dependency 'config' must be a boolean"
    return None


def shape_mismatch(value: UnionValue, shape: Shape) -> str | None:
    """Describe why ``value`` does not conform to ``shape``.

    Args:
        value: Value to check
        shape: Expected shape

    Returns:
        A human readable reason, or None if the value conforms.
        :data:`ABSENT` conforms to every shape.
    """
    if isinstance(value, Absent):
        return None
    if shape.is_raw:
        return None if _is_string(value) else "expected a string"
    if shape is Shape.INT:
        ok = isinstance(value, Scalar) and isinstance(value.value, int) and not isinstance(value.value, bool)
        return None if ok else "expected an integer"
    if shape is Shape.BOOL:
        ok = isinstance(value, Scalar) and isinstance(value.value, bool)
        return None if ok else "expected a boolean"
    if shape is Shape.STRING_OR_LIST:
        ok = _is_string(value) or _is_string_list(value)
        return None if ok else "expected a string or a list of strings"
    if shape is Shape.STRING_LIST:
        return None if _is_string_list(value) else "expected a list of strings"
    if shape is Shape.STRING_MAP:
        ok = isinstance(value, ObjectValue) and all(_is_string(v) for v in value.fields.values())
        return None if ok else "expected a mapping of strings"
    if shape is Shape.OBJECT:
        return None if isinstance(value, ObjectValue) else "expected a mapping"
    if shape is Shape.KEYMAPS:
        if not isinstance(value, ListValue):
            return "expected a list of keymaps"
        for entry in value.items:
            reason = _keymap_mismatch(entry)
            if reason:
                return reason
        return None
    if shape is Shape.DEPENDENCIES:
        if not isinstance(value, ListValue):
            return "expected a list of dependencies"
        for entry in value.items:
            reason = _dependency_mismatch(entry)
            if reason:
                return reason
        return None
    raise ValueError(f"unknown shape: {shape}")


def _malformed(field_name: str, reason: str, mode: DecodeMode) -> UnionValue:
    if mode is DecodeMode.STRICT:
        raise MalformedAttributeError(field_name, reason)
    logger.debug("Treating stored attribute '%s' as absent: %s", field_name, reason)
    return ABSENT


def decode_blob(
    blob: Blob,
    shape: Shape,
    *,
    mode: DecodeMode = DecodeMode.LENIENT,
    field_name: str = "",
) -> UnionValue:
    """Decode a stored attribute into a union value.

    Invalid blobs are :data:`ABSENT`. Raw shapes (text and code) are
    returned verbatim as a :class:`Scalar`; everything else is parsed as
    JSON and checked against ``shape``.

    Args:
        blob: The stored attribute
        shape: Shape the attribute is expected to have
        mode: LENIENT degrades malformed data to ABSENT, STRICT raises
        field_name: Attribute name used in diagnostics

    Returns:
        The decoded value

    Raises:
        MalformedAttributeError: In STRICT mode, if the blob is not valid JSON
            or does not match ``shape``
    """
    if not blob.valid:
        return ABSENT
    if shape.is_raw:
        return Scalar(blob.value)
    try:
        value = classify(json.loads(blob.value))
    except ValueError as e:
        return _malformed(field_name, f"cannot decode: {e}", mode)
    reason = shape_mismatch(value, shape)
    if reason:
        return _malformed(field_name, reason, mode)
    return value


def encode_value(value: UnionValue, shape: Shape) -> Blob:
    """Encode a value for storage.

    Empty values produce an invalid blob, never an encoded empty container.
    """
    if is_empty(value):
        return NULL_BLOB
    if shape.is_raw and isinstance(value, Scalar):
        return Blob.of(str(value.value))
    return Blob.of(json.dumps(to_native(value)))
