"""Lua table-literal writer and the field emission plan engine.

Output is deterministic: every mapping is emitted in sorted key order and
every plan is an explicit, ordered list of :class:`Emit` entries.
"""

import math
import re
from dataclasses import dataclass
from typing import Callable

from dvm.core.union import ABSENT, Absent, ListValue, ObjectValue, Scalar, UnionValue

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

LUA_KEYWORDS = frozenset({
    "and", "break", "do", "else", "elseif", "end", "false", "for", "function",
    "goto", "if", "in", "local", "nil", "not", "or", "repeat", "return", "then",
    "true", "until", "while",
})

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def escape(text: str) -> str:
    """Escape a string for use inside a double-quoted Lua literal."""
    return "".join(_ESCAPES.get(char, char) for char in text)


def quote(text: str) -> str:
    return f'"{escape(text)}"'


def table_key(key: str) -> str:
    """Render a table key: bare when it is an identifier, ``["..."]`` otherwise."""
    if _IDENTIFIER_RE.match(key) and key not in LUA_KEYWORDS:
        return key
    return f"[{quote(key)}]"


def scalar_literal(value: str | bool | int | float) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "0/0"
        if math.isinf(value):
            return "math.huge" if value > 0 else "-math.huge"
        return repr(value)
    return str(value)


class LuaWriter:
    """Accumulates lines of generated Lua."""

    def __init__(self, indent: int = 2):
        self.unit = " " * indent
        self._lines: list[str] = []

    def line(self, level: int, text: str) -> None:
        self._lines.append(f"{self.unit * level}{text}")

    def text(self) -> str:
        return "\n".join(self._lines) + "\n"

    def value(self, value: UnionValue, level: int) -> str:
        """Render a value as a Lua expression.

        Objects become multi-line tables with sorted keys. Lists of scalars
        stay on one line; lists holding tables get one entry per line.
        """
        if isinstance(value, Absent):
            return "nil"
        if isinstance(value, Scalar):
            return scalar_literal(value.value)
        if isinstance(value, ListValue):
            if not value.items:
                return "{}"
            if all(isinstance(item, Scalar) for item in value.items):
                return "{ " + ", ".join(self.value(item, level) for item in value.items) + " }"
            inner = [f"{self.unit * (level + 1)}{self.value(item, level + 1)}," for item in value.items]
            return "{\n" + "\n".join(inner) + "\n" + self.unit * level + "}"
        if isinstance(value, ObjectValue):
            if not value.fields:
                return "{}"
            inner = [
                f"{self.unit * (level + 1)}{table_key(key)} = {self.value(value.fields[key], level + 1)},"
                for key in sorted(value.fields)
            ]
            return "{\n" + "\n".join(inner) + "\n" + self.unit * level + "}"
        raise TypeError(f"not a union value: {value!r}")

    def assign(self, level: int, key: str, value: UnionValue) -> None:
        self.line(level, f"{table_key(key)} = {self.value(value, level)},")

    def function(self, level: int, key: str, code: str) -> None:
        """Wrap raw source in an anonymous function literal.

        Lines that are blank after trimming are dropped; the rest keep their
        own indentation and are shifted one level deeper than ``key``.
        """
        self.line(level, f"{table_key(key)} = function()")
        for raw in code.splitlines():
            if raw.strip():
                self.line(level + 1, raw.rstrip())
        self.line(level, "end,")


# (writer, key, value, level) -> None
Renderer = Callable[[LuaWriter, str, UnionValue, int], None]


@dataclass(frozen=True)
class Emit:
    """One step of a field emission plan: render ``attribute`` under ``key``."""

    key: str
    attribute: str
    render: Renderer


def emit_plan(writer: LuaWriter, plan: tuple[Emit, ...], values: dict[str, UnionValue], level: int = 1) -> None:
    """Run a plan in order, skipping absent fields.

    Stored empty values (``""``, ``[]``, ``0``, ``false``) still render so they
    override the plugin manager's defaults.
    """
    for entry in plan:
        value = values.get(entry.attribute, ABSENT)
        if isinstance(value, Absent):
            continue
        entry.render(writer, entry.key, value, level)


def render_value(writer: LuaWriter, key: str, value: UnionValue, level: int) -> None:
    """Scalar -> ``key = "s"``, list -> ``key = { "a", "b" }``, object -> sorted table."""
    writer.assign(level, key, value)


def render_code(writer: LuaWriter, key: str, value: UnionValue, level: int) -> None:
    if isinstance(value, Scalar) and isinstance(value.value, str):
        writer.function(level, key, value.value)
    elif isinstance(value, (Absent, ListValue, ObjectValue, Scalar)):
        writer.assign(level, key, value)
    else:
        raise TypeError(f"not a union value: {value!r}")


def inline_table(writer: LuaWriter, positional: list[UnionValue], named: list[tuple[str, UnionValue]]) -> str:
    """Render ``{ pos1, pos2, key = value }`` on one line, skipping absent parts."""
    parts = [writer.value(item, 0) for item in positional if not isinstance(item, Absent)]
    parts += [f"{table_key(name)} = {writer.value(item, 0)}" for name, item in named if not isinstance(item, Absent)]
    return "{ " + ", ".join(parts) + " }"


def render_dependencies(writer: LuaWriter, key: str, value: UnionValue, level: int) -> None:
    """Bare references render as strings, objects as ``{ "repo", build = ..., ... }``."""
    if not isinstance(value, ListValue):
        writer.assign(level, key, value)
        return
    writer.line(level, f"{table_key(key)} = {{")
    for entry in value.items:
        if isinstance(entry, ObjectValue):
            rendered = inline_table(
                writer,
                [entry.get("repo")],
                [(name, entry.get(name)) for name in ("build", "version", "branch", "config")],
            )
            writer.line(level + 1, f"{rendered},")
        elif isinstance(entry, (Scalar, ListValue, Absent)):
            writer.line(level + 1, f"{writer.value(entry, level + 1)},")
        else:
            raise TypeError(f"not a union value: {entry!r}")
    writer.line(level, "},")


def render_keys(writer: LuaWriter, key: str, value: UnionValue, level: int) -> None:
    """Key bindings render as ``{ "lhs", "action", desc = "...", mode = ... }``."""
    if not isinstance(value, ListValue):
        writer.assign(level, key, value)
        return
    writer.line(level, f"{table_key(key)} = {{")
    for entry in value.items:
        if isinstance(entry, ObjectValue):
            rendered = inline_table(
                writer,
                [entry.get("key"), entry.get("action")],
                [("desc", entry.get("desc")), ("mode", entry.get("mode"))],
            )
            writer.line(level + 1, f"{rendered},")
        elif isinstance(entry, (Scalar, ListValue, Absent)):
            writer.line(level + 1, f"{writer.value(entry, level + 1)},")
        else:
            raise TypeError(f"not a union value: {entry!r}")
    writer.line(level, "},")
