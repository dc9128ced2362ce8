"""Render language values the way the runtime's console prints them."""

from __future__ import annotations

import math
import re
from typing import Any

from .values import (
    MISSING,
    NULL,
    UNDEFINED,
    Accessor,
    JSArray,
    JSBoxed,
    JSError,
    JSFunction,
    JSMap,
    JSObject,
    JSSet,
    Symbol,
    number_to_string,
    to_number,
    to_string,
)

BREAK_LENGTH = 80
DEFAULT_DEPTH = 2
MAX_ARRAY_ITEMS = 100
_IDENT_KEY_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_FORMAT_RE = re.compile(r"%[sdifjoOc%]")


def quote(text: str) -> str:
    mark = "'"
    if "'" in text:
        if '"' not in text:
            mark = '"'
        elif "`" not in text and "${" not in text:
            mark = "`"
    escaped = text.replace("\\", "\\\\").replace("\n", "\\n").replace("\t", "\\t").replace("\r", "\\r")
    if mark == "'":
        escaped = escaped.replace("'", "\\'")
    return f"{mark}{escaped}{mark}"


def format_number(value: float) -> str:
    if value == 0 and math.copysign(1.0, value) < 0:
        return "-0"
    return number_to_string(value)


def _raw(obj: JSObject, key: str) -> Any:
    _, slot = obj.lookup(key)
    if slot is MISSING or isinstance(slot, Accessor):
        return UNDEFINED
    return slot


def constructor_name(obj: JSObject) -> str | None:
    if obj.proto is None:
        return None
    ctor = _raw(obj.proto, "constructor")
    if isinstance(ctor, JSFunction):
        return ctor.name or ""
    return ""


def error_fields(err: JSObject) -> tuple[str, str]:
    name = _raw(err, "name")
    message = _raw(err, "message")
    name_text = to_string(name) if isinstance(name, (str, float, bool)) else "Error"
    message_text = to_string(message) if isinstance(message, (str, float, bool)) else ""
    return name_text, message_text


def error_header(err: JSObject) -> str:
    name, message = error_fields(err)
    return f"{name}: {message}" if message else name


def _function_base(fn: JSFunction) -> str:
    if fn.is_class:
        label = f"[class {fn.name or '(anonymous)'}"
        parent = fn.proto
        if isinstance(parent, JSFunction):
            label += f" extends {parent.name or '(anonymous)'}"
        return label + "]"
    if fn.name:
        return f"[Function: {fn.name}]"
    return "[Function (anonymous)]"


class _Inspector:
    def __init__(self, depth: int) -> None:
        self.depth = depth
        self.stack: list[int] = []
        self.circular = False

    def render(self, value: Any) -> str:
        text = self.format(value, 0)
        return f"<ref *1> {text}" if self.circular else text

    def format(self, value: Any, level: int) -> str:
        if value is UNDEFINED:
            return "undefined"
        if value is NULL:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return format_number(value)
        if isinstance(value, str):
            return quote(value)
        if isinstance(value, Symbol):
            return repr(value)
        if isinstance(value, JSObject):
            if id(value) in self.stack:
                self.circular = True
                return "[Circular *1]"
            return self._object(value, level)
        return str(value)

    def _key(self, key: object) -> str:
        if isinstance(key, Symbol):
            return f"[{key!r}]"
        text = str(key)
        return text if _IDENT_KEY_RE.match(text) else quote(text)

    def _prop(self, obj: JSObject, key: object, level: int) -> str:
        slot = obj.get_slot(key)
        if isinstance(slot, Accessor):
            if slot.get and slot.set:
                shown = "[Getter/Setter]"
            else:
                shown = "[Getter]" if slot.get else "[Setter]"
        else:
            shown = self.format(slot, level + 1)
        return f"{self._key(key)}: {shown}"

    def _object(self, obj: JSObject, level: int) -> str:
        base = ""
        if isinstance(obj, JSFunction):
            base = _function_base(obj)
        elif isinstance(obj, JSError):
            base = error_header(obj) if level == 0 else f"[{error_header(obj)}]"
        elif isinstance(obj, JSBoxed):
            inner = obj.value
            shown = quote(inner) if isinstance(inner, str) else self.format(inner, level)
            base = f"[{obj.cls_name}: {shown}]"

        keys = [key for key in obj.own_keys(symbols=True) if not (isinstance(obj, JSArray) and _is_item(key))]
        if isinstance(obj, JSError):
            keys = [key for key in keys if key not in ("stack", "message", "name")]

        ctor = constructor_name(obj)
        if isinstance(obj, JSArray):
            if obj.cls_name == "Arguments":
                prefix = "[Arguments] "
            else:
                prefix = "" if ctor in ("Array", "") else f"{ctor}({len(obj.items)}) "
            open_, close = "[", "]"
        elif isinstance(obj, JSMap):
            prefix, open_, close = f"Map({len(obj.entries)}) ", "{", "}"
        elif isinstance(obj, JSSet):
            prefix, open_, close = f"Set({len(obj.entries)}) ", "{", "}"
        else:
            if ctor is None:
                prefix = "[Object: null prototype] "
            elif ctor in ("Object", "") or base:
                prefix = ""
            else:
                prefix = f"{ctor} "
            open_, close = "{", "}"

        has_items = isinstance(obj, (JSArray, JSMap, JSSet)) and (
            obj.items if isinstance(obj, JSArray) else obj.entries
        )
        if base and not keys:
            return base
        if not keys and not has_items:
            return f"{prefix}{open_}{close}"
        if level > self.depth:
            if isinstance(obj, JSArray):
                return "[Array]"
            return base or f"[{ctor or 'Object'}]"

        self.stack.append(id(obj))
        try:
            entries: list[str] = []
            truncated = False
            if isinstance(obj, JSArray):
                entries, truncated = self._items(obj, level)
            elif isinstance(obj, JSMap):
                for key, value in obj.entries.values():
                    entries.append(f"{self.format(key, level + 1)} => {self.format(value, level + 1)}")
            elif isinstance(obj, JSSet):
                for value in obj.entries.values():
                    entries.append(self.format(value, level + 1))
            entries.extend(self._prop(obj, key, level) for key in keys)
        finally:
            self.stack.pop()
        if base:
            prefix = base + " "
        indent = level * 2
        count = len(entries)
        if isinstance(obj, JSArray) and count > 6:
            numeric = not keys and not any(obj.holes)
            numeric = numeric and all(isinstance(item, float) for item in obj.items[:MAX_ARRAY_ITEMS])
            entries = _group(entries, indent, numeric, truncated)
        return self._reduce(prefix, open_, close, entries, indent, grouped=len(entries) != count)

    def _items(self, arr: JSArray, level: int) -> tuple[list[str], bool]:
        entries: list[str] = []
        idx, size = 0, len(arr.items)
        while idx < size and len(entries) < MAX_ARRAY_ITEMS:
            if arr.is_hole(idx):
                end = arr.holes.find(0, idx)
                end = size if end < 0 else min(end, size)
                run = end - idx
                entries.append(f"<{run} empty item{'s' if run > 1 else ''}>")
                idx = end
            else:
                entries.append(self.format(arr.items[idx], level + 1))
                idx += 1
        if idx < size:
            rest = size - idx
            entries.append(f"... {rest} more item{'s' if rest > 1 else ''}")
        return entries, idx < size

    def _reduce(
        self, prefix: str, open_: str, close: str, entries: list[str], indent: int, grouped: bool = False
    ) -> str:
        if not grouped:
            start = len(entries) + indent + len(prefix) + len(open_) + 10
            total = start + len(entries) + sum(len(entry) for entry in entries)
            joined = ", ".join(entries)
            if total <= BREAK_LENGTH and "\n" not in joined:
                return f"{prefix}{open_} {joined} {close}"
        pad = "\n" + " " * indent
        body = f",{pad}  ".join(entries)
        return f"{prefix}{open_}{pad}  {body}{pad}{close}"


def _group(entries: list[str], indent: int, numeric: bool, truncated: bool) -> list[str]:
    """Lay short array items out in aligned columns, several per line."""
    data = entries[:-1] if truncated else list(entries)
    widths = [len(entry) for entry in data]
    total = sum(widths) + 2 * len(widths)
    longest = max(widths)
    actual = longest + 2
    if not (actual * 3 + indent < BREAK_LENGTH and (total / actual > 5 or longest <= 6)):
        return entries
    bias = math.sqrt(actual - total / len(entries))
    biased = max(actual - 3 - bias, 1)
    columns = min(
        round(math.sqrt(2.5 * biased * len(data)) / biased),
        (BREAK_LENGTH - indent) // actual,
        12,
        15,
    )
    if columns <= 1:
        return entries
    column_widths = [max(widths[idx::columns]) + 2 for idx in range(columns)]
    rows: list[str] = []
    for start in range(0, len(data), columns):
        cells = data[start : start + columns]
        line = ""
        for offset, cell in enumerate(cells[:-1]):
            text = f"{cell}, "
            line += text.rjust(column_widths[offset]) if numeric else text.ljust(column_widths[offset])
        last = cells[-1]
        line += last.rjust(column_widths[len(cells) - 1] - 2) if numeric else last
        rows.append(line)
    if truncated:
        rows.append(entries[-1])
    return rows


def _is_item(key: object) -> bool:
    return isinstance(key, str) and key.isdigit()


def inspect(value: Any, depth: int = DEFAULT_DEPTH) -> str:
    return _Inspector(depth).render(value)


def display(value: Any) -> str:
    """Render one console argument: strings print raw, everything else inspected."""
    if isinstance(value, str):
        return value
    return inspect(value)


def format_console(args: list[Any], interp: Any = None) -> str:
    """Join console arguments, applying printf-style directives in a leading string."""
    if not args:
        return ""
    rest = list(args[1:])
    first = args[0]
    if isinstance(first, str) and "%" in first and rest:

        def substitute(match: re.Match[str]) -> str:
            directive = match.group(0)
            if directive == "%%":
                return "%"
            if not rest:
                return directive
            value = rest.pop(0)
            if directive == "%s":
                return value if isinstance(value, str) else inspect(value, depth=1)
            if directive in ("%d", "%i"):
                if isinstance(value, JSObject):
                    return "NaN"
                num = to_number(value, interp)
                if directive == "%i" and math.isfinite(num):
                    num = float(math.trunc(num))
                return format_number(num)
            if directive == "%f":
                return format_number(to_number(value, interp))
            if directive == "%c":
                return ""
            return inspect(value, depth=4 if directive == "%O" else DEFAULT_DEPTH)

        first = _FORMAT_RE.sub(substitute, first)
        return " ".join([first, *(display(value) for value in rest)])
    return " ".join(display(value) for value in args)


__all__ = ["display", "error_fields", "error_header", "format_console", "format_number", "inspect", "quote"]
