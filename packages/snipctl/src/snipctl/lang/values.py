"""Runtime values of the snippet language and its coercion tables.

Primitive values map onto Python as follows: numbers are always ``float``,
strings are ``str``, booleans are ``bool``, and the two empty values are the
``UNDEFINED`` and ``NULL`` sentinels. Everything else is a ``JSObject``.

Coercion table (the abstract operations every operator goes through):

=============  ===========  ==============  ==================  =========
value          ToBoolean    ToNumber        ToString            typeof
=============  ===========  ==============  ==================  =========
undefined      false        NaN             "undefined"         undefined
null           false        0               "null"              object
true / false   itself       1 / 0           "true" / "false"    boolean
number         0/NaN false  itself          shortest round-trip number
string         "" false     parsed or NaN   itself              string
object         true         ToPrimitive     ToPrimitive         object
function       true         ToPrimitive     ToPrimitive         function
=============  ===========  ==============  ==================  =========

ToPrimitive calls ``valueOf`` then ``toString`` (``toString`` first for the
string hint) and throws ``TypeError`` when neither yields a primitive.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional


class _Undefined:
    __slots__ = ()

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


class _Null:
    __slots__ = ()

    def __repr__(self) -> str:
        return "null"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()
NULL = _Null()
MISSING = object()

MAX_STRING_LENGTH = 1 << 26
MAX_ARRAY_LENGTH = 1 << 24

_ASTRAL_RE = re.compile("[\U00010000-\U0010ffff]")
_SURROGATE_RE = re.compile("[\ud800-\udfff]")


def _surrogate_pair(match: re.Match[str]) -> str:
    code = ord(match.group(0)) - 0x10000
    return chr(0xD800 + (code >> 10)) + chr(0xDC00 + (code & 0x3FF))


def to_units(text: str) -> str:
    """Spell characters outside the BMP as surrogate pairs.

    Strings inside the runtime are sequences of UTF-16 code units, so
    ``length`` and indices agree with the language rather than with Python.
    """
    if _ASTRAL_RE.search(text) is None:
        return text
    return _ASTRAL_RE.sub(_surrogate_pair, text)


def from_units(text: str) -> str:
    """Join surrogate pairs back into characters; lone surrogates become U+FFFD."""
    if _SURROGATE_RE.search(text) is None:
        return text
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")


def is_high_surrogate(char: str) -> bool:
    return "\ud800" <= char <= "\udbff"


def is_low_surrogate(char: str) -> bool:
    return "\udc00" <= char <= "\udfff"


def code_points(text: str) -> Iterator[str]:
    """Iterate a code-unit string by code point, keeping surrogate pairs together."""
    idx, size = 0, len(text)
    while idx < size:
        if is_high_surrogate(text[idx]) and idx + 1 < size and is_low_surrogate(text[idx + 1]):
            yield text[idx : idx + 2]
            idx += 2
        else:
            yield text[idx]
            idx += 1


class Symbol:
    __slots__ = ("description",)

    def __init__(self, description: str = "") -> None:
        self.description = description

    def __repr__(self) -> str:
        return f"Symbol({self.description})"


SYMBOL_ITERATOR = Symbol("Symbol.iterator")


class JSThrow(Exception):
    """A language-level throw travelling through the interpreter."""

    def __init__(self, value: Any, line: int = 0) -> None:
        super().__init__(value)
        self.value = value
        self.line = line


@dataclass
class Accessor:
    get: Optional["JSFunction"] = None
    set: Optional["JSFunction"] = None


_INDEX_RE = re.compile(r"^(?:0|[1-9]\d*)$")


def is_index(key: object) -> bool:
    return isinstance(key, str) and len(key) < 16 and _INDEX_RE.match(key) is not None


class JSObject:
    cls_name = "Object"

    def __init__(self, proto: Optional["JSObject"] = None) -> None:
        self.proto = proto
        self.props: dict[object, Any] = {}
        self.hidden: set[object] = set()
        self.frozen = False
        self.extensible = True

    def get_slot(self, key: object) -> Any:
        return self.props.get(key, MISSING)

    def set_slot(self, key: object, value: Any) -> None:
        self.props[key] = value

    def has_own(self, key: object) -> bool:
        return key in self.props

    def delete_slot(self, key: object) -> bool:
        if self.frozen:
            return False
        self.props.pop(key, None)
        self.hidden.discard(key)
        return True

    def define(self, key: object, value: Any, enumerable: bool = True) -> None:
        self.props[key] = value
        if enumerable:
            self.hidden.discard(key)
        else:
            self.hidden.add(key)

    def own_keys(self, include_hidden: bool = False, symbols: bool = False) -> list[object]:
        keys = [key for key in self.props if include_hidden or key not in self.hidden]
        indices = sorted((key for key in keys if is_index(key)), key=lambda key: int(str(key)))
        names = [key for key in keys if isinstance(key, str) and not is_index(key)]
        extra = [key for key in keys if isinstance(key, Symbol)] if symbols else []
        return [*indices, *names, *extra]

    def lookup(self, key: object) -> tuple[Optional["JSObject"], Any]:
        obj: Optional[JSObject] = self
        while obj is not None:
            slot = obj.get_slot(key)
            if slot is not MISSING:
                return obj, slot
            obj = obj.proto
        return None, MISSING

    def has_property(self, key: object) -> bool:
        return self.lookup(key)[0] is not None


class JSArray(JSObject):
    """Array backed by a dense list.

    Holes (elisions, ``Array(n)``, deleted indices and gaps left by writing past
    the end) hold ``UNDEFINED`` in ``items`` and are flagged in the ``holes``
    mask; an index at or past the end of the mask is never a hole.
    """

    cls_name = "Array"

    def __init__(self, items: Optional[list[Any]] = None, proto: Optional[JSObject] = None) -> None:
        super().__init__(proto)
        self.items: list[Any] = list(items or [])
        self.holes = bytearray()

    def is_hole(self, idx: int) -> bool:
        return idx < len(self.holes) and self.holes[idx] == 1

    def mark_holes(self, start: int, end: int) -> None:
        if end <= start:
            return
        if len(self.holes) < end:
            self.holes.extend(bytes(end - len(self.holes)))
        self.holes[start:end] = b"\x01" * (end - start)

    def clear_holes(self) -> None:
        self.holes = bytearray()

    def get_slot(self, key: object) -> Any:
        if key == "length":
            return float(len(self.items))
        if is_index(key):
            idx = int(str(key))
            return self.items[idx] if idx < len(self.items) and not self.is_hole(idx) else MISSING
        return super().get_slot(key)

    def set_slot(self, key: object, value: Any) -> None:
        if key == "length":
            size = int(value)
            old = len(self.items)
            if size < old:
                del self.items[size:]
                del self.holes[size:]
            else:
                self.items.extend([UNDEFINED] * (size - old))
                self.mark_holes(old, size)
            return
        if is_index(key):
            idx = int(str(key))
            old = len(self.items)
            if idx >= old:
                self.items.extend([UNDEFINED] * (idx + 1 - old))
                self.mark_holes(old, idx)
            self.items[idx] = value
            if idx < len(self.holes):
                self.holes[idx] = 0
            return
        super().set_slot(key, value)

    def has_own(self, key: object) -> bool:
        if key == "length":
            return True
        if is_index(key):
            idx = int(str(key))
            return idx < len(self.items) and not self.is_hole(idx)
        return super().has_own(key)

    def delete_slot(self, key: object) -> bool:
        if self.frozen:
            return False
        if is_index(key):
            idx = int(str(key))
            if idx < len(self.items):
                self.items[idx] = UNDEFINED
                self.mark_holes(idx, idx + 1)
            return True
        return super().delete_slot(key)

    def define(self, key: object, value: Any, enumerable: bool = True) -> None:
        if key == "length" or is_index(key):
            self.set_slot(key, value)
            return
        super().define(key, value, enumerable)

    def own_keys(self, include_hidden: bool = False, symbols: bool = False) -> list[object]:
        keys: list[object] = [str(idx) for idx in range(len(self.items)) if not self.is_hole(idx)]
        if include_hidden:
            keys.append("length")
        return keys + super().own_keys(include_hidden, symbols)


class JSArguments(JSArray):
    cls_name = "Arguments"


class JSIterator(JSObject):
    """Iterator object backed by a Python iterator (array, map and string iterators)."""

    cls_name = "Iterator"

    def __init__(self, source: Iterator[Any], proto: Optional[JSObject] = None) -> None:
        super().__init__(proto)
        self.source = source


class JSFunction(JSObject):
    cls_name = "Function"
    is_class = False

    def __init__(self, name: str = "", length: int = 0, proto: Optional[JSObject] = None) -> None:
        super().__init__(proto)
        self.name = name
        self.define("name", name, enumerable=False)
        self.define("length", float(length), enumerable=False)

    @property
    def can_construct(self) -> bool:
        return False


NativeImpl = Callable[[Any, Any, list[Any]], Any]


class NativeFunction(JSFunction):
    """A host-implemented function.

    ``impl(interp, this, args)`` returns a language value. ``ctor`` (when set)
    implements ``new`` as ``ctor(interp, args, new_target)``. A function with a
    ``capability`` is gated by the run's allow-list at call time.
    """

    def __init__(
        self,
        name: str,
        impl: NativeImpl,
        length: int = 0,
        proto: Optional[JSObject] = None,
        ctor: Optional[Callable[[Any, list[Any], Any], Any]] = None,
        capability: str = "",
    ) -> None:
        super().__init__(name, length, proto)
        self.impl = impl
        self.ctor = ctor
        self.capability = capability

    @property
    def can_construct(self) -> bool:
        return self.ctor is not None


class JSError(JSObject):
    cls_name = "Error"


class JSMap(JSObject):
    cls_name = "Map"

    def __init__(self, proto: Optional[JSObject] = None) -> None:
        super().__init__(proto)
        self.entries: dict[object, tuple[Any, Any]] = {}


class JSSet(JSObject):
    cls_name = "Set"

    def __init__(self, proto: Optional[JSObject] = None) -> None:
        super().__init__(proto)
        self.entries: dict[object, Any] = {}


class JSBoxed(JSObject):
    """Wrapper object produced by ``new Number(...)`` and friends."""

    def __init__(self, value: Any, proto: Optional[JSObject] = None) -> None:
        super().__init__(proto)
        self.value = value

    @property
    def cls_name(self) -> str:  # type: ignore[override]
        return {bool: "Boolean", float: "Number", str: "String"}[type(self.value)]


def map_key(value: Any) -> object:
    """Hashable SameValueZero key for Map/Set membership."""
    if isinstance(value, float):
        if math.isnan(value):
            return ("nan",)
        return ("num", value + 0.0)
    if isinstance(value, (JSObject, Symbol, _Undefined, _Null)):
        return ("ref", id(value))
    return (type(value).__name__, value)


# -- type predicates ----------------------------------------------------------


def is_primitive(value: Any) -> bool:
    return not isinstance(value, JSObject)


def is_nullish(value: Any) -> bool:
    return value is UNDEFINED or value is NULL


def is_callable(value: Any) -> bool:
    return isinstance(value, JSFunction)


def typeof(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is NULL:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Symbol):
        return "symbol"
    if isinstance(value, JSFunction):
        return "function"
    return "object"


# -- number formatting and parsing ---------------------------------------------


def number_to_string(value: float, radix: int = 10) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if radix != 10:
        return _radix_string(value, radix)
    if value.is_integer() and abs(value) < 2**53:
        return str(int(value))
    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0") or "0"
    exponent = int(exponent) + len("".join(str(d) for d in digit_tuple)) - len(digits)
    k = len(digits)
    point = exponent + k
    if k <= point <= 21:
        return sign + digits + "0" * (point - k)
    if 0 < point <= 21:
        return sign + digits[:point] + "." + digits[point:]
    if -6 < point <= 0:
        return sign + "0." + "0" * (-point) + digits
    e = point - 1
    mark = "+" if e >= 0 else "-"
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{mantissa}e{mark}{abs(e)}"


def _radix_string(value: float, radix: int) -> str:
    chars = "0123456789abcdefghijklmnopqrstuvwxyz"
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole = int(value)
    frac = value - whole
    out = ""
    while True:
        whole, rem = divmod(whole, radix)
        out = chars[rem] + out
        if whole == 0:
            break
    if frac:
        out += "."
        for _ in range(20):
            frac *= radix
            digit = int(frac)
            out += chars[digit]
            frac -= digit
            if not frac:
                break
    return sign + out


_JS_WHITESPACE = " \t\n\r\v\f\xa0\ufeff\u2028\u2029"
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)$")


def string_to_number(text: str) -> float:
    text = text.strip(_JS_WHITESPACE)
    if not text:
        return 0.0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    lowered = text[:2].lower()
    bases = {"0x": 16, "0o": 8, "0b": 2}
    if lowered in bases:
        try:
            return float(int(text[2:], bases[lowered]))
        except ValueError:
            return math.nan
    if _DECIMAL_RE.match(text):
        return float(text)
    return math.nan


def to_int32(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        return 0
    num = int(value) & 0xFFFFFFFF
    return num - 0x100000000 if num >= 0x80000000 else num


def to_uint32(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        return 0
    return int(value) & 0xFFFFFFFF


def to_integer(value: float) -> float:
    if math.isnan(value):
        return 0.0
    if math.isinf(value):
        return value
    return float(math.trunc(value))


# -- abstract operations -------------------------------------------------------


def to_boolean(value: Any) -> bool:
    if value is UNDEFINED or value is NULL:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return bool(value)
    return True


def to_primitive(value: Any, hint: str = "default", interp: Any = None) -> Any:
    if not isinstance(value, JSObject):
        return value
    if isinstance(value, JSBoxed):
        return value.value
    order = ("toString", "valueOf") if hint == "string" else ("valueOf", "toString")
    for name in order:
        method = interp.get(value, name)
        if isinstance(method, JSFunction):
            result = interp.call(method, value, [])
            if not isinstance(result, JSObject):
                return result
    interp.throw("TypeError", "Cannot convert object to primitive value")
    return UNDEFINED


def to_number(value: Any, interp: Any = None) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, float):
        return value
    if isinstance(value, int):
        return float(value)
    if isinstance(value, str):
        return string_to_number(value)
    if value is UNDEFINED:
        return math.nan
    if value is NULL:
        return 0.0
    if isinstance(value, Symbol):
        interp.throw("TypeError", "Cannot convert a Symbol value to a number")
    return to_number(to_primitive(value, "number", interp), interp)


def to_string(value: Any, interp: Any = None) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return number_to_string(value)
    if isinstance(value, int):
        return number_to_string(float(value))
    if value is UNDEFINED:
        return "undefined"
    if value is NULL:
        return "null"
    if isinstance(value, Symbol):
        interp.throw("TypeError", "Cannot convert a Symbol value to a string")
    return to_string(to_primitive(value, "string", interp), interp)


def to_property_key(value: Any, interp: Any = None) -> object:
    if isinstance(value, Symbol):
        return value
    if isinstance(value, float) and value.is_integer() and 0 <= value < 1e15:
        return str(int(value))
    return to_string(to_primitive(value, "string", interp), interp)


def strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, float) and isinstance(right, float):
        return left == right
    if type(left) is not type(right):
        return False
    if isinstance(left, (str, bool)):
        return left == right
    return left is right


def same_value_zero(left: Any, right: Any) -> bool:
    if isinstance(left, float) and isinstance(right, float) and math.isnan(left) and math.isnan(right):
        return True
    return strict_equals(left, right)


def loose_equals(left: Any, right: Any, interp: Any = None) -> bool:
    if type(left) is type(right) or (isinstance(left, JSObject) and isinstance(right, JSObject)):
        return strict_equals(left, right)
    if is_nullish(left) and is_nullish(right):
        return True
    if is_nullish(left) or is_nullish(right):
        return False
    if isinstance(left, float) and isinstance(right, str):
        return left == string_to_number(right)
    if isinstance(left, str) and isinstance(right, float):
        return string_to_number(left) == right
    if isinstance(left, bool):
        return loose_equals(to_number(left), right, interp)
    if isinstance(right, bool):
        return loose_equals(left, to_number(right), interp)
    if isinstance(left, JSObject) and not isinstance(right, JSObject):
        return loose_equals(to_primitive(left, "default", interp), right, interp)
    if isinstance(right, JSObject) and not isinstance(left, JSObject):
        return loose_equals(left, to_primitive(right, "default", interp), interp)
    return False


def add(left: Any, right: Any, interp: Any = None) -> Any:
    lprim = to_primitive(left, "default", interp)
    rprim = to_primitive(right, "default", interp)
    if isinstance(lprim, str) or isinstance(rprim, str):
        ltext, rtext = to_string(lprim, interp), to_string(rprim, interp)
        interp.check_string_length(len(ltext) + len(rtext))
        return ltext + rtext
    return to_number(lprim, interp) + to_number(rprim, interp)


def divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        negative = (left < 0) != (math.copysign(1.0, right) < 0)
        return -math.inf if negative else math.inf
    return left / right


def remainder(left: float, right: float) -> float:
    if right == 0 or math.isnan(left) or math.isnan(right) or math.isinf(left):
        return math.nan
    if math.isinf(right):
        return left
    return math.fmod(left, right)


def power(base: float, exponent: float) -> float:
    if math.isnan(exponent):
        return math.nan
    if exponent == 0:
        return 1.0
    if abs(base) == 1 and math.isinf(exponent):
        return math.nan
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf if base > 0 or exponent % 2 == 0 else -math.inf
    except ValueError:
        if base == 0:
            odd = exponent.is_integer() and exponent % 2 == 1
            return -math.inf if odd and math.copysign(1.0, base) < 0 else math.inf
        return math.nan


def compare(left: Any, right: Any, interp: Any = None) -> Optional[bool]:
    """Abstract relational comparison ``left < right``; None means undefined (NaN)."""
    lprim = to_primitive(left, "number", interp)
    rprim = to_primitive(right, "number", interp)
    if isinstance(lprim, str) and isinstance(rprim, str):
        return lprim < rprim
    lnum = to_number(lprim, interp)
    rnum = to_number(rprim, interp)
    if math.isnan(lnum) or math.isnan(rnum):
        return None
    return lnum < rnum


__all__ = [
    "Accessor",
    "JSArguments",
    "JSArray",
    "JSBoxed",
    "JSError",
    "JSFunction",
    "JSIterator",
    "JSMap",
    "JSObject",
    "JSSet",
    "JSThrow",
    "MISSING",
    "NULL",
    "NativeFunction",
    "SYMBOL_ITERATOR",
    "Symbol",
    "UNDEFINED",
    "add",
    "compare",
    "loose_equals",
    "number_to_string",
    "same_value_zero",
    "strict_equals",
    "string_to_number",
    "to_boolean",
    "to_number",
    "to_primitive",
    "to_property_key",
    "to_string",
    "typeof",
]
