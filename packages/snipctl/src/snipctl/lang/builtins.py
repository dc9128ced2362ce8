"""Global objects of the snippet language.

A ``Realm`` is one global environment: intrinsic prototypes, the global
object and the global scope that carried contexts keep alive across blocks.
Host primitives that reach outside the sandbox are installed but gated: a
native function with a ``capability`` checks the run's allow-list when it is
called, and names listed in ``Realm.guarded`` check it when they are read.
"""

from __future__ import annotations

import json
import math
import random
import re
import time
import unicodedata
from decimal import ROUND_HALF_UP, Decimal, localcontext
from functools import cmp_to_key
from typing import Any, Callable, Iterator, Optional

from .inspect import error_header, format_console, inspect
from .scope import Frame, Scope
from .values import (
    MAX_ARRAY_LENGTH,
    NULL,
    SYMBOL_ITERATOR,
    UNDEFINED,
    Accessor,
    JSArguments,
    JSArray,
    JSBoxed,
    JSError,
    JSFunction,
    JSIterator,
    JSMap,
    JSObject,
    JSSet,
    JSThrow,
    NativeFunction,
    Symbol,
    code_points,
    from_units,
    is_high_surrogate,
    is_low_surrogate,
    is_nullish,
    loose_equals,
    map_key,
    number_to_string,
    same_value_zero,
    strict_equals,
    string_to_number,
    to_boolean,
    to_integer,
    to_number,
    to_primitive,
    to_property_key,
    to_string,
    to_uint32,
    to_units,
    typeof,
)

ERROR_NAMES = ("Error", "TypeError", "RangeError", "SyntaxError", "ReferenceError", "EvalError", "URIError")


def _arg(args: list[Any], idx: int) -> Any:
    return args[idx] if idx < len(args) else UNDEFINED


def _num(interp: Any, args: list[Any], idx: int) -> float:
    return to_number(_arg(args, idx), interp)


def _relative(interp: Any, value: Any, length: int, default: int) -> int:
    if value is UNDEFINED:
        return default
    num = to_integer(to_number(value, interp))
    if num < 0:
        return int(max(0.0, length + num))
    return int(min(num, float(length)))


def _callback(interp: Any, value: Any) -> JSFunction:
    if not isinstance(value, JSFunction):
        interp.throw("TypeError", f"{inspect(value, depth=0)} is not a function")
    return value


def _this_array(interp: Any, this: Any, method: str) -> JSArray:
    if not isinstance(this, JSArray):
        interp.throw("TypeError", f"Array.prototype.{method} called on incompatible receiver")
    return this


def _this_string(interp: Any, this: Any, method: str) -> str:
    if is_nullish(this):
        interp.throw("TypeError", f"String.prototype.{method} called on null or undefined")
    return to_string(this, interp)


def _this_number(interp: Any, this: Any, method: str) -> float:
    if isinstance(this, JSBoxed) and isinstance(this.value, float):
        return this.value
    if not isinstance(this, float) or isinstance(this, bool):
        interp.throw("TypeError", f"Number.prototype.{method} requires that 'this' be a Number")
    return this


def _math(fn: Callable[..., float]) -> Callable[..., float]:
    def safe(*values: float) -> float:
        try:
            return float(fn(*values))
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf

    return safe


def _round(value: float) -> float:
    if math.isnan(value) or math.isinf(value) or value.is_integer():
        return value
    result = float(math.floor(value + 0.5))
    return -0.0 if result == 0 and value < 0 else result


def _to_fixed(value: float, digits: int) -> str:
    if math.isnan(value):
        return "NaN"
    if abs(value) >= 1e21 or math.isinf(value):
        return number_to_string(value)
    with localcontext() as ctx:
        ctx.prec = 200
        text = format(Decimal(abs(value)).quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP), "f")
    negative = value < 0 and Decimal(text) != 0
    return ("-" if negative else "") + text


def _to_precision(value: float, precision: int) -> str:
    if math.isnan(value) or math.isinf(value):
        return number_to_string(value)
    if value == 0:
        return "0" if precision == 1 else "0." + "0" * (precision - 1)
    with localcontext() as ctx:
        ctx.prec = 200
        return _precision_digits(value, precision)


def _precision_digits(value: float, precision: int) -> str:
    rounded = Decimal(abs(value)).quantize(Decimal(1).scaleb(Decimal(abs(value)).adjusted() - precision + 1), ROUND_HALF_UP)
    exponent = rounded.adjusted()
    sign = "-" if value < 0 else ""
    if exponent < -6 or exponent >= precision:
        digits = format(rounded.scaleb(-exponent).quantize(Decimal(1).scaleb(-(precision - 1)), ROUND_HALF_UP), "f")
        mark = "+" if exponent >= 0 else "-"
        return f"{sign}{digits}e{mark}{abs(exponent)}"
    decimals = max(precision - 1 - exponent, 0)
    return sign + format(rounded.quantize(Decimal(1).scaleb(-decimals), ROUND_HALF_UP), "f")


def _locale_number(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        return number_to_string(value)
    text = f"{Decimal(abs(value)).quantize(Decimal('0.001'), ROUND_HALF_UP):,.3f}".rstrip("0").rstrip(".")
    return ("-" if value < 0 and text != "0" else "") + text


_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)")


def parse_int(text: str, radix: int = 0) -> float:
    text = text.strip()
    sign = 1.0
    if text and text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if radix in (0, 16) and text[:2].lower() == "0x":
        text = text[2:]
        radix = 16
    radix = radix or 10
    if radix < 2 or radix > 36:
        return math.nan
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"[:radix]
    end = 0
    while end < len(text) and text[end].lower() in alphabet:
        end += 1
    if end == 0:
        return math.nan
    return sign * float(int(text[:end], radix))


def parse_float(text: str) -> float:
    match = _FLOAT_PREFIX_RE.match(text.strip())
    if match is None:
        return math.nan
    return string_to_number(match.group(0))


class _Pairs(list):
    pass


def _reject_constant(name: str) -> Any:
    raise json.JSONDecodeError(f"Unexpected token {name[0]}", name, 0)


class Realm:
    def __init__(self, seed: int = 0) -> None:
        self.seed = seed
        self.random = random.Random(seed)
        self.object_proto = JSObject(None)
        self.function_proto = JSObject(self.object_proto)
        self.array_proto = JSObject(self.object_proto)
        self.string_proto = JSObject(self.object_proto)
        self.number_proto = JSObject(self.object_proto)
        self.boolean_proto = JSObject(self.object_proto)
        self.symbol_proto = JSObject(self.object_proto)
        self.iterator_proto = JSObject(self.object_proto)
        self.map_proto = JSObject(self.object_proto)
        self.set_proto = JSObject(self.object_proto)
        self.date_proto = JSObject(self.object_proto)
        self.error_protos: dict[str, JSObject] = {}
        self.global_object = JSObject(self.object_proto)
        self.global_scope = Scope(None, Frame(this=JSObject(self.object_proto)))
        self.guarded: dict[str, str] = {"process": "process"}
        for install in (
            _install_object,
            _install_function,
            _install_array,
            _install_string,
            _install_number,
            _install_boolean_symbol,
            _install_iterators,
            _install_errors,
            _install_math,
            _install_json,
            _install_collections,
            _install_console,
            _install_globals,
            _install_host,
        ):
            install(self)

    # -- factories -------------------------------------------------------------

    def object(self) -> JSObject:
        return JSObject(self.object_proto)

    def array(self, items: Any = ()) -> JSArray:
        return JSArray(list(items), self.array_proto)

    def arguments(self, args: list[Any]) -> JSArguments:
        return JSArguments(list(args), self.object_proto)

    def iterator(self, source: Iterator[Any]) -> JSIterator:
        return JSIterator(source, self.iterator_proto)

    def function(
        self,
        name: str,
        impl: Callable[[Any, Any, list[Any]], Any],
        length: int = 0,
        ctor: Optional[Callable[[Any, list[Any], Any], Any]] = None,
        capability: str = "",
    ) -> NativeFunction:
        return NativeFunction(name, impl, length, self.function_proto, ctor, capability)

    def method(self, target: JSObject, name: object, length: int = 0, capability: str = "") -> Callable:
        def register(impl: Callable[[Any, Any, list[Any]], Any]) -> Callable[[Any, Any, list[Any]], Any]:
            label = f"[{name.description}]" if isinstance(name, Symbol) else str(name)
            target.define(name, self.function(label, impl, length, capability=capability), enumerable=False)
            return impl

        return register

    def getter(self, target: JSObject, name: str) -> Callable:
        def register(impl: Callable[[Any, Any, list[Any]], Any]) -> Callable[[Any, Any, list[Any]], Any]:
            target.define(name, Accessor(get=self.function(f"get {name}", impl)), enumerable=False)
            return impl

        return register

    def constructor(
        self,
        name: str,
        proto: JSObject,
        impl: Callable[[Any, Any, list[Any]], Any],
        ctor: Optional[Callable[[Any, list[Any], Any], Any]],
        length: int = 0,
    ) -> NativeFunction:
        fn = self.function(name, impl, length, ctor)
        fn.define("prototype", proto, enumerable=False)
        proto.define("constructor", fn, enumerable=False)
        self.global_object.define(name, fn, enumerable=False)
        return fn

    def make_error(self, name: str, message: str, proto: Optional[JSObject] = None) -> JSError:
        err = JSError(proto or self.error_protos.get(name) or self.error_protos["Error"])
        if message:
            err.define("message", message, enumerable=False)
        err.define("stack", error_header(err), enumerable=False)
        return err

    def prototype_of(self, interp: Any, new_target: Any, fallback: JSObject) -> JSObject:
        proto = interp.get_property(new_target, "prototype")
        return proto if isinstance(proto, JSObject) else fallback


# -- Object -------------------------------------------------------------------


def _to_object(interp: Any, value: Any) -> JSObject:
    if is_nullish(value):
        interp.throw("TypeError", "Cannot convert undefined or null to object")
    if isinstance(value, JSObject):
        return value
    if isinstance(value, str):
        return interp.realm.array(list(value))
    return interp.realm.object()


def _install_object(realm: Realm) -> None:
    proto = realm.object_proto

    def object_call(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        return value if isinstance(value, JSObject) else interp.realm.object()

    obj = realm.constructor("Object", proto, object_call, lambda interp, args, nt: object_call(interp, UNDEFINED, args), 1)

    @realm.method(obj, "keys", 1)
    def keys(interp: Any, this: Any, args: list[Any]) -> Any:
        source = _to_object(interp, _arg(args, 0))
        return interp.realm.array([key for key in source.own_keys() if isinstance(key, str)])

    @realm.method(obj, "values", 1)
    def values(interp: Any, this: Any, args: list[Any]) -> Any:
        source = _to_object(interp, _arg(args, 0))
        return interp.realm.array([interp.get_property(source, key) for key in source.own_keys()])

    @realm.method(obj, "entries", 1)
    def entries(interp: Any, this: Any, args: list[Any]) -> Any:
        source = _to_object(interp, _arg(args, 0))
        make = interp.realm.array
        return make([make([key, interp.get_property(source, key)]) for key in source.own_keys()])

    @realm.method(obj, "assign", 2)
    def assign(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _to_object(interp, _arg(args, 0))
        for source in args[1:]:
            if isinstance(source, JSObject):
                for key in source.own_keys(symbols=True):
                    interp.set_property(target, key, interp.get_property(source, key))
            elif isinstance(source, str):
                for idx, char in enumerate(source):
                    interp.set_property(target, str(idx), char)
        return target

    @realm.method(obj, "freeze", 1)
    def freeze(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _arg(args, 0)
        if isinstance(target, JSObject):
            target.frozen = True
            target.extensible = False
        return target

    @realm.method(obj, "isFrozen", 1)
    def is_frozen(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _arg(args, 0)
        return not isinstance(target, JSObject) or target.frozen

    @realm.method(obj, "preventExtensions", 1)
    def prevent_extensions(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _arg(args, 0)
        if isinstance(target, JSObject):
            target.extensible = False
        return target

    @realm.method(obj, "create", 2)
    def create(interp: Any, this: Any, args: list[Any]) -> Any:
        parent = _arg(args, 0)
        if not isinstance(parent, JSObject) and parent is not NULL:
            interp.throw("TypeError", f"Object prototype may only be an Object or null: {to_string(parent, interp)}")
        made = JSObject(parent if isinstance(parent, JSObject) else None)
        props = _arg(args, 1)
        if isinstance(props, JSObject):
            for key in props.own_keys():
                _define_from_descriptor(interp, made, key, interp.get_property(props, key))
        return made

    @realm.method(obj, "getPrototypeOf", 1)
    def get_prototype_of(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _arg(args, 0)
        if isinstance(target, JSObject):
            return target.proto if target.proto is not None else NULL
        holders = {str: interp.realm.string_proto, float: interp.realm.number_proto, bool: interp.realm.boolean_proto}
        holder = holders.get(type(target))
        if holder is None:
            _to_object(interp, target)
            return NULL
        return holder

    @realm.method(obj, "setPrototypeOf", 2)
    def set_prototype_of(interp: Any, this: Any, args: list[Any]) -> Any:
        target, parent = _arg(args, 0), _arg(args, 1)
        if isinstance(target, JSObject):
            target.proto = parent if isinstance(parent, JSObject) else None
        return target

    @realm.method(obj, "defineProperty", 3)
    def define_property(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _arg(args, 0)
        if not isinstance(target, JSObject):
            interp.throw("TypeError", "Object.defineProperty called on non-object")
        _define_from_descriptor(interp, target, to_property_key(_arg(args, 1), interp), _arg(args, 2))
        return target

    @realm.method(obj, "fromEntries", 1)
    def from_entries(interp: Any, this: Any, args: list[Any]) -> Any:
        made = interp.realm.object()
        for entry in interp.iterate(_arg(args, 0)):
            key = to_property_key(interp.get_property(entry, "0"), interp)
            made.define(key, interp.get_property(entry, "1"))
        return made

    @realm.method(obj, "getOwnPropertyNames", 1)
    def own_property_names(interp: Any, this: Any, args: list[Any]) -> Any:
        source = _to_object(interp, _arg(args, 0))
        return interp.realm.array([key for key in source.own_keys(include_hidden=True) if isinstance(key, str)])

    @realm.method(obj, "is", 2)
    def object_is(interp: Any, this: Any, args: list[Any]) -> Any:
        left, right = _arg(args, 0), _arg(args, 1)
        if isinstance(left, float) and isinstance(right, float) and left == 0 and right == 0:
            return math.copysign(1.0, left) == math.copysign(1.0, right)
        return same_value_zero(left, right)

    @realm.method(obj, "hasOwn", 2)
    def has_own(interp: Any, this: Any, args: list[Any]) -> Any:
        return _to_object(interp, _arg(args, 0)).has_own(to_property_key(_arg(args, 1), interp))

    @realm.method(proto, "hasOwnProperty", 1)
    def has_own_property(interp: Any, this: Any, args: list[Any]) -> Any:
        key = to_property_key(_arg(args, 0), interp)
        if isinstance(this, str):
            return key == "length" or (key.isdigit() and int(key) < len(this)) if isinstance(key, str) else False
        return isinstance(this, JSObject) and this.has_own(key)

    @realm.method(proto, "isPrototypeOf", 1)
    def is_prototype_of(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        node = value.proto if isinstance(value, JSObject) else None
        while node is not None:
            if node is this:
                return True
            node = node.proto
        return False

    @realm.method(proto, "propertyIsEnumerable", 1)
    def property_is_enumerable(interp: Any, this: Any, args: list[Any]) -> Any:
        key = to_property_key(_arg(args, 0), interp)
        return isinstance(this, JSObject) and this.has_own(key) and key not in this.hidden

    @realm.method(proto, "toString")
    def object_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        if this is UNDEFINED:
            return "[object Undefined]"
        if this is NULL:
            return "[object Null]"
        if isinstance(this, JSObject):
            return f"[object {this.cls_name}]"
        return f"[object {typeof(this).capitalize()}]"

    @realm.method(proto, "toLocaleString")
    def object_to_locale_string(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.call(interp.get_property(this, "toString"), this, [])

    @realm.method(proto, "valueOf")
    def value_of(interp: Any, this: Any, args: list[Any]) -> Any:
        return this


def _define_from_descriptor(interp: Any, target: JSObject, key: object, desc: Any) -> None:
    if not isinstance(desc, JSObject):
        interp.throw("TypeError", "Property description must be an object")
    enumerable = to_boolean(interp.get_property(desc, "enumerable"))
    getter = interp.get_property(desc, "get")
    setter = interp.get_property(desc, "set")
    for label, fn in (("Getter", getter), ("Setter", setter)):
        if fn is not UNDEFINED and not isinstance(fn, JSFunction):
            shown = "#<Object>" if isinstance(fn, JSObject) else inspect(fn)
            interp.throw("TypeError", f"{label} must be a function: {shown}")
    if getter is not UNDEFINED or setter is not UNDEFINED:
        if desc.has_property("value") or desc.has_property("writable"):
            interp.throw(
                "TypeError",
                "Invalid property descriptor. Cannot both specify accessors and a value or writable attribute",
            )
        accessor = Accessor(
            get=getter if isinstance(getter, JSFunction) else None,
            set=setter if isinstance(setter, JSFunction) else None,
        )
        target.define(key, accessor, enumerable)
        return
    target.define(key, interp.get_property(desc, "value"), enumerable)


# -- Function -----------------------------------------------------------------


def _install_function(realm: Realm) -> None:
    proto = realm.function_proto

    def function_call(interp: Any, this: Any, args: list[Any]) -> Any:
        interp.throw("EvalError", "Code generation from strings disallowed for this context")

    realm.constructor("Function", proto, function_call, lambda interp, args, nt: function_call(interp, UNDEFINED, args))

    @realm.method(proto, "call", 1)
    def call(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.call(_callback(interp, this), _arg(args, 0), list(args[1:]))

    @realm.method(proto, "apply", 2)
    def apply(interp: Any, this: Any, args: list[Any]) -> Any:
        spread = _arg(args, 1)
        values = [] if is_nullish(spread) else list(interp.iterate(spread))
        return interp.call(_callback(interp, this), _arg(args, 0), values)

    @realm.method(proto, "bind", 1)
    def bind(interp: Any, this: Any, args: list[Any]) -> Any:
        target = _callback(interp, this)
        bound_this = _arg(args, 0)
        preset = list(args[1:])

        def bound_call(inner: Any, _this: Any, more: list[Any]) -> Any:
            return inner.call(target, bound_this, preset + more)

        def bound_construct(inner: Any, more: list[Any], new_target: Any) -> Any:
            return inner.construct(target, preset + more)

        length = max(0, int(to_number(target.get_slot("length"))) - len(preset))
        fn = interp.realm.function(
            f"bound {target.name}", bound_call, length, bound_construct if target.can_construct else None
        )
        fn.target = target  # type: ignore[attr-defined]
        return fn

    @realm.method(proto, "toString")
    def function_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        fn = _callback(interp, this)
        source = getattr(fn, "source", "")
        return source or f"function {fn.name}() {{ [native code] }}"


# -- Array --------------------------------------------------------------------


def _install_array(realm: Realm) -> None:
    proto = realm.array_proto

    def array_call(interp: Any, this: Any, args: list[Any]) -> Any:
        if len(args) == 1 and isinstance(args[0], float):
            size = args[0]
            if size < 0 or not size.is_integer() or size > MAX_ARRAY_LENGTH:
                interp.throw("RangeError", "Invalid array length")
            made = interp.realm.array([UNDEFINED] * int(size))
            made.mark_holes(0, int(size))
            return made
        return interp.realm.array(args)

    def array_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        made = array_call(interp, UNDEFINED, args)
        made.proto = interp.realm.prototype_of(interp, new_target, proto)
        return made

    array = realm.constructor("Array", proto, array_call, array_construct, 1)

    @realm.method(array, "isArray", 1)
    def is_array(interp: Any, this: Any, args: list[Any]) -> Any:
        return isinstance(_arg(args, 0), JSArray) and not isinstance(_arg(args, 0), JSArguments)

    @realm.method(array, "from", 1)
    def array_from(interp: Any, this: Any, args: list[Any]) -> Any:
        source = _arg(args, 0)
        mapper = _arg(args, 1)
        if is_nullish(source):
            interp.throw("TypeError", f"{to_string(source)} is not iterable")
        if isinstance(source, (JSArray, JSIterator, JSMap, JSSet, str)) or (
            isinstance(source, JSObject) and source.has_property(SYMBOL_ITERATOR)
        ):
            items: list[Any] = []
            for item in interp.iterate(source):
                items.append(item)
                interp.check_array_length(len(items))
        elif isinstance(source, JSObject):
            size = max(to_integer(to_number(interp.get_property(source, "length"), interp)), 0.0)
            interp.check_array_length(size)
            items = [interp.get_property(source, str(idx)) for idx in range(int(size))]
        else:
            items = []
        if mapper is not UNDEFINED:
            fn = _callback(interp, mapper)
            items = [interp.call(fn, UNDEFINED, [item, float(idx)]) for idx, item in enumerate(items)]
        return interp.realm.array(items)

    @realm.method(array, "of")
    def array_of(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.realm.array(args)

    @realm.method(proto, "push", 1)
    def push(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "push")
        if arr.frozen:
            interp.throw("TypeError", f"Cannot add property {len(arr.items)}, object is not extensible")
        interp.check_array_length(len(arr.items) + len(args))
        arr.items.extend(args)
        return float(len(arr.items))

    @realm.method(proto, "pop")
    def pop(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "pop")
        if not arr.items or arr.frozen:
            return UNDEFINED
        value = arr.items.pop()
        del arr.holes[len(arr.items) :]
        return value

    @realm.method(proto, "shift")
    def shift(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "shift")
        if not arr.items or arr.frozen:
            return UNDEFINED
        arr.clear_holes()
        return arr.items.pop(0)

    @realm.method(proto, "unshift", 1)
    def unshift(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "unshift")
        if not arr.frozen:
            interp.check_array_length(len(arr.items) + len(args))
            arr.clear_holes()
            arr.items[:0] = args
        return float(len(arr.items))

    @realm.method(proto, "slice", 2)
    def slice_(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "slice")
        size = len(arr.items)
        start = _relative(interp, _arg(args, 0), size, 0)
        end = _relative(interp, _arg(args, 1), size, size)
        return interp.realm.array(arr.items[start:end])

    @realm.method(proto, "splice", 2)
    def splice(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "splice")
        size = len(arr.items)
        start = _relative(interp, _arg(args, 0), size, 0)
        if not args:
            count = 0
        elif len(args) == 1:
            count = size - start
        else:
            count = int(min(max(to_integer(_num(interp, args, 1)), 0.0), float(size - start)))
        removed = arr.items[start : start + count]
        interp.check_array_length(size - count + len(args[2:]))
        arr.clear_holes()
        arr.items[start : start + count] = list(args[2:])
        return interp.realm.array(removed)

    @realm.method(proto, "concat", 1)
    def concat(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "concat")
        items = list(arr.items)
        for value in args:
            if isinstance(value, JSArray) and not isinstance(value, JSArguments):
                interp.check_array_length(len(items) + len(value.items))
                items.extend(value.items)
            else:
                items.append(value)
        interp.check_array_length(len(items))
        return interp.realm.array(items)

    @realm.method(proto, "join", 1)
    def join(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "join")
        sep = "," if _arg(args, 0) is UNDEFINED else to_string(args[0], interp)
        parts = ["" if is_nullish(item) else to_string(item, interp) for item in arr.items]
        interp.check_string_length(sum(len(part) for part in parts) + len(sep) * max(len(parts) - 1, 0))
        return sep.join(parts)

    @realm.method(proto, "toString")
    def array_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        return join(interp, this, [])

    @realm.method(proto, "reverse")
    def reverse(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "reverse")
        arr.items.reverse()
        arr.clear_holes()
        return arr

    @realm.method(proto, "indexOf", 1)
    def index_of(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "indexOf")
        start = _relative(interp, _arg(args, 1), len(arr.items), 0)
        for idx in range(start, len(arr.items)):
            if strict_equals(arr.items[idx], _arg(args, 0)):
                return float(idx)
        return -1.0

    @realm.method(proto, "lastIndexOf", 1)
    def last_index_of(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "lastIndexOf")
        for idx in range(len(arr.items) - 1, -1, -1):
            if strict_equals(arr.items[idx], _arg(args, 0)):
                return float(idx)
        return -1.0

    @realm.method(proto, "includes", 1)
    def includes(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "includes")
        start = _relative(interp, _arg(args, 1), len(arr.items), 0)
        return any(same_value_zero(item, _arg(args, 0)) for item in arr.items[start:])

    def _finder(name: str, reverse_order: bool, want_index: bool) -> None:
        @realm.method(proto, name, 1)
        def find(interp: Any, this: Any, args: list[Any]) -> Any:
            arr = _this_array(interp, this, name)
            fn = _callback(interp, _arg(args, 0))
            order = range(len(arr.items) - 1, -1, -1) if reverse_order else range(len(arr.items))
            for idx in order:
                item = arr.items[idx] if idx < len(arr.items) else UNDEFINED
                if to_boolean(interp.call(fn, _arg(args, 1), [item, float(idx), arr])):
                    return float(idx) if want_index else item
            return -1.0 if want_index else UNDEFINED

    _finder("find", False, False)
    _finder("findIndex", False, True)
    _finder("findLast", True, False)
    _finder("findLastIndex", True, True)

    @realm.method(proto, "filter", 1)
    def filter_(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "filter")
        fn = _callback(interp, _arg(args, 0))
        kept = [item for idx, item in enumerate(list(arr.items)) if to_boolean(interp.call(fn, _arg(args, 1), [item, float(idx), arr]))]
        return interp.realm.array(kept)

    @realm.method(proto, "map", 1)
    def map_(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "map")
        fn = _callback(interp, _arg(args, 0))
        return interp.realm.array(
            [interp.call(fn, _arg(args, 1), [item, float(idx), arr]) for idx, item in enumerate(list(arr.items))]
        )

    @realm.method(proto, "forEach", 1)
    def for_each(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "forEach")
        fn = _callback(interp, _arg(args, 0))
        idx = 0
        while idx < len(arr.items):
            interp.call(fn, _arg(args, 1), [arr.items[idx], float(idx), arr])
            idx += 1
        return UNDEFINED

    @realm.method(proto, "some", 1)
    def some(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "some")
        fn = _callback(interp, _arg(args, 0))
        return any(to_boolean(interp.call(fn, _arg(args, 1), [item, float(idx), arr])) for idx, item in enumerate(list(arr.items)))

    @realm.method(proto, "every", 1)
    def every(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "every")
        fn = _callback(interp, _arg(args, 0))
        return all(to_boolean(interp.call(fn, _arg(args, 1), [item, float(idx), arr])) for idx, item in enumerate(list(arr.items)))

    def _reducer(name: str, reverse_order: bool) -> None:
        @realm.method(proto, name, 1)
        def reduce(interp: Any, this: Any, args: list[Any]) -> Any:
            arr = _this_array(interp, this, name)
            fn = _callback(interp, _arg(args, 0))
            indices = list(range(len(arr.items)))
            if reverse_order:
                indices.reverse()
            if len(args) >= 2:
                acc = args[1]
            elif indices:
                acc = arr.items[indices.pop(0)]
            else:
                interp.throw("TypeError", "Reduce of empty array with no initial value")
            for idx in indices:
                acc = interp.call(fn, UNDEFINED, [acc, arr.items[idx], float(idx), arr])
            return acc

    _reducer("reduce", False)
    _reducer("reduceRight", True)

    @realm.method(proto, "sort", 1)
    def sort(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "sort")
        comparator = _arg(args, 0)
        defined = [item for item in arr.items if item is not UNDEFINED]
        missing = len(arr.items) - len(defined)
        if comparator is UNDEFINED:
            defined.sort(key=lambda item: to_string(item, interp))
        else:
            fn = _callback(interp, comparator)

            def order(left: Any, right: Any) -> int:
                result = to_number(interp.call(fn, UNDEFINED, [left, right]), interp)
                return -1 if result < 0 else (1 if result > 0 else 0)

            defined.sort(key=cmp_to_key(order))
        arr.items[:] = defined + [UNDEFINED] * missing
        arr.clear_holes()
        return arr

    @realm.method(proto, "flat")
    def flat(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "flat")
        depth = 1.0 if _arg(args, 0) is UNDEFINED else to_integer(_num(interp, args, 0))

        def flatten(items: list[Any], level: float) -> list[Any]:
            out: list[Any] = []
            for item in items:
                if isinstance(item, JSArray) and level > 0:
                    out.extend(flatten(item.items, level - 1))
                    interp.check_array_length(len(out))
                else:
                    out.append(item)
            return out

        return interp.realm.array(flatten(arr.items, depth))

    @realm.method(proto, "flatMap", 1)
    def flat_map(interp: Any, this: Any, args: list[Any]) -> Any:
        mapped = map_(interp, this, args)
        return flat(interp, mapped, [1.0])

    @realm.method(proto, "fill", 1)
    def fill(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "fill")
        size = len(arr.items)
        start = _relative(interp, _arg(args, 1), size, 0)
        end = _relative(interp, _arg(args, 2), size, size)
        for idx in range(start, end):
            arr.items[idx] = _arg(args, 0)
        if start < end:
            arr.holes[start:end] = bytes(len(arr.holes[start:end]))
        return arr

    @realm.method(proto, "at", 1)
    def at(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "at")
        idx = int(to_integer(_num(interp, args, 0)))
        if idx < 0:
            idx += len(arr.items)
        return arr.items[idx] if 0 <= idx < len(arr.items) else UNDEFINED

    @realm.method(proto, "keys")
    def array_keys(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "keys")
        return interp.realm.iterator(float(idx) for idx in range(len(arr.items)))

    @realm.method(proto, "entries")
    def array_entries(interp: Any, this: Any, args: list[Any]) -> Any:
        arr = _this_array(interp, this, "entries")
        make = interp.realm.array
        return interp.realm.iterator(make([float(idx), item]) for idx, item in enumerate(arr.items))

    @realm.method(proto, "values")
    def array_values(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.realm.iterator(interp.iterate(_this_array(interp, this, "values")))

    proto.define(SYMBOL_ITERATOR, proto.get_slot("values"), enumerable=False)


# -- String -------------------------------------------------------------------


def _install_string(realm: Realm) -> None:
    proto = realm.string_proto

    def string_call(interp: Any, this: Any, args: list[Any]) -> Any:
        if not args:
            return ""
        if isinstance(args[0], Symbol):
            return repr(args[0])
        return to_string(args[0], interp)

    def string_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        return JSBoxed(string_call(interp, UNDEFINED, args), interp.realm.prototype_of(interp, new_target, proto))

    string = realm.constructor("String", proto, string_call, string_construct, 1)

    @realm.method(string, "fromCharCode", 1)
    def from_char_code(interp: Any, this: Any, args: list[Any]) -> Any:
        return "".join(chr(to_uint32(to_number(code, interp)) & 0xFFFF) for code in args)

    @realm.method(string, "fromCodePoint", 1)
    def from_code_point(interp: Any, this: Any, args: list[Any]) -> Any:
        chars: list[str] = []
        for arg in args:
            code = to_number(arg, interp)
            if not code.is_integer() or not 0 <= code <= 0x10FFFF:
                interp.throw("RangeError", f"Invalid code point {to_string(arg, interp)}")
            chars.append(chr(int(code)))
        return to_units("".join(chars))

    @realm.method(proto, "toString")
    def string_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        if isinstance(this, JSBoxed) and isinstance(this.value, str):
            return this.value
        if not isinstance(this, str):
            interp.throw("TypeError", "String.prototype.toString requires that 'this' be a String")
        return this

    proto.define("valueOf", proto.get_slot("toString"), enumerable=False)

    def simple(name: str, length: int, fn: Callable[[Any, str, list[Any]], Any]) -> None:
        @realm.method(proto, name, length)
        def wrapper(interp: Any, this: Any, args: list[Any]) -> Any:
            return fn(interp, _this_string(interp, this, name), args)

    def char_at(interp: Any, text: str, args: list[Any]) -> Any:
        idx = int(to_integer(_num(interp, args, 0)))
        return text[idx] if 0 <= idx < len(text) else ""

    def char_code_at(interp: Any, text: str, args: list[Any]) -> Any:
        idx = int(to_integer(_num(interp, args, 0)))
        return float(ord(text[idx])) if 0 <= idx < len(text) else math.nan

    def code_point_at(interp: Any, text: str, args: list[Any]) -> Any:
        idx = int(to_integer(_num(interp, args, 0)))
        if not 0 <= idx < len(text):
            return UNDEFINED
        high = text[idx]
        if is_high_surrogate(high) and idx + 1 < len(text) and is_low_surrogate(text[idx + 1]):
            return float(0x10000 + ((ord(high) - 0xD800) << 10) + (ord(text[idx + 1]) - 0xDC00))
        return float(ord(high))

    def index_of(interp: Any, text: str, args: list[Any]) -> Any:
        start = int(min(max(to_integer(_num(interp, args, 1)), 0.0), float(len(text))))
        return float(text.find(to_string(_arg(args, 0), interp), start))

    def last_index_of(interp: Any, text: str, args: list[Any]) -> Any:
        return float(text.rfind(to_string(_arg(args, 0), interp)))

    def includes(interp: Any, text: str, args: list[Any]) -> Any:
        return to_string(_arg(args, 0), interp) in text[int(to_integer(_num(interp, args, 1))) :]

    def starts_with(interp: Any, text: str, args: list[Any]) -> Any:
        start = int(to_integer(_num(interp, args, 1)))
        return text.startswith(to_string(_arg(args, 0), interp), max(start, 0))

    def ends_with(interp: Any, text: str, args: list[Any]) -> Any:
        end = len(text) if _arg(args, 1) is UNDEFINED else int(to_integer(_num(interp, args, 1)))
        return text[: max(end, 0)].endswith(to_string(_arg(args, 0), interp))

    def slice_(interp: Any, text: str, args: list[Any]) -> Any:
        start = _relative(interp, _arg(args, 0), len(text), 0)
        end = _relative(interp, _arg(args, 1), len(text), len(text))
        return text[start:end]

    def substring(interp: Any, text: str, args: list[Any]) -> Any:
        size = len(text)

        def clamp(value: Any, default: int) -> int:
            if value is UNDEFINED:
                return default
            return int(min(max(to_integer(to_number(value, interp)), 0.0), float(size)))

        start, end = clamp(_arg(args, 0), 0), clamp(_arg(args, 1), size)
        return text[min(start, end) : max(start, end)]

    def substr(interp: Any, text: str, args: list[Any]) -> Any:
        start = _relative(interp, _arg(args, 0), len(text), 0)
        count = len(text) - start if _arg(args, 1) is UNDEFINED else int(max(to_integer(_num(interp, args, 1)), 0.0))
        return text[start : start + count]

    def pad(at_start: bool) -> Callable[[Any, str, list[Any]], Any]:
        def padder(interp: Any, text: str, args: list[Any]) -> Any:
            target = int(to_integer(_num(interp, args, 0)))
            filler = " " if _arg(args, 1) is UNDEFINED else to_string(args[1], interp)
            if target <= len(text) or not filler:
                return text
            interp.check_string_length(target)
            needed = target - len(text)
            padding = (filler * (needed // len(filler) + 1))[:needed]
            return padding + text if at_start else text + padding

        return padder

    def repeat(interp: Any, text: str, args: list[Any]) -> Any:
        count = to_integer(_num(interp, args, 0))
        if count < 0 or math.isinf(count):
            interp.throw("RangeError", f"Invalid count value: {number_to_string(count)}")
        interp.check_string_length(len(text) * count)
        return text * int(count)

    def split(interp: Any, text: str, args: list[Any]) -> Any:
        sep = _arg(args, 0)
        limit = None if _arg(args, 1) is UNDEFINED else int(to_number(args[1], interp))
        if sep is UNDEFINED:
            parts = [text]
        else:
            sep_text = to_string(sep, interp)
            parts = list(text) if sep_text == "" else text.split(sep_text)
        if limit is not None:
            parts = parts[: max(limit, 0)]
        interp.check_array_length(len(parts))
        return interp.realm.array(parts)

    def replacer(replace_all: bool) -> Callable[[Any, str, list[Any]], Any]:
        def replace(interp: Any, text: str, args: list[Any]) -> Any:
            pattern = to_string(_arg(args, 0), interp)
            replacement = _arg(args, 1)
            out: list[str] = []
            pos = 0
            while True:
                found = text.find(pattern, pos)
                if found < 0:
                    break
                if isinstance(replacement, JSFunction):
                    chunk = to_string(interp.call(replacement, UNDEFINED, [pattern, float(found), text]), interp)
                else:
                    chunk = to_string(replacement, interp).replace("$&", pattern).replace("$$", "$")
                out.append(text[pos:found])
                out.append(chunk)
                pos = found + len(pattern)
                if not pattern:
                    if found < len(text):
                        out.append(text[found])
                    pos = found + 1
                if not replace_all or pos > len(text):
                    break
            out.append(text[pos:])
            interp.check_string_length(sum(len(part) for part in out))
            return "".join(out)

        return replace

    def at(interp: Any, text: str, args: list[Any]) -> Any:
        idx = int(to_integer(_num(interp, args, 0)))
        if idx < 0:
            idx += len(text)
        return text[idx] if 0 <= idx < len(text) else UNDEFINED

    def locale_compare(interp: Any, text: str, args: list[Any]) -> Any:
        other = to_string(_arg(args, 0), interp)
        return -1.0 if text < other else (1.0 if text > other else 0.0)

    def concat(interp: Any, text: str, args: list[Any]) -> Any:
        parts = [text, *(to_string(arg, interp) for arg in args)]
        interp.check_string_length(sum(len(part) for part in parts))
        return "".join(parts)

    def normalize(interp: Any, text: str, args: list[Any]) -> Any:
        form = "NFC" if _arg(args, 0) is UNDEFINED else to_string(args[0], interp)
        if form not in ("NFC", "NFD", "NFKC", "NFKD"):
            interp.throw("RangeError", "The normalization form should be one of NFC, NFD, NFKC, NFKD.")
        return to_units(unicodedata.normalize(form, from_units(text)))  # type: ignore[arg-type]

    for name, length, fn in (
        ("charAt", 1, char_at),
        ("charCodeAt", 1, char_code_at),
        ("codePointAt", 1, code_point_at),
        ("indexOf", 1, index_of),
        ("lastIndexOf", 1, last_index_of),
        ("includes", 1, includes),
        ("startsWith", 1, starts_with),
        ("endsWith", 1, ends_with),
        ("slice", 2, slice_),
        ("substring", 2, substring),
        ("substr", 2, substr),
        ("padStart", 2, pad(True)),
        ("padEnd", 2, pad(False)),
        ("repeat", 1, repeat),
        ("split", 2, split),
        ("replace", 2, replacer(False)),
        ("replaceAll", 2, replacer(True)),
        ("at", 1, at),
        ("localeCompare", 1, locale_compare),
        ("normalize", 0, normalize),
        ("toUpperCase", 0, lambda interp, text, args: text.upper()),
        ("toLowerCase", 0, lambda interp, text, args: text.lower()),
        ("toLocaleUpperCase", 0, lambda interp, text, args: text.upper()),
        ("toLocaleLowerCase", 0, lambda interp, text, args: text.lower()),
        ("trim", 0, lambda interp, text, args: text.strip()),
        ("trimStart", 0, lambda interp, text, args: text.lstrip()),
        ("trimEnd", 0, lambda interp, text, args: text.rstrip()),
        ("concat", 1, concat),
    ):
        simple(name, length, fn)

    @realm.method(proto, SYMBOL_ITERATOR)
    def string_iterator(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.realm.iterator(code_points(_this_string(interp, this, "[Symbol.iterator]")))


# -- Number, Boolean, Symbol ------------------------------------------------------


def _install_number(realm: Realm) -> None:
    proto = realm.number_proto

    def number_call(interp: Any, this: Any, args: list[Any]) -> Any:
        return to_number(args[0], interp) if args else 0.0

    def number_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        return JSBoxed(number_call(interp, UNDEFINED, args), interp.realm.prototype_of(interp, new_target, proto))

    number = realm.constructor("Number", proto, number_call, number_construct, 1)
    for name, value in (
        ("MAX_SAFE_INTEGER", float(2**53 - 1)),
        ("MIN_SAFE_INTEGER", float(-(2**53 - 1))),
        ("EPSILON", 2.0**-52),
        ("MAX_VALUE", 1.7976931348623157e308),
        ("MIN_VALUE", 5e-324),
        ("POSITIVE_INFINITY", math.inf),
        ("NEGATIVE_INFINITY", -math.inf),
        ("NaN", math.nan),
    ):
        number.define(name, value, enumerable=False)

    def is_number(value: Any) -> bool:
        return isinstance(value, float) and not isinstance(value, bool)

    @realm.method(number, "isInteger", 1)
    def is_integer(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        return is_number(value) and math.isfinite(value) and value.is_integer()

    @realm.method(number, "isSafeInteger", 1)
    def is_safe_integer(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        return is_integer(interp, this, args) and abs(value) <= 2**53 - 1

    @realm.method(number, "isFinite", 1)
    def number_is_finite(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        return is_number(value) and math.isfinite(value)

    @realm.method(number, "isNaN", 1)
    def number_is_nan(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        return is_number(value) and math.isnan(value)

    @realm.method(proto, "toString", 1)
    def number_to_string_method(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _this_number(interp, this, "toString")
        radix = 10 if _arg(args, 0) is UNDEFINED else int(to_integer(_num(interp, args, 0)))
        if radix < 2 or radix > 36:
            interp.throw("RangeError", "toString() radix must be between 2 and 36")
        return number_to_string(value, radix)

    @realm.method(proto, "toFixed", 1)
    def to_fixed(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _this_number(interp, this, "toFixed")
        digits = int(to_integer(_num(interp, args, 0)))
        if digits < 0 or digits > 100:
            interp.throw("RangeError", "toFixed() digits argument must be between 0 and 100")
        return _to_fixed(value, digits)

    @realm.method(proto, "toPrecision", 1)
    def to_precision(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _this_number(interp, this, "toPrecision")
        if _arg(args, 0) is UNDEFINED:
            return number_to_string(value)
        precision = int(to_integer(_num(interp, args, 0)))
        if precision < 1 or precision > 100:
            interp.throw("RangeError", "toPrecision() argument must be between 1 and 100")
        return _to_precision(value, precision)

    @realm.method(proto, "toLocaleString")
    def to_locale_string(interp: Any, this: Any, args: list[Any]) -> Any:
        return _locale_number(_this_number(interp, this, "toLocaleString"))

    @realm.method(proto, "valueOf")
    def number_value_of(interp: Any, this: Any, args: list[Any]) -> Any:
        return _this_number(interp, this, "valueOf")


def _install_boolean_symbol(realm: Realm) -> None:
    proto = realm.boolean_proto

    def boolean_call(interp: Any, this: Any, args: list[Any]) -> Any:
        return to_boolean(_arg(args, 0))

    def boolean_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        return JSBoxed(boolean_call(interp, UNDEFINED, args), interp.realm.prototype_of(interp, new_target, proto))

    realm.constructor("Boolean", proto, boolean_call, boolean_construct, 1)

    def this_boolean(interp: Any, this: Any) -> bool:
        if isinstance(this, JSBoxed) and isinstance(this.value, bool):
            return this.value
        if not isinstance(this, bool):
            interp.throw("TypeError", "Boolean.prototype.valueOf requires that 'this' be a Boolean")
        return this

    @realm.method(proto, "toString")
    def boolean_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        return "true" if this_boolean(interp, this) else "false"

    @realm.method(proto, "valueOf")
    def boolean_value_of(interp: Any, this: Any, args: list[Any]) -> Any:
        return this_boolean(interp, this)

    sym_proto = realm.symbol_proto

    def symbol_call(interp: Any, this: Any, args: list[Any]) -> Any:
        return Symbol("" if _arg(args, 0) is UNDEFINED else to_string(args[0], interp))

    symbol = realm.constructor("Symbol", sym_proto, symbol_call, None)
    symbol.define("iterator", SYMBOL_ITERATOR, enumerable=False)

    @realm.method(sym_proto, "toString")
    def symbol_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        if not isinstance(this, Symbol):
            interp.throw("TypeError", "Symbol.prototype.toString requires that 'this' be a Symbol")
        return repr(this)


def _install_iterators(realm: Realm) -> None:
    proto = realm.iterator_proto

    @realm.method(proto, "next")
    def next_(interp: Any, this: Any, args: list[Any]) -> Any:
        if not isinstance(this, JSIterator):
            interp.throw("TypeError", "next method called on incompatible receiver")
        result = interp.realm.object()
        try:
            value = next(this.source)
        except StopIteration:
            result.define("value", UNDEFINED)
            result.define("done", True)
            return result
        result.define("value", value)
        result.define("done", False)
        return result

    @realm.method(proto, SYMBOL_ITERATOR)
    def self_iterator(interp: Any, this: Any, args: list[Any]) -> Any:
        return this


# -- Errors -------------------------------------------------------------------


def _install_errors(realm: Realm) -> None:
    base_proto = JSObject(realm.object_proto)
    realm.error_protos["Error"] = base_proto
    for name in ERROR_NAMES:
        proto = base_proto if name == "Error" else JSObject(base_proto)
        realm.error_protos[name] = proto
        proto.define("name", name, enumerable=False)
        proto.define("message", "", enumerable=False)

        def construct(interp: Any, args: list[Any], new_target: Any, _proto: JSObject = proto) -> Any:
            message = "" if _arg(args, 0) is UNDEFINED else to_string(args[0], interp)
            err = interp.realm.make_error("", message, interp.realm.prototype_of(interp, new_target, _proto))
            options = _arg(args, 1)
            if isinstance(options, JSObject) and options.has_property("cause"):
                err.define("cause", interp.get_property(options, "cause"), enumerable=False)
            return err

        def call(interp: Any, this: Any, args: list[Any], _construct: Callable = construct) -> Any:
            return _construct(interp, args, UNDEFINED)

        fn = realm.constructor(name, proto, call, construct, 1)
        if name != "Error":
            fn.proto = realm.global_object.get_slot("Error")

    @realm.method(base_proto, "toString")
    def error_to_string(interp: Any, this: Any, args: list[Any]) -> Any:
        if not isinstance(this, JSObject):
            interp.throw("TypeError", "Error.prototype.toString called on non-object")
        name = interp.get_property(this, "name")
        message = interp.get_property(this, "message")
        name_text = "Error" if name is UNDEFINED else to_string(name, interp)
        message_text = "" if message is UNDEFINED else to_string(message, interp)
        if not name_text:
            return message_text
        return f"{name_text}: {message_text}" if message_text else name_text


# -- Math and JSON ----------------------------------------------------------------


def _install_math(realm: Realm) -> None:
    math_obj = realm.object()
    realm.global_object.define("Math", math_obj, enumerable=False)
    for name, value in (
        ("PI", math.pi),
        ("E", math.e),
        ("LN2", math.log(2)),
        ("LN10", math.log(10)),
        ("LOG2E", 1 / math.log(2)),
        ("LOG10E", 1 / math.log(10)),
        ("SQRT2", math.sqrt(2)),
        ("SQRT1_2", math.sqrt(0.5)),
    ):
        math_obj.define(name, value, enumerable=False)

    def cbrt(value: float) -> float:
        return math.copysign(abs(value) ** (1 / 3), value) if math.isfinite(value) else value

    def sign(value: float) -> float:
        if math.isnan(value) or value == 0:
            return value
        return 1.0 if value > 0 else -1.0

    def log(value: float) -> float:
        return -math.inf if value == 0 else math.log(value)

    def log2(value: float) -> float:
        return -math.inf if value == 0 else math.log2(value)

    def log10(value: float) -> float:
        return -math.inf if value == 0 else math.log10(value)

    def trunc(value: float) -> float:
        return value if not math.isfinite(value) else float(math.trunc(value))

    def floor(value: float) -> float:
        return value if not math.isfinite(value) else float(math.floor(value))

    def ceil(value: float) -> float:
        return value if not math.isfinite(value) else float(math.ceil(value))

    unary = {
        "abs": abs,
        "ceil": ceil,
        "floor": floor,
        "round": _round,
        "trunc": trunc,
        "sign": sign,
        "sqrt": math.sqrt,
        "cbrt": cbrt,
        "exp": math.exp,
        "expm1": math.expm1,
        "log": log,
        "log2": log2,
        "log10": log10,
        "log1p": math.log1p,
        "sin": math.sin,
        "cos": math.cos,
        "tan": math.tan,
        "asin": math.asin,
        "acos": math.acos,
        "atan": math.atan,
        "sinh": math.sinh,
        "cosh": math.cosh,
        "tanh": math.tanh,
        "fround": float,
    }
    for name, fn in unary.items():
        safe = _math(fn)
        math_obj.define(
            name,
            realm.function(name, lambda interp, this, args, _fn=safe: _fn(_num(interp, args, 0)), 1),
            enumerable=False,
        )

    @realm.method(math_obj, "atan2", 2)
    def atan2(interp: Any, this: Any, args: list[Any]) -> Any:
        return _math(math.atan2)(_num(interp, args, 0), _num(interp, args, 1))

    @realm.method(math_obj, "pow", 2)
    def pow_(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.binary("**", _num(interp, args, 0), _num(interp, args, 1))

    @realm.method(math_obj, "hypot", 2)
    def hypot(interp: Any, this: Any, args: list[Any]) -> Any:
        return _math(math.hypot)(*[to_number(arg, interp) for arg in args])

    @realm.method(math_obj, "max", 2)
    def max_(interp: Any, this: Any, args: list[Any]) -> Any:
        values = [to_number(arg, interp) for arg in args]
        if any(math.isnan(value) for value in values):
            return math.nan
        return max(values, default=-math.inf)

    @realm.method(math_obj, "min", 2)
    def min_(interp: Any, this: Any, args: list[Any]) -> Any:
        values = [to_number(arg, interp) for arg in args]
        if any(math.isnan(value) for value in values):
            return math.nan
        return min(values, default=math.inf)

    @realm.method(math_obj, "random")
    def random_(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.realm.random.random()


def _json_to_value(realm: Realm, value: Any) -> Any:
    if isinstance(value, _Pairs):
        obj = realm.object()
        for key, item in value:
            obj.define(to_units(key), _json_to_value(realm, item))
        return obj
    if isinstance(value, list):
        return realm.array([_json_to_value(realm, item) for item in value])
    if value is None:
        return NULL
    if isinstance(value, str):
        return to_units(value)
    if isinstance(value, bool):
        return value
    return float(value)


def json_stringify(interp: Any, value: Any, replacer: Any = UNDEFINED, space: Any = UNDEFINED) -> Any:
    if isinstance(space, float):
        indent = " " * int(min(max(space, 0.0), 10.0))
    elif isinstance(space, str):
        indent = space[:10]
    else:
        indent = ""
    allow: Optional[list[str]] = None
    if isinstance(replacer, JSArray):
        allow = [to_string(item, interp) for item in replacer.items]
    stack: list[int] = []

    def serialize(holder: Any, key: str, item: Any, current: str) -> Optional[str]:
        if isinstance(item, JSObject):
            to_json = interp.get_property(item, "toJSON")
            if isinstance(to_json, JSFunction):
                item = interp.call(to_json, item, [key])
        if isinstance(replacer, JSFunction):
            item = interp.call(replacer, holder, [key, item])
        if isinstance(item, JSBoxed):
            item = item.value
        if item is NULL:
            return "null"
        if isinstance(item, bool):
            return "true" if item else "false"
        if isinstance(item, str):
            return json.dumps(item, ensure_ascii=False)
        if isinstance(item, float):
            return number_to_string(item) if math.isfinite(item) else "null"
        if item is UNDEFINED or isinstance(item, (JSFunction, Symbol)) or not isinstance(item, JSObject):
            return None
        if id(item) in stack:
            interp.throw("TypeError", "Converting circular structure to JSON")
        stack.append(id(item))
        inner = current + indent
        try:
            if isinstance(item, JSArray):
                parts = [serialize(item, str(idx), element, inner) or "null" for idx, element in enumerate(item.items)]
                open_, close = "[", "]"
            else:
                parts = []
                keys = [key for key in item.own_keys() if isinstance(key, str)]
                for prop in keys if allow is None else [key for key in allow if item.has_own(key)]:
                    text = serialize(item, prop, interp.get_property(item, prop), inner)
                    if text is not None:
                        parts.append(json.dumps(prop, ensure_ascii=False) + (": " if indent else ":") + text)
                open_, close = "{", "}"
        finally:
            stack.pop()
        if not parts:
            return open_ + close
        if not indent:
            return open_ + ",".join(parts) + close
        return f"{open_}\n{inner}" + f",\n{inner}".join(parts) + f"\n{current}{close}"

    wrapper = interp.realm.object()
    wrapper.define("", value)
    result = serialize(wrapper, "", value, "")
    return UNDEFINED if result is None else result


def _install_json(realm: Realm) -> None:
    json_obj = realm.object()
    realm.global_object.define("JSON", json_obj, enumerable=False)

    @realm.method(json_obj, "parse", 2)
    def parse(interp: Any, this: Any, args: list[Any]) -> Any:
        text = to_string(_arg(args, 0), interp)
        try:
            loaded = json.loads(text, object_pairs_hook=_Pairs, parse_int=float, parse_constant=_reject_constant)
        except json.JSONDecodeError as exc:
            interp.throw("SyntaxError", f"{exc.msg} in JSON at position {exc.pos}")
        return _json_to_value(interp.realm, loaded)

    @realm.method(json_obj, "stringify", 3)
    def stringify(interp: Any, this: Any, args: list[Any]) -> Any:
        return json_stringify(interp, _arg(args, 0), _arg(args, 1), _arg(args, 2))


# -- Map and Set --------------------------------------------------------------------


def _install_collections(realm: Realm) -> None:
    map_proto = realm.map_proto
    set_proto = realm.set_proto

    def requires_new(name: str) -> Callable[[Any, Any, list[Any]], Any]:
        def call(interp: Any, this: Any, args: list[Any]) -> Any:
            interp.throw("TypeError", f"Constructor {name} requires 'new'")

        return call

    def map_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        made = JSMap(interp.realm.prototype_of(interp, new_target, map_proto))
        source = _arg(args, 0)
        if not is_nullish(source):
            for entry in interp.iterate(source):
                key = interp.get_property(entry, "0")
                made.entries[map_key(key)] = (key, interp.get_property(entry, "1"))
        return made

    def set_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        made = JSSet(interp.realm.prototype_of(interp, new_target, set_proto))
        source = _arg(args, 0)
        if not is_nullish(source):
            for item in interp.iterate(source):
                made.entries.setdefault(map_key(item), item)
        return made

    realm.constructor("Map", map_proto, requires_new("Map"), map_construct)
    realm.constructor("Set", set_proto, requires_new("Set"), set_construct)

    def this_map(interp: Any, this: Any, method: str) -> JSMap:
        if not isinstance(this, JSMap):
            interp.throw("TypeError", f"Method Map.prototype.{method} called on incompatible receiver")
        return this

    def this_set(interp: Any, this: Any, method: str) -> JSSet:
        if not isinstance(this, JSSet):
            interp.throw("TypeError", f"Method Set.prototype.{method} called on incompatible receiver")
        return this

    @realm.method(map_proto, "get", 1)
    def map_get(interp: Any, this: Any, args: list[Any]) -> Any:
        entry = this_map(interp, this, "get").entries.get(map_key(_arg(args, 0)))
        return UNDEFINED if entry is None else entry[1]

    @realm.method(map_proto, "set", 2)
    def map_set(interp: Any, this: Any, args: list[Any]) -> Any:
        key = _arg(args, 0)
        if isinstance(key, float) and key == 0:
            key = 0.0
        this_map(interp, this, "set").entries[map_key(key)] = (key, _arg(args, 1))
        return this

    @realm.method(map_proto, "has", 1)
    def map_has(interp: Any, this: Any, args: list[Any]) -> Any:
        return map_key(_arg(args, 0)) in this_map(interp, this, "has").entries

    @realm.method(map_proto, "delete", 1)
    def map_delete(interp: Any, this: Any, args: list[Any]) -> Any:
        return this_map(interp, this, "delete").entries.pop(map_key(_arg(args, 0)), None) is not None

    @realm.method(map_proto, "clear")
    def map_clear(interp: Any, this: Any, args: list[Any]) -> Any:
        this_map(interp, this, "clear").entries.clear()
        return UNDEFINED

    @realm.getter(map_proto, "size")
    def map_size(interp: Any, this: Any, args: list[Any]) -> Any:
        return float(len(this_map(interp, this, "size").entries))

    @realm.method(map_proto, "forEach", 1)
    def map_for_each(interp: Any, this: Any, args: list[Any]) -> Any:
        fn = _callback(interp, _arg(args, 0))
        for key, value in list(this_map(interp, this, "forEach").entries.values()):
            interp.call(fn, _arg(args, 1), [value, key, this])
        return UNDEFINED

    @realm.method(map_proto, "keys")
    def map_keys(interp: Any, this: Any, args: list[Any]) -> Any:
        entries = list(this_map(interp, this, "keys").entries.values())
        return interp.realm.iterator(key for key, _ in entries)

    @realm.method(map_proto, "values")
    def map_values(interp: Any, this: Any, args: list[Any]) -> Any:
        entries = list(this_map(interp, this, "values").entries.values())
        return interp.realm.iterator(value for _, value in entries)

    @realm.method(map_proto, "entries")
    def map_entries(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.realm.iterator(interp.iterate(this_map(interp, this, "entries")))

    map_proto.define(SYMBOL_ITERATOR, map_proto.get_slot("entries"), enumerable=False)

    @realm.method(set_proto, "add", 1)
    def set_add(interp: Any, this: Any, args: list[Any]) -> Any:
        this_set(interp, this, "add").entries.setdefault(map_key(_arg(args, 0)), _arg(args, 0))
        return this

    @realm.method(set_proto, "has", 1)
    def set_has(interp: Any, this: Any, args: list[Any]) -> Any:
        return map_key(_arg(args, 0)) in this_set(interp, this, "has").entries

    @realm.method(set_proto, "delete", 1)
    def set_delete(interp: Any, this: Any, args: list[Any]) -> Any:
        entries = this_set(interp, this, "delete").entries
        key = map_key(_arg(args, 0))
        if key in entries:
            del entries[key]
            return True
        return False

    @realm.method(set_proto, "clear")
    def set_clear(interp: Any, this: Any, args: list[Any]) -> Any:
        this_set(interp, this, "clear").entries.clear()
        return UNDEFINED

    @realm.getter(set_proto, "size")
    def set_size(interp: Any, this: Any, args: list[Any]) -> Any:
        return float(len(this_set(interp, this, "size").entries))

    @realm.method(set_proto, "forEach", 1)
    def set_for_each(interp: Any, this: Any, args: list[Any]) -> Any:
        fn = _callback(interp, _arg(args, 0))
        for value in list(this_set(interp, this, "forEach").entries.values()):
            interp.call(fn, _arg(args, 1), [value, value, this])
        return UNDEFINED

    @realm.method(set_proto, "values")
    def set_values(interp: Any, this: Any, args: list[Any]) -> Any:
        return interp.realm.iterator(interp.iterate(this_set(interp, this, "values")))

    set_proto.define("keys", set_proto.get_slot("values"), enumerable=False)
    set_proto.define(SYMBOL_ITERATOR, set_proto.get_slot("values"), enumerable=False)

    @realm.method(set_proto, "entries")
    def set_entries(interp: Any, this: Any, args: list[Any]) -> Any:
        values = list(this_set(interp, this, "entries").entries.values())
        return interp.realm.iterator(interp.realm.array([value, value]) for value in values)


# -- console, assertions and plain globals --------------------------------------------


def _record_failure(interp: Any, default: str, message: Any) -> None:
    text = default if message is UNDEFINED else to_string(message, interp)
    interp.assertion_failures.append(text)


def _deep_equal(interp: Any, left: Any, right: Any, strict: bool) -> bool:
    if isinstance(left, JSObject) and isinstance(right, JSObject):
        if left is right:
            return True
        if strict and left.proto is not right.proto:
            return False
        if isinstance(left, JSArray) != isinstance(right, JSArray):
            return False
        left_keys, right_keys = left.own_keys(), right.own_keys()
        if sorted(map(str, left_keys)) != sorted(map(str, right_keys)):
            return False
        return all(
            _deep_equal(interp, interp.get_property(left, key), interp.get_property(right, key), strict)
            for key in left_keys
        )
    if strict:
        return same_value_zero(left, right)
    return loose_equals(left, right, interp)


def _install_console(realm: Realm) -> None:
    console = realm.object()
    realm.global_object.define("console", console, enumerable=False)

    def log(interp: Any, this: Any, args: list[Any]) -> Any:
        interp.emit(format_console(args, interp))
        return UNDEFINED

    for name in ("log", "info", "warn", "error", "debug", "trace"):
        console.define(name, realm.function(name, log, capability="print"), enumerable=False)
    realm.global_object.define("print", realm.function("print", log, capability="print"), enumerable=False)

    @realm.method(console, "dir", 1, capability="print")
    def console_dir(interp: Any, this: Any, args: list[Any]) -> Any:
        interp.emit(inspect(_arg(args, 0)))
        return UNDEFINED

    @realm.method(console, "assert", 1, capability="assert")
    def console_assert(interp: Any, this: Any, args: list[Any]) -> Any:
        if not to_boolean(_arg(args, 0)):
            detail = format_console(list(args[1:]), interp)
            interp.assertion_failures.append(f"Assertion failed: {detail}" if detail else "Assertion failed")
        return UNDEFINED

    def assert_call(interp: Any, this: Any, args: list[Any]) -> Any:
        if not to_boolean(_arg(args, 0)):
            _record_failure(interp, "Assertion failed", _arg(args, 1))
        return UNDEFINED

    assert_fn = realm.function("assert", assert_call, 2, capability="assert")
    realm.global_object.define("assert", assert_fn, enumerable=False)
    assert_fn.define("ok", realm.function("ok", assert_call, 2, capability="assert"), enumerable=False)

    def comparison(name: str, check: Callable[[Any, Any, Any], bool], verb: str) -> None:
        @realm.method(assert_fn, name, 3, capability="assert")
        def compare_values(interp: Any, this: Any, args: list[Any]) -> Any:
            left, right = _arg(args, 0), _arg(args, 1)
            if not check(interp, left, right):
                _record_failure(interp, f"{inspect(left)} {verb} {inspect(right)}", _arg(args, 2))
            return UNDEFINED

    comparison("equal", lambda interp, a, b: loose_equals(a, b, interp), "==")
    comparison("notEqual", lambda interp, a, b: not loose_equals(a, b, interp), "!=")
    comparison("strictEqual", lambda interp, a, b: strict_equals(a, b), "===")
    comparison("notStrictEqual", lambda interp, a, b: not strict_equals(a, b), "!==")
    comparison("deepEqual", lambda interp, a, b: _deep_equal(interp, a, b, False), "deepEqual")
    comparison("deepStrictEqual", lambda interp, a, b: _deep_equal(interp, a, b, True), "deepStrictEqual")

    @realm.method(assert_fn, "throws", 2, capability="assert")
    def assert_throws(interp: Any, this: Any, args: list[Any]) -> Any:
        fn = _callback(interp, _arg(args, 0))
        try:
            interp.call(fn, UNDEFINED, [])
        except JSThrow:
            return UNDEFINED
        _record_failure(interp, "Missing expected exception.", _arg(args, 1))
        return UNDEFINED


def _install_globals(realm: Realm) -> None:
    glob = realm.global_object
    glob.define("globalThis", glob, enumerable=False)
    glob.define("undefined", UNDEFINED, enumerable=False)
    glob.define("NaN", math.nan, enumerable=False)
    glob.define("Infinity", math.inf, enumerable=False)

    @realm.method(glob, "parseInt", 2)
    def parse_int_fn(interp: Any, this: Any, args: list[Any]) -> Any:
        radix = 0 if _arg(args, 1) is UNDEFINED else int(to_integer(_num(interp, args, 1)))
        return parse_int(to_string(_arg(args, 0), interp), radix)

    @realm.method(glob, "parseFloat", 1)
    def parse_float_fn(interp: Any, this: Any, args: list[Any]) -> Any:
        return parse_float(to_string(_arg(args, 0), interp))

    @realm.method(glob, "isNaN", 1)
    def is_nan(interp: Any, this: Any, args: list[Any]) -> Any:
        return math.isnan(_num(interp, args, 0))

    @realm.method(glob, "isFinite", 1)
    def is_finite(interp: Any, this: Any, args: list[Any]) -> Any:
        return math.isfinite(_num(interp, args, 0))

    number = glob.get_slot("Number")
    number.define("parseInt", glob.get_slot("parseInt"), enumerable=False)
    number.define("parseFloat", glob.get_slot("parseFloat"), enumerable=False)


# -- host primitives behind capabilities ----------------------------------------------


def _install_host(realm: Realm) -> None:
    glob = realm.global_object

    def timer(repeat: bool) -> Callable[[Any, Any, list[Any]], Any]:
        def schedule(interp: Any, this: Any, args: list[Any]) -> Any:
            fn = _callback(interp, _arg(args, 0))
            delay = 0.0 if _arg(args, 1) is UNDEFINED else to_number(args[1], interp)
            delay = 0.0 if math.isnan(delay) else delay
            return float(interp.schedule(fn, delay, list(args[2:]), repeat))

        return schedule

    def clear(interp: Any, this: Any, args: list[Any]) -> Any:
        value = _arg(args, 0)
        if isinstance(value, float) and math.isfinite(value):
            interp.clear_timer(int(value))
        return UNDEFINED

    glob.define("setTimeout", realm.function("setTimeout", timer(False), 2, capability="timers"), enumerable=False)
    glob.define("setInterval", realm.function("setInterval", timer(True), 2, capability="timers"), enumerable=False)
    glob.define("clearTimeout", realm.function("clearTimeout", clear, 1, capability="timers"), enumerable=False)
    glob.define("clearInterval", realm.function("clearInterval", clear, 1, capability="timers"), enumerable=False)

    def now_ms() -> float:
        return float(int(time.time() * 1000))

    def date_call(interp: Any, this: Any, args: list[Any]) -> Any:
        return time.strftime("%a %b %d %Y %H:%M:%S GMT+0000 (Coordinated Universal Time)", time.gmtime())

    def date_construct(interp: Any, args: list[Any], new_target: Any) -> Any:
        made = JSObject(interp.realm.prototype_of(interp, new_target, realm.date_proto))
        made.define("__time__", now_ms() if not args else to_number(to_primitive(args[0], "number", interp), interp), enumerable=False)
        return made

    date = realm.function("Date", date_call, 7, date_construct, capability="clock")
    date.define("prototype", realm.date_proto, enumerable=False)
    realm.date_proto.define("constructor", date, enumerable=False)
    glob.define("Date", date, enumerable=False)

    @realm.method(date, "now", capability="clock")
    def date_now(interp: Any, this: Any, args: list[Any]) -> Any:
        return now_ms()

    def this_time(interp: Any, this: Any) -> float:
        stamp = this.get_slot("__time__") if isinstance(this, JSObject) else None
        if not isinstance(stamp, float):
            interp.throw("TypeError", "this is not a Date object.")
        return stamp

    @realm.method(realm.date_proto, "getTime")
    def get_time(interp: Any, this: Any, args: list[Any]) -> Any:
        return this_time(interp, this)

    realm.date_proto.define("valueOf", realm.date_proto.get_slot("getTime"), enumerable=False)

    @realm.method(realm.date_proto, "toISOString")
    def to_iso_string(interp: Any, this: Any, args: list[Any]) -> Any:
        stamp = this_time(interp, this)
        seconds, millis = divmod(int(stamp), 1000)
        return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(seconds)) + f".{millis:03d}Z"

    performance = realm.object()
    glob.define("performance", performance, enumerable=False)

    @realm.method(performance, "now", capability="clock")
    def performance_now(interp: Any, this: Any, args: list[Any]) -> Any:
        return time.perf_counter() * 1000.0

    @realm.method(glob, "require", 1, capability="fs")
    def require(interp: Any, this: Any, args: list[Any]) -> Any:
        interp.throw("Error", f"Cannot find module '{to_string(_arg(args, 0), interp)}'")

    @realm.method(glob, "fetch", 1, capability="network")
    def fetch(interp: Any, this: Any, args: list[Any]) -> Any:
        interp.throw("TypeError", "fetch failed")

    process = realm.object()
    process.define("env", realm.object())
    process.define("argv", realm.array())
    process.define("platform", "sandbox")
    glob.define("process", process, enumerable=False)


__all__ = ["ERROR_NAMES", "Realm", "json_stringify", "parse_float", "parse_int"]
