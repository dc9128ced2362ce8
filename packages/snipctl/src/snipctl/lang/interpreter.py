"""Tree-walking evaluator for the snippet language.

One ``Interpreter`` evaluates one block against a realm (the context's global
scope and intrinsics). It counts a step for every statement, expression and
loop iteration, and checks the cancellation flag on each step, so a runaway
block stops within a bounded margin without any cooperation from user code.
"""

from __future__ import annotations

import heapq
import threading
from typing import Any, Iterator, Optional

from . import nodes as n
from .inspect import inspect
from .lexer import JSSyntaxError
from .parser import parse
from .scope import Frame, Scope
from .values import (
    MAX_ARRAY_LENGTH,
    MAX_STRING_LENGTH,
    MISSING,
    NULL,
    SYMBOL_ITERATOR,
    UNDEFINED,
    Accessor,
    JSArray,
    JSFunction,
    JSIterator,
    JSMap,
    JSObject,
    JSSet,
    JSThrow,
    NativeFunction,
    Symbol,
    add,
    compare,
    code_points,
    divide,
    is_index,
    is_nullish,
    loose_equals,
    power,
    remainder,
    strict_equals,
    to_boolean,
    to_int32,
    to_number,
    to_property_key,
    to_string,
    to_uint32,
    typeof,
)

MAX_CALL_DEPTH = 600
TDZ_MESSAGE = "Cannot access '{}' before initialization"
SUPER_THIS_MESSAGE = (
    "Must call super constructor in derived class before accessing 'this' or returning from derived constructor"
)


class StepBudgetExceeded(Exception):
    pass


class Cancelled(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CapabilityDenied(Exception):
    def __init__(self, capability: str) -> None:
        super().__init__(capability)
        self.capability = capability


class CancelFlag:
    """Cancellation request raised by a watchdog or a run-level cancel."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str) -> None:
        if not self.reason:
            self.reason = reason
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


class _ShortCircuit(Exception):
    pass


class _Signal:
    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name


BREAK = _Signal("break")
CONTINUE = _Signal("continue")


class ReturnSignal:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


def _param_length(params: tuple[n.Param, ...]) -> int:
    count = 0
    for param in params:
        if param.rest or param.default is not None:
            break
        count += 1
    return count


class Closure(JSFunction):
    def __init__(
        self,
        node: n.FunctionNode,
        scope: Scope,
        realm: Any,
        name: Optional[str] = None,
        home: Optional[JSObject] = None,
        strict: bool = False,
    ) -> None:
        super().__init__(node.name if name is None else name, _param_length(node.params), realm.function_proto)
        self.node = node
        self.scope = scope
        self.frame = scope.frame if node.is_arrow else None
        self.home = home
        self.strict = strict
        self.source = node.source
        if self.can_construct:
            proto = JSObject(realm.object_proto)
            proto.define("constructor", self, enumerable=False)
            self.define("prototype", proto, enumerable=False)

    @property
    def can_construct(self) -> bool:
        return not self.node.is_arrow and self.node.kind == "function"


class ClassFunction(JSFunction):
    is_class = True

    def __init__(self, name: str, realm: Any, parent: Optional[JSFunction], scope: Scope) -> None:
        super().__init__(name, 0, parent if parent is not None else realm.function_proto)
        self.parent = parent
        self.scope = scope
        self.ctor: Optional[Closure] = None
        self.fields: list[tuple[object, Optional[n.Node]]] = []
        self.source = ""

    @property
    def can_construct(self) -> bool:
        return True


def _callee_text(node: n.Node) -> str:
    if isinstance(node, n.Ident):
        return node.name
    if isinstance(node, n.This):
        return "this"
    if isinstance(node, n.Member) and not node.computed and isinstance(node.prop, n.Literal):
        return f"{_callee_text(node.obj)}.{node.prop.value}"
    if isinstance(node, n.Member):
        return f"{_callee_text(node.obj)}[...]"
    return "(intermediate value)"


def _key_text(key: object) -> str:
    return repr(key) if isinstance(key, Symbol) else str(key)


class Interpreter:
    def __init__(
        self,
        realm: Any,
        max_steps: int = 1_000_000,
        cancel: Optional[CancelFlag] = None,
        capabilities: frozenset[str] = frozenset({"print", "assert"}),
    ) -> None:
        self.realm = realm
        self.max_steps = max_steps
        self.cancel = cancel
        self.capabilities = capabilities
        self.steps = 0
        self.line = 0
        self.depth = 0
        self.completion: Any = UNDEFINED
        self.output: list[str] = []
        self.assertion_failures: list[str] = []
        self.virtual_now = 0.0
        self._timer_heap: list[tuple[float, int, int]] = []
        self._timers: dict[int, tuple[Any, list[Any], Optional[float]]] = {}
        self._timer_seq = 0
        self._exec_table: dict[type, Any] = {}
        self._eval_table: dict[type, Any] = {}
        for name in dir(n):
            node_type = getattr(n, name)
            if isinstance(node_type, type) and issubclass(node_type, n.Node):
                if hasattr(self, f"exec_{name}"):
                    self._exec_table[node_type] = getattr(self, f"exec_{name}")
                if hasattr(self, f"eval_{name}"):
                    self._eval_table[node_type] = getattr(self, f"eval_{name}")

    # -- entry point ----------------------------------------------------------

    def run(self, source: str) -> Any:
        try:
            program = parse(source)
        except JSSyntaxError as exc:
            raise JSThrow(self.realm.make_error("SyntaxError", exc.message), exc.line) from None
        scope = self.realm.global_scope
        self.hoist(scope, program.var_names, program.lexicals, program.functions)
        self.exec_list(program.body, scope)
        self.run_timers()
        return self.completion

    # -- bookkeeping ----------------------------------------------------------

    def step(self, line: int) -> None:
        self.steps += 1
        self.line = line
        if self.steps > self.max_steps:
            raise StepBudgetExceeded()
        if self.cancel is not None and self.cancel.is_set():
            raise Cancelled(self.cancel.reason)

    def require_capability(self, capability: str) -> None:
        if capability not in self.capabilities:
            raise CapabilityDenied(capability)

    def throw(self, name: str, message: str) -> None:
        raise JSThrow(self.realm.make_error(name, message), self.line)

    def check_string_length(self, size: float) -> None:
        if size > MAX_STRING_LENGTH:
            self.throw("RangeError", "Invalid string length")

    def check_array_length(self, size: float) -> None:
        if size > MAX_ARRAY_LENGTH:
            self.throw("RangeError", "Invalid array length")

    def emit(self, text: str) -> None:
        self.output.append(text)

    # -- timers ---------------------------------------------------------------

    def schedule(self, fn: Any, delay: float, args: list[Any], repeat: bool) -> int:
        self._timer_seq += 1
        timer_id = self._timer_seq
        delay = max(delay, 1.0) if repeat else max(delay, 0.0)
        self._timers[timer_id] = (fn, args, delay if repeat else None)
        heapq.heappush(self._timer_heap, (self.virtual_now + delay, timer_id, timer_id))
        return timer_id

    def clear_timer(self, timer_id: int) -> None:
        self._timers.pop(timer_id, None)

    def run_timers(self) -> None:
        while self._timer_heap:
            due, _, timer_id = heapq.heappop(self._timer_heap)
            entry = self._timers.get(timer_id)
            if entry is None:
                continue
            fn, args, interval = entry
            self.virtual_now = due
            if interval is None:
                del self._timers[timer_id]
            else:
                self._timer_seq += 1
                heapq.heappush(self._timer_heap, (due + interval, self._timer_seq, timer_id))
            self.step(self.line)
            self.call(fn, UNDEFINED, list(args))

    # -- scopes and bindings ----------------------------------------------------

    def hoist(
        self,
        scope: Scope,
        var_names: tuple[str, ...],
        lexicals: tuple[tuple[str, str], ...],
        functions: tuple[n.FunctionDecl, ...],
    ) -> None:
        for name in var_names:
            if name not in scope.vars:
                scope.declare(name, "var")
        for name, kind in lexicals:
            scope.declare(name, kind, UNDEFINED, initialized=False)
        for decl in functions:
            scope.declare(decl.func.name, "function", Closure(decl.func, scope, self.realm))

    def lookup_name(self, name: str, scope: Scope) -> Any:
        binding = scope.lookup(name)
        if binding is not None:
            if not binding.initialized:
                self.throw("ReferenceError", TDZ_MESSAGE.format(name))
            return binding.value
        found, value = self._global_lookup(name)
        if not found:
            self.throw("ReferenceError", f"{name} is not defined")
        return value

    def _global_lookup(self, name: str) -> tuple[bool, Any]:
        holder = self.realm.global_object
        owner, slot = holder.lookup(name)
        if owner is None:
            return False, UNDEFINED
        capability = self.realm.guarded.get(name)
        if capability:
            self.require_capability(capability)
        if isinstance(slot, Accessor):
            return True, self.call(slot.get, holder, []) if slot.get else UNDEFINED
        return True, slot

    def assign_name(self, name: str, value: Any, scope: Scope) -> None:
        binding = scope.lookup(name)
        if binding is None:
            holder = self.realm.global_object
            if holder.has_own(name):
                self.set_property(holder, name, value)
            else:
                self.realm.global_scope.declare(name, "var", value)
            return
        if not binding.initialized:
            self.throw("ReferenceError", TDZ_MESSAGE.format(name))
        if binding.kind == "const":
            self.throw("TypeError", "Assignment to constant variable.")
        binding.value = value

    @staticmethod
    def initialize(scope: Scope, name: str, value: Any, kind: str) -> None:
        binding = scope.vars.get(name)
        if binding is None:
            scope.declare(name, kind, value)
            return
        binding.value = value
        binding.kind = kind
        binding.initialized = True

    def bind_pattern(self, target: n.Node, value: Any, scope: Scope, kind: Optional[str]) -> None:
        """Bind ``value`` to a pattern; ``kind`` None means plain assignment."""
        if isinstance(target, n.Ident):
            if kind is None:
                self.assign_name(target.name, value, scope)
            else:
                self.initialize(scope, target.name, value, kind)
        elif isinstance(target, n.AssignPattern):
            if value is UNDEFINED:
                name = target.target.name if isinstance(target.target, n.Ident) else ""
                value = self.eval_named(target.default, scope, name)
            self.bind_pattern(target.target, value, scope, kind)
        elif isinstance(target, n.ArrayPattern):
            if is_nullish(value):
                self.throw("TypeError", f"{to_string(value)} is not iterable")
            items = list(self.iterate(value))
            for idx, element in enumerate(target.elements):
                if element is not None:
                    self.bind_pattern(element, items[idx] if idx < len(items) else UNDEFINED, scope, kind)
            if target.rest is not None:
                self.bind_pattern(target.rest, self.realm.array(items[len(target.elements):]), scope, kind)
        elif isinstance(target, n.ObjectPattern):
            if is_nullish(value):
                self.throw("TypeError", f"Cannot destructure '{to_string(value)}' as it is {to_string(value)}.")
            used: list[object] = []
            for prop in target.props:
                key = self.property_key(prop.key, prop.computed, scope)
                used.append(key)
                self.bind_pattern(prop.target, self.get_property(value, key), scope, kind)
            if target.rest is not None:
                rest = self.realm.object()
                self.copy_data_properties(rest, value, exclude=used)
                self.bind_pattern(target.rest, rest, scope, kind)
        elif isinstance(target, (n.Member, n.SuperMember)):
            obj, key = self.reference(target, scope)
            self.set_property(obj, key, value)
        else:
            raise JSThrow(self.realm.make_error("SyntaxError", "Invalid destructuring assignment target"), target.line)

    # -- statements -------------------------------------------------------------

    def exec(self, node: n.Node, scope: Scope) -> Any:
        self.step(node.line)
        return self._exec_table[type(node)](node, scope)

    def exec_list(self, body: tuple[n.Node, ...], scope: Scope) -> Any:
        for stmt in body:
            signal = self.exec(stmt, scope)
            if signal is not None:
                return signal
        return None

    def exec_ExprStmt(self, node: n.ExprStmt, scope: Scope) -> None:
        value = self.eval(node.expr, scope)
        if self.depth == 0:
            self.completion = value

    def exec_Empty(self, node: n.Empty, scope: Scope) -> None:
        return None

    def exec_VarDecl(self, node: n.VarDecl, scope: Scope) -> None:
        for decl in node.declarations:
            name = decl.target.name if isinstance(decl.target, n.Ident) else ""
            if node.kind == "var":
                if decl.init is not None:
                    self.bind_pattern(decl.target, self.eval_named(decl.init, scope, name), scope, None)
                continue
            value = UNDEFINED if decl.init is None else self.eval_named(decl.init, scope, name)
            self.bind_pattern(decl.target, value, scope, node.kind)

    def exec_FunctionDecl(self, node: n.FunctionDecl, scope: Scope) -> None:
        return None

    def exec_ClassDecl(self, node: n.ClassDecl, scope: Scope) -> None:
        self.initialize(scope, node.cls.name, self.make_class(node.cls, scope), "class")

    def exec_Block(self, node: n.Block, scope: Scope) -> Any:
        inner = scope
        if node.lexicals or node.functions:
            inner = Scope(scope)
            self.hoist(inner, (), node.lexicals, node.functions)
        return self.exec_list(node.body, inner)

    def exec_If(self, node: n.If, scope: Scope) -> Any:
        if to_boolean(self.eval(node.test, scope)):
            return self.exec(node.consequent, scope)
        if node.alternate is not None:
            return self.exec(node.alternate, scope)
        return None

    def exec_While(self, node: n.While, scope: Scope) -> Any:
        while True:
            self.step(node.line)
            if not to_boolean(self.eval(node.test, scope)):
                return None
            signal = self.exec(node.body, scope)
            if signal is BREAK:
                return None
            if signal is not None and signal is not CONTINUE:
                return signal

    def exec_DoWhile(self, node: n.DoWhile, scope: Scope) -> Any:
        while True:
            self.step(node.line)
            signal = self.exec(node.body, scope)
            if signal is BREAK:
                return None
            if signal is not None and signal is not CONTINUE:
                return signal
            if not to_boolean(self.eval(node.test, scope)):
                return None

    @staticmethod
    def _next_iteration(current: Scope, parent: Scope, names: list[str]) -> Scope:
        if not names:
            return current
        fresh = Scope(parent)
        for name in names:
            binding = current.vars[name]
            fresh.declare(name, binding.kind, binding.value, binding.initialized)
        return fresh

    def exec_For(self, node: n.For, scope: Scope) -> Any:
        loop_scope = scope
        per_iteration: list[str] = []
        init = node.init
        if isinstance(init, n.VarDecl) and init.kind != "var":
            loop_scope = Scope(scope)
            names = [name for decl in init.declarations for name in n.bound_names(decl.target)]
            for name in names:
                loop_scope.declare(name, init.kind, UNDEFINED, initialized=False)
            if init.kind == "let":
                per_iteration = names
        if isinstance(init, n.ExprStmt):
            self.eval(init.expr, loop_scope)
        elif init is not None:
            self.exec(init, loop_scope)
        current = self._next_iteration(loop_scope, scope, per_iteration)
        while True:
            self.step(node.line)
            if node.test is not None and not to_boolean(self.eval(node.test, current)):
                return None
            signal = self.exec(node.body, current)
            if signal is BREAK:
                return None
            if signal is not None and signal is not CONTINUE:
                return signal
            current = self._next_iteration(current, scope, per_iteration)
            if node.update is not None:
                self.eval(node.update, current)

    def exec_ForEach(self, node: n.ForEach, scope: Scope) -> Any:
        subject = self.eval(node.iterable, scope)
        source = self.iterate(subject) if node.over == "of" else iter(self.enumerate_keys(subject))
        for value in source:
            self.step(node.line)
            if node.kind in ("let", "const"):
                body_scope = Scope(scope)
                self.bind_pattern(node.target, value, body_scope, node.kind)
            else:
                body_scope = scope
                self.bind_pattern(node.target, value, scope, None)
            signal = self.exec(node.body, body_scope)
            if signal is BREAK:
                return None
            if signal is not None and signal is not CONTINUE:
                return signal
        return None

    def exec_Switch(self, node: n.Switch, scope: Scope) -> Any:
        subject = self.eval(node.discriminant, scope)
        inner = scope
        if node.lexicals or node.functions:
            inner = Scope(scope)
            self.hoist(inner, (), node.lexicals, node.functions)
        start = -1
        for idx, case in enumerate(node.cases):
            if case.test is not None and strict_equals(subject, self.eval(case.test, inner)):
                start = idx
                break
        if start < 0:
            start = next((idx for idx, case in enumerate(node.cases) if case.test is None), -1)
            if start < 0:
                return None
        for case in node.cases[start:]:
            signal = self.exec_list(case.body, inner)
            if signal is BREAK:
                return None
            if signal is not None:
                return signal
        return None

    def exec_Break(self, node: n.Break, scope: Scope) -> Any:
        return BREAK

    def exec_Continue(self, node: n.Continue, scope: Scope) -> Any:
        return CONTINUE

    def exec_Return(self, node: n.Return, scope: Scope) -> Any:
        return ReturnSignal(UNDEFINED if node.arg is None else self.eval(node.arg, scope))

    def exec_Throw(self, node: n.Throw, scope: Scope) -> Any:
        raise JSThrow(self.eval(node.arg, scope), node.line)

    def exec_Try(self, node: n.Try, scope: Scope) -> Any:
        try:
            signal = self._guarded_block(node, scope)
        except JSThrow:
            if node.finalizer is not None:
                final = self.exec_Block(node.finalizer, scope)
                if final is not None:
                    return final
            raise
        if node.finalizer is not None:
            final = self.exec_Block(node.finalizer, scope)
            if final is not None:
                return final
        return signal

    def _guarded_block(self, node: n.Try, scope: Scope) -> Any:
        if node.handler is None:
            return self.exec_Block(node.block, scope)
        try:
            return self.exec_Block(node.block, scope)
        except JSThrow as exc:
            catch_scope = Scope(scope)
            if node.param is not None:
                self.bind_pattern(node.param, exc.value, catch_scope, "let")
            return self.exec_Block(node.handler, catch_scope)

    # -- expressions ------------------------------------------------------------

    def eval(self, node: n.Node, scope: Scope) -> Any:
        self.step(node.line)
        return self._eval_table[type(node)](node, scope)

    def eval_named(self, node: n.Node, scope: Scope, name: str) -> Any:
        if name and isinstance(node, n.FunctionNode) and not node.name:
            self.step(node.line)
            return Closure(node, scope, self.realm, name=name)
        if name and isinstance(node, n.ClassNode) and not node.name:
            self.step(node.line)
            return self.make_class(node, scope, name)
        return self.eval(node, scope)

    def eval_Literal(self, node: n.Literal, scope: Scope) -> Any:
        return node.value

    def eval_TemplateLit(self, node: n.TemplateLit, scope: Scope) -> Any:
        parts = [node.quasis[0]]
        for expr, quasi in zip(node.exprs, node.quasis[1:]):
            parts.append(to_string(self.eval(expr, scope), self))
            parts.append(quasi)
        self.check_string_length(sum(len(part) for part in parts))
        return "".join(parts)

    def eval_Ident(self, node: n.Ident, scope: Scope) -> Any:
        return self.lookup_name(node.name, scope)

    def eval_This(self, node: n.This, scope: Scope) -> Any:
        this = scope.frame.this
        if this is None:
            self.throw("ReferenceError", SUPER_THIS_MESSAGE)
        return this

    def eval_ArrayLit(self, node: n.ArrayLit, scope: Scope) -> Any:
        items: list[Any] = []
        holes: list[int] = []
        for element in node.elements:
            if element is None:
                holes.append(len(items))
                items.append(UNDEFINED)
            elif isinstance(element, n.Spread):
                for item in self.iterate(self.eval(element.arg, scope)):
                    items.append(item)
                    self.check_array_length(len(items))
            else:
                items.append(self.eval(element, scope))
        arr = self.realm.array(items)
        for idx in holes:
            arr.mark_holes(idx, idx + 1)
        return arr

    def eval_ObjectLit(self, node: n.ObjectLit, scope: Scope) -> Any:
        obj = self.realm.object()
        for prop in node.props:
            if prop.kind == "spread":
                self.copy_data_properties(obj, self.eval(prop.value, scope))
                continue
            assert prop.key is not None
            key = self.property_key(prop.key, prop.computed, scope)
            name = _key_text(key)
            if prop.kind in ("get", "set"):
                assert isinstance(prop.value, n.FunctionNode)
                fn = Closure(prop.value, scope, self.realm, name=name, home=obj)
                slot = obj.props.get(key)
                accessor = slot if isinstance(slot, Accessor) else Accessor()
                if prop.kind == "get":
                    accessor.get = fn
                else:
                    accessor.set = fn
                obj.define(key, accessor)
                continue
            if prop.shorthand and isinstance(prop.value, n.Assign):
                raise JSThrow(self.realm.make_error("SyntaxError", "Invalid shorthand property initializer"), prop.line)
            if isinstance(prop.value, n.FunctionNode) and prop.value.kind == "method":
                value: Any = Closure(prop.value, scope, self.realm, name=name, home=obj)
            else:
                value = self.eval_named(prop.value, scope, name)
            if key == "__proto__" and not prop.computed and not prop.shorthand:
                if isinstance(value, JSObject) or value is NULL:
                    obj.proto = value if isinstance(value, JSObject) else None
                continue
            obj.define(key, value)
        return obj

    def eval_FunctionNode(self, node: n.FunctionNode, scope: Scope) -> Any:
        if node.name and not node.is_arrow:
            inner = Scope(scope)
            fn = Closure(node, inner, self.realm)
            inner.declare(node.name, "function", fn)
            return fn
        return Closure(node, scope, self.realm)

    def eval_ClassNode(self, node: n.ClassNode, scope: Scope) -> Any:
        return self.make_class(node, scope)

    def eval_Sequence(self, node: n.Sequence, scope: Scope) -> Any:
        value: Any = UNDEFINED
        for expr in node.exprs:
            value = self.eval(expr, scope)
        return value

    def eval_Conditional(self, node: n.Conditional, scope: Scope) -> Any:
        if to_boolean(self.eval(node.test, scope)):
            return self.eval(node.consequent, scope)
        return self.eval(node.alternate, scope)

    def eval_Logical(self, node: n.Logical, scope: Scope) -> Any:
        left = self.eval(node.left, scope)
        if node.op == "&&":
            return self.eval(node.right, scope) if to_boolean(left) else left
        if node.op == "||":
            return left if to_boolean(left) else self.eval(node.right, scope)
        return self.eval(node.right, scope) if is_nullish(left) else left

    def eval_Unary(self, node: n.Unary, scope: Scope) -> Any:
        op = node.op
        if op == "typeof":
            if isinstance(node.arg, n.Ident):
                binding = scope.lookup(node.arg.name)
                if binding is None:
                    found, value = self._global_lookup(node.arg.name)
                    return typeof(value) if found else "undefined"
            return typeof(self.eval(node.arg, scope))
        if op == "delete":
            return self._delete(node.arg, scope)
        value = self.eval(node.arg, scope)
        if op == "!":
            return not to_boolean(value)
        if op == "-":
            return -to_number(value, self)
        if op == "+":
            return to_number(value, self)
        if op == "~":
            return float(~to_int32(to_number(value, self)))
        return UNDEFINED  # void

    def _delete(self, target: n.Node, scope: Scope) -> bool:
        if isinstance(target, n.Member):
            obj = self.eval(target.obj, scope)
            key = self.member_key(target, scope)
            if is_nullish(obj):
                self.throw("TypeError", "Cannot convert undefined or null to object")
            if isinstance(obj, JSObject):
                return obj.delete_slot(key)
            return True
        if isinstance(target, n.Ident):
            return False
        self.eval(target, scope)
        return True

    def binary(self, op: str, left: Any, right: Any) -> Any:
        if op == "+":
            return add(left, right, self)
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right, self)
        if op == "!=":
            return not loose_equals(left, right, self)
        if op == "<":
            return compare(left, right, self) is True
        if op == ">":
            return compare(right, left, self) is True
        if op == "<=":
            return compare(right, left, self) is False
        if op == ">=":
            return compare(left, right, self) is False
        if op == "instanceof":
            return self.instance_of(left, right)
        if op == "in":
            if not isinstance(right, JSObject):
                self.throw(
                    "TypeError", f"Cannot use 'in' operator to search for '{to_string(left, self)}' in {to_string(right, self)}"
                )
            return right.has_property(to_property_key(left, self))
        lnum = to_number(left, self)
        rnum = to_number(right, self)
        if op == "-":
            return lnum - rnum
        if op == "*":
            return lnum * rnum
        if op == "/":
            return divide(lnum, rnum)
        if op == "%":
            return remainder(lnum, rnum)
        if op == "**":
            return power(lnum, rnum)
        if op == "&":
            return float(to_int32(float(to_int32(lnum) & to_int32(rnum))))
        if op == "|":
            return float(to_int32(float(to_int32(lnum) | to_int32(rnum))))
        if op == "^":
            return float(to_int32(float(to_int32(lnum) ^ to_int32(rnum))))
        if op == "<<":
            return float(to_int32(float(to_int32(lnum) << (to_uint32(rnum) & 31))))
        if op == ">>":
            return float(to_int32(lnum) >> (to_uint32(rnum) & 31))
        if op == ">>>":
            return float(to_uint32(lnum) >> (to_uint32(rnum) & 31))
        raise JSThrow(self.realm.make_error("SyntaxError", f"Unknown operator {op}"), self.line)

    def eval_Binary(self, node: n.Binary, scope: Scope) -> Any:
        left = self.eval(node.left, scope)
        right = self.eval(node.right, scope)
        return self.binary(node.op, left, right)

    def instance_of(self, value: Any, ctor: Any) -> bool:
        if not isinstance(ctor, JSFunction):
            self.throw("TypeError", "Right-hand side of 'instanceof' is not callable")
        if not isinstance(value, JSObject):
            return False
        target = getattr(ctor, "target", None)
        if isinstance(target, JSFunction):
            return self.instance_of(value, target)
        proto = self.get_property(ctor, "prototype")
        obj = value.proto
        while obj is not None:
            if obj is proto:
                return True
            obj = obj.proto
        return False

    def reference(self, target: n.Node, scope: Scope) -> tuple[Any, object]:
        if isinstance(target, n.SuperMember):
            return scope.frame.this, self.property_key(target.prop, target.computed, scope)
        assert isinstance(target, n.Member)
        obj = self.eval(target.obj, scope)
        return obj, self.member_key(target, scope)

    def eval_Assign(self, node: n.Assign, scope: Scope) -> Any:
        target = node.target
        op = node.op
        if op == "=":
            if isinstance(target, n.Ident):
                value = self.eval_named(node.value, scope, target.name)
                self.assign_name(target.name, value, scope)
                return value
            if isinstance(target, (n.Member, n.SuperMember)):
                obj, key = self.reference(target, scope)
                value = self.eval(node.value, scope)
                self.set_property(obj, key, value)
                return value
            value = self.eval(node.value, scope)
            self.bind_pattern(target, value, scope, None)
            return value
        if isinstance(target, n.Ident):
            current = self.lookup_name(target.name, scope)

            def store(result: Any) -> None:
                self.assign_name(target.name, result, scope)

        else:
            obj, key = self.reference(target, scope)
            current = self.get_property(obj, key)

            def store(result: Any) -> None:
                self.set_property(obj, key, result)

        if op in ("&&=", "||=", "??="):
            if op == "&&=" and not to_boolean(current):
                return current
            if op == "||=" and to_boolean(current):
                return current
            if op == "??=" and not is_nullish(current):
                return current
            value = self.eval(node.value, scope)
            store(value)
            return value
        value = self.binary(op[:-1], current, self.eval(node.value, scope))
        store(value)
        return value

    def eval_Update(self, node: n.Update, scope: Scope) -> Any:
        target = node.target
        delta = 1.0 if node.op == "++" else -1.0
        if isinstance(target, n.Ident):
            old = to_number(self.lookup_name(target.name, scope), self)
            self.assign_name(target.name, old + delta, scope)
        else:
            obj, key = self.reference(target, scope)
            old = to_number(self.get_property(obj, key), self)
            self.set_property(obj, key, old + delta)
        return old + delta if node.prefix else old

    # -- members and calls -------------------------------------------------------

    def property_key(self, key: n.Node, computed: bool, scope: Scope) -> object:
        if computed:
            return to_property_key(self.eval(key, scope), self)
        assert isinstance(key, n.Literal)
        value = key.value
        return value if isinstance(value, str) else to_property_key(value, self)

    def member_key(self, node: n.Member, scope: Scope) -> object:
        return self.property_key(node.prop, node.computed, scope)

    def get_property(self, obj: Any, key: object) -> Any:
        if isinstance(obj, JSObject):
            holder = obj
        elif isinstance(obj, str):
            if key == "length":
                return float(len(obj))
            if is_index(key):
                idx = int(str(key))
                return obj[idx] if idx < len(obj) else UNDEFINED
            holder = self.realm.string_proto
        elif isinstance(obj, bool):
            holder = self.realm.boolean_proto
        elif isinstance(obj, float):
            holder = self.realm.number_proto
        elif isinstance(obj, Symbol):
            if key == "description":
                return obj.description
            holder = self.realm.symbol_proto
        else:
            self.throw("TypeError", f"Cannot read properties of {to_string(obj)} (reading '{_key_text(key)}')")
            return UNDEFINED
        _, slot = holder.lookup(key)
        if slot is MISSING:
            return UNDEFINED
        if isinstance(slot, Accessor):
            return self.call(slot.get, obj, []) if slot.get else UNDEFINED
        return slot

    get = get_property

    def set_property(self, obj: Any, key: object, value: Any) -> None:
        if is_nullish(obj):
            self.throw("TypeError", f"Cannot set properties of {to_string(obj)} (setting '{_key_text(key)}')")
        if not isinstance(obj, JSObject):
            return
        _, slot = obj.lookup(key)
        if isinstance(slot, Accessor):
            if slot.set is not None:
                self.call(slot.set, obj, [value])
            return
        if obj.frozen or (not obj.extensible and not obj.has_own(key)):
            return
        if isinstance(obj, JSArray) and key == "length":
            size = to_number(value, self)
            if size < 0 or not size.is_integer() or size > MAX_ARRAY_LENGTH:
                self.throw("RangeError", "Invalid array length")
            obj.set_slot(key, size)
            return
        if isinstance(obj, JSArray) and is_index(key) and int(str(key)) >= MAX_ARRAY_LENGTH:
            self.throw("RangeError", "Invalid array length")
        obj.set_slot(key, value)

    def copy_data_properties(self, target: JSObject, source: Any, exclude: Optional[list[object]] = None) -> None:
        skip = exclude or []
        if isinstance(source, str):
            for idx, char in enumerate(source):
                target.define(str(idx), char)
            return
        if not isinstance(source, JSObject):
            return
        for key in source.own_keys(symbols=True):
            if key not in skip:
                target.define(key, self.get_property(source, key))

    def enumerate_keys(self, value: Any) -> list[str]:
        if isinstance(value, str):
            return [str(idx) for idx in range(len(value))]
        if not isinstance(value, JSObject):
            return []
        keys: list[str] = []
        seen: set[object] = set()
        obj: Optional[JSObject] = value
        while obj is not None:
            for key in obj.own_keys(include_hidden=True):
                if key in seen:
                    continue
                seen.add(key)
                if key not in obj.hidden and not (isinstance(obj, JSArray) and key == "length"):
                    keys.append(str(key))
            obj = obj.proto
        return keys

    def iterate(self, value: Any) -> Iterator[Any]:
        if isinstance(value, JSArray):
            idx = 0
            while idx < len(value.items):
                yield value.items[idx]
                idx += 1
            return
        if isinstance(value, str):
            yield from code_points(value)
            return
        if isinstance(value, JSIterator):
            yield from value.source
            return
        if isinstance(value, JSMap):
            for key, item in list(value.entries.values()):
                yield self.realm.array([key, item])
            return
        if isinstance(value, JSSet):
            yield from list(value.entries.values())
            return
        if isinstance(value, JSObject):
            method = self.get_property(value, SYMBOL_ITERATOR)
            if isinstance(method, JSFunction):
                iterator = self.call(method, value, [])
                next_fn = self.get_property(iterator, "next")
                while True:
                    result = self.call(next_fn, iterator, [])
                    if not isinstance(result, JSObject):
                        self.throw("TypeError", f"Iterator result {inspect(result)} is not an object")
                    if to_boolean(self.get_property(result, "done")):
                        return
                    yield self.get_property(result, "value")
        self.throw("TypeError", f"{inspect(value, depth=0)} is not iterable")

    def eval_Member(self, node: n.Member, scope: Scope) -> Any:
        obj = self.eval(node.obj, scope)
        if node.optional and is_nullish(obj):
            raise _ShortCircuit()
        if node.computed:
            raw = self.eval(node.prop, scope)
            if isinstance(obj, JSArray) and isinstance(raw, float) and raw.is_integer() and 0 <= raw < len(obj.items):
                return obj.items[int(raw)]
            key = to_property_key(raw, self)
        else:
            key = node.prop.value  # type: ignore[attr-defined]
        return self.get_property(obj, key)

    def eval_OptionalChain(self, node: n.OptionalChain, scope: Scope) -> Any:
        try:
            return self.eval(node.expr, scope)
        except _ShortCircuit:
            return UNDEFINED

    def eval_SuperMember(self, node: n.SuperMember, scope: Scope) -> Any:
        home = scope.frame.home
        if home is None:
            raise JSThrow(self.realm.make_error("SyntaxError", "'super' keyword unexpected here"), node.line)
        key = self.property_key(node.prop, node.computed, scope)
        if home.proto is None:
            return UNDEFINED
        _, slot = home.proto.lookup(key)
        if slot is MISSING:
            return UNDEFINED
        if isinstance(slot, Accessor):
            return self.call(slot.get, scope.frame.this, []) if slot.get else UNDEFINED
        return slot

    def eval_args(self, args: tuple[n.Node, ...], scope: Scope) -> list[Any]:
        values: list[Any] = []
        for arg in args:
            if isinstance(arg, n.Spread):
                values.extend(self.iterate(self.eval(arg.arg, scope)))
            else:
                values.append(self.eval(arg, scope))
        return values

    def eval_Call(self, node: n.Call, scope: Scope) -> Any:
        callee = node.callee
        this: Any = UNDEFINED
        if isinstance(callee, n.Member):
            self.step(callee.line)
            this = self.eval(callee.obj, scope)
            if callee.optional and is_nullish(this):
                raise _ShortCircuit()
            fn = self.get_property(this, self.member_key(callee, scope))
        elif isinstance(callee, n.SuperMember):
            fn = self.eval(callee, scope)
            this = scope.frame.this
        else:
            fn = self.eval(callee, scope)
        if node.optional and is_nullish(fn):
            raise _ShortCircuit()
        args = self.eval_args(node.args, scope)
        if not isinstance(fn, JSFunction):
            self.throw("TypeError", f"{_callee_text(callee)} is not a function")
        self.line = node.line
        return self.call(fn, this, args)

    def eval_New(self, node: n.New, scope: Scope) -> Any:
        ctor = self.eval(node.callee, scope)
        args = self.eval_args(node.args, scope)
        if not isinstance(ctor, JSFunction) or not ctor.can_construct:
            self.throw("TypeError", f"{_callee_text(node.callee)} is not a constructor")
        self.line = node.line
        return self.construct(ctor, args)

    def eval_SuperCall(self, node: n.SuperCall, scope: Scope) -> Any:
        frame = scope.frame
        cls = frame.cls
        if cls is None or cls.parent is None:
            raise JSThrow(self.realm.make_error("SyntaxError", "'super' keyword unexpected here"), node.line)
        if frame.this is not None:
            self.throw("ReferenceError", "Super constructor may only be called once")
        args = self.eval_args(node.args, scope)
        this = self.construct(cls.parent, args, frame.new_target)
        frame.this = this
        self.init_fields(cls, this)
        return UNDEFINED

    def call(self, fn: Any, this: Any, args: list[Any]) -> Any:
        if isinstance(fn, NativeFunction):
            if fn.capability:
                self.require_capability(fn.capability)
            return fn.impl(self, this, args)
        if isinstance(fn, Closure):
            return self.invoke(fn, this, args)
        if isinstance(fn, ClassFunction):
            self.throw("TypeError", f"Class constructor {fn.name} cannot be invoked without 'new'")
        self.throw("TypeError", f"{inspect(fn, depth=0)} is not a function")
        return UNDEFINED

    def invoke(
        self,
        fn: Closure,
        this: Any,
        args: list[Any],
        new_target: Any = UNDEFINED,
        cls: Optional[ClassFunction] = None,
        frame: Optional[Frame] = None,
    ) -> Any:
        node = fn.node
        self.depth += 1
        try:
            if self.depth > MAX_CALL_DEPTH:
                self.throw("RangeError", "Maximum call stack size exceeded")
            if node.is_arrow:
                scope = Scope(fn.scope, fn.frame)
            else:
                if frame is None:
                    if is_nullish(this) and not fn.strict:
                        this = self.realm.global_object
                    frame = Frame(this, fn, fn.home, new_target, cls)
                scope = Scope(fn.scope, frame)
                scope.declare("arguments", "var", self.realm.arguments(args))
            self.bind_params(node.params, scope, args)
            if node.expression_body is not None:
                return self.eval(node.expression_body, scope)
            self.hoist(scope, node.var_names, node.lexicals, node.functions)
            signal = self.exec_list(node.body, scope)
            if isinstance(signal, ReturnSignal):
                return signal.value
            return UNDEFINED
        finally:
            self.depth -= 1

    def bind_params(self, params: tuple[n.Param, ...], scope: Scope, args: list[Any]) -> None:
        for param in params:
            for name in n.bound_names(param.target):
                scope.declare(name, "let", UNDEFINED)
        for idx, param in enumerate(params):
            if param.rest:
                value: Any = self.realm.array(args[idx:])
            else:
                value = args[idx] if idx < len(args) else UNDEFINED
                if value is UNDEFINED and param.default is not None:
                    name = param.target.name if isinstance(param.target, n.Ident) else ""
                    value = self.eval_named(param.default, scope, name)
            self.bind_pattern(param.target, value, scope, "let")

    def construct(self, fn: JSFunction, args: list[Any], new_target: Any = None) -> Any:
        if new_target is None:
            new_target = fn
        if isinstance(fn, ClassFunction):
            return self._construct_class(fn, args, new_target)
        if isinstance(fn, NativeFunction) and fn.ctor is not None:
            if fn.capability:
                self.require_capability(fn.capability)
            return fn.ctor(self, args, new_target)
        if isinstance(fn, Closure) and fn.can_construct:
            obj = JSObject(self._prototype_for(new_target))
            result = self.invoke(fn, obj, args, new_target)
            return result if isinstance(result, JSObject) else obj
        self.throw("TypeError", f"{fn.name or 'anonymous'} is not a constructor")
        return UNDEFINED

    def _prototype_for(self, new_target: Any) -> JSObject:
        proto = self.get_property(new_target, "prototype")
        return proto if isinstance(proto, JSObject) else self.realm.object_proto

    def _construct_class(self, cls: ClassFunction, args: list[Any], new_target: Any) -> Any:
        if cls.parent is None:
            this = JSObject(self._prototype_for(new_target))
            self.init_fields(cls, this)
            if cls.ctor is None:
                return this
            frame = Frame(this, cls.ctor, cls.ctor.home, new_target, cls)
            result = self.invoke(cls.ctor, this, args, new_target, cls, frame)
            return result if isinstance(result, JSObject) else this
        if cls.ctor is None:
            this = self.construct(cls.parent, args, new_target)
            self.init_fields(cls, this)
            return this
        frame = Frame(None, cls.ctor, cls.ctor.home, new_target, cls)
        result = self.invoke(cls.ctor, None, args, new_target, cls, frame)
        if isinstance(result, JSObject):
            return result
        if frame.this is None:
            self.throw("ReferenceError", SUPER_THIS_MESSAGE)
        return frame.this

    def init_fields(self, cls: ClassFunction, this: Any) -> None:
        if not cls.fields:
            return
        home = self.get_property(cls, "prototype")
        for key, expr in cls.fields:
            value = UNDEFINED
            if expr is not None:
                value = self.eval(expr, Scope(cls.scope, Frame(this, None, home, UNDEFINED, cls)))
            if isinstance(this, JSObject):
                this.define(key, value)

    def make_class(self, node: n.ClassNode, scope: Scope, name: str = "") -> ClassFunction:
        name = node.name or name
        parent: Optional[JSFunction] = None
        proto_parent: Optional[JSObject] = self.realm.object_proto
        if node.superclass is not None:
            base = self.eval(node.superclass, scope)
            if base is NULL:
                proto_parent = None
            elif isinstance(base, JSFunction) and base.can_construct:
                parent = base
                parent_proto = self.get_property(base, "prototype")
                proto_parent = parent_proto if isinstance(parent_proto, JSObject) else None
            else:
                self.throw("TypeError", f"Class extends value {inspect(base, depth=0)} is not a constructor or null")
        class_scope = Scope(scope)
        cls = ClassFunction(name, self.realm, parent, class_scope)
        cls.source = node.source
        proto = JSObject(proto_parent)
        cls.define("prototype", proto, enumerable=False)
        proto.define("constructor", cls, enumerable=False)
        if node.name:
            class_scope.declare(node.name, "const", cls)
        if node.constructor is not None:
            cls.ctor = Closure(node.constructor, class_scope, self.realm, name=name, home=proto, strict=True)
            cls.define("length", float(_param_length(node.constructor.params)), enumerable=False)
        static_fields: list[tuple[object, Optional[n.Node]]] = []
        for member in node.members:
            target: JSObject = cls if member.static else proto
            key = self.property_key(member.name, member.computed, class_scope)
            if member.kind == "field":
                (static_fields if member.static else cls.fields).append((key, member.value))
                continue
            assert isinstance(member.value, n.FunctionNode)
            fn = Closure(member.value, class_scope, self.realm, name=_key_text(key), home=target, strict=True)
            if member.kind == "method":
                target.define(key, fn, enumerable=False)
                continue
            slot = target.props.get(key)
            accessor = slot if isinstance(slot, Accessor) else Accessor()
            if member.kind == "get":
                accessor.get = fn
            else:
                accessor.set = fn
            target.define(key, accessor, enumerable=False)
        for key, expr in static_fields:
            value = UNDEFINED
            if expr is not None:
                value = self.eval(expr, Scope(class_scope, Frame(cls, None, cls, UNDEFINED, None)))
            cls.define(key, value)
        return cls


__all__ = [
    "CancelFlag",
    "Cancelled",
    "CapabilityDenied",
    "ClassFunction",
    "Closure",
    "Interpreter",
    "StepBudgetExceeded",
]
