"""Syntax tree for the snippet language.

Every node records the 1-based source line it starts on. Scope-bearing nodes
(`Program`, `Block`, `FunctionNode`, `Switch`) carry the declarations the
interpreter hoists when entering them: `lexicals` are `(name, kind)` pairs for
let/const/class, `functions` are function declarations instantiated on entry,
and `var_names` (program and functions only) are the function-scoped names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Node:
    line: int


# -- patterns ---------------------------------------------------------------


@dataclass(frozen=True)
class Ident(Node):
    name: str


@dataclass(frozen=True)
class AssignPattern(Node):
    target: Node
    default: Node


@dataclass(frozen=True)
class ArrayPattern(Node):
    elements: tuple[Optional[Node], ...]
    rest: Optional[Node] = None


@dataclass(frozen=True)
class PatternProp(Node):
    key: Node
    computed: bool
    target: Node


@dataclass(frozen=True)
class ObjectPattern(Node):
    props: tuple[PatternProp, ...]
    rest: Optional[Node] = None


# -- expressions ------------------------------------------------------------


@dataclass(frozen=True)
class Literal(Node):
    value: object


@dataclass(frozen=True)
class TemplateLit(Node):
    quasis: tuple[str, ...]
    exprs: tuple[Node, ...]


@dataclass(frozen=True)
class Spread(Node):
    arg: Node


@dataclass(frozen=True)
class ArrayLit(Node):
    elements: tuple[Optional[Node], ...]


@dataclass(frozen=True)
class Prop(Node):
    kind: str  # init | get | set | spread
    key: Optional[Node]
    computed: bool
    value: Node
    shorthand: bool = False


@dataclass(frozen=True)
class ObjectLit(Node):
    props: tuple[Prop, ...]


@dataclass(frozen=True)
class Param(Node):
    target: Node
    default: Optional[Node] = None
    rest: bool = False


@dataclass(frozen=True)
class FunctionNode(Node):
    name: str
    params: tuple[Param, ...]
    body: tuple[Node, ...]
    is_arrow: bool = False
    expression_body: Optional[Node] = None
    source: str = ""
    var_names: tuple[str, ...] = ()
    lexicals: tuple[tuple[str, str], ...] = ()
    functions: tuple["FunctionDecl", ...] = ()
    kind: str = "function"  # function | method | getter | setter | constructor


@dataclass(frozen=True)
class ClassMember(Node):
    name: Node
    computed: bool
    static: bool
    kind: str  # method | get | set | field
    value: Optional[Node]


@dataclass(frozen=True)
class ClassNode(Node):
    name: str
    superclass: Optional[Node]
    constructor: Optional[FunctionNode]
    members: tuple[ClassMember, ...]
    source: str = ""


@dataclass(frozen=True)
class This(Node):
    pass


@dataclass(frozen=True)
class SuperCall(Node):
    args: tuple[Node, ...]


@dataclass(frozen=True)
class SuperMember(Node):
    prop: Node
    computed: bool


@dataclass(frozen=True)
class Unary(Node):
    op: str
    arg: Node


@dataclass(frozen=True)
class Update(Node):
    op: str
    prefix: bool
    target: Node


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Assign(Node):
    op: str
    target: Node
    value: Node


@dataclass(frozen=True)
class Conditional(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass(frozen=True)
class Member(Node):
    obj: Node
    prop: Node
    computed: bool
    optional: bool = False


@dataclass(frozen=True)
class Call(Node):
    callee: Node
    args: tuple[Node, ...]
    optional: bool = False


@dataclass(frozen=True)
class OptionalChain(Node):
    expr: Node


@dataclass(frozen=True)
class New(Node):
    callee: Node
    args: tuple[Node, ...]


@dataclass(frozen=True)
class Sequence(Node):
    exprs: tuple[Node, ...]


# -- statements -------------------------------------------------------------


@dataclass(frozen=True)
class Declarator(Node):
    target: Node
    init: Optional[Node]


@dataclass(frozen=True)
class VarDecl(Node):
    kind: str  # var | let | const
    declarations: tuple[Declarator, ...]


@dataclass(frozen=True)
class FunctionDecl(Node):
    func: FunctionNode


@dataclass(frozen=True)
class ClassDecl(Node):
    cls: ClassNode


@dataclass(frozen=True)
class ExprStmt(Node):
    expr: Node


@dataclass(frozen=True)
class Block(Node):
    body: tuple[Node, ...]
    lexicals: tuple[tuple[str, str], ...] = ()
    functions: tuple[FunctionDecl, ...] = ()


@dataclass(frozen=True)
class Empty(Node):
    pass


@dataclass(frozen=True)
class If(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node]


@dataclass(frozen=True)
class While(Node):
    test: Node
    body: Node


@dataclass(frozen=True)
class DoWhile(Node):
    body: Node
    test: Node


@dataclass(frozen=True)
class For(Node):
    init: Optional[Node]
    test: Optional[Node]
    update: Optional[Node]
    body: Node


@dataclass(frozen=True)
class ForEach(Node):
    """`for (x of xs)` when `over == "of"`, `for (k in obj)` when `over == "in"`."""

    over: str
    kind: str  # var | let | const | "" for a bare assignment target
    target: Node
    iterable: Node
    body: Node


@dataclass(frozen=True)
class Case(Node):
    test: Optional[Node]
    body: tuple[Node, ...]


@dataclass(frozen=True)
class Switch(Node):
    discriminant: Node
    cases: tuple[Case, ...]
    lexicals: tuple[tuple[str, str], ...] = ()
    functions: tuple[FunctionDecl, ...] = ()


@dataclass(frozen=True)
class Break(Node):
    pass


@dataclass(frozen=True)
class Continue(Node):
    pass


@dataclass(frozen=True)
class Return(Node):
    arg: Optional[Node]


@dataclass(frozen=True)
class Throw(Node):
    arg: Node


@dataclass(frozen=True)
class Try(Node):
    block: Block
    param: Optional[Node]
    handler: Optional[Block]
    finalizer: Optional[Block]


@dataclass(frozen=True)
class Program(Node):
    body: tuple[Node, ...]
    var_names: tuple[str, ...] = ()
    lexicals: tuple[tuple[str, str], ...] = ()
    functions: tuple[FunctionDecl, ...] = ()


def bound_names(pattern: Node) -> list[str]:
    if isinstance(pattern, Ident):
        return [pattern.name]
    if isinstance(pattern, AssignPattern):
        return bound_names(pattern.target)
    if isinstance(pattern, ArrayPattern):
        names: list[str] = []
        for element in pattern.elements:
            if element is not None:
                names.extend(bound_names(element))
        if pattern.rest is not None:
            names.extend(bound_names(pattern.rest))
        return names
    if isinstance(pattern, ObjectPattern):
        names = []
        for prop in pattern.props:
            names.extend(bound_names(prop.target))
        if pattern.rest is not None:
            names.extend(bound_names(pattern.rest))
        return names
    return []
