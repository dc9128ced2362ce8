from __future__ import annotations

from dataclasses import replace

from . import nodes as n
from .lexer import JSSyntaxError, Token, tokenize
from .values import NULL

BINARY_PRECEDENCE = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "|": 4,
    "^": 5,
    "&": 6,
    "==": 7, "!=": 7, "===": 7, "!==": 7,
    "<": 8, ">": 8, "<=": 8, ">=": 8, "instanceof": 8, "in": 8,
    "<<": 9, ">>": 9, ">>>": 9,
    "+": 10, "-": 10,
    "*": 11, "/": 11, "%": 11,
    "**": 12,
}
LOGICAL_OPS = frozenset({"&&", "||", "??"})
ASSIGN_OPS = frozenset(
    {"=", "+=", "-=", "*=", "/=", "%=", "**=", "<<=", ">>=", ">>>=", "&=", "|=", "^=", "&&=", "||=", "??="}
)


def _describe(tok: Token) -> str:
    if tok.kind == "eof":
        return "end of input"
    if tok.kind == "ident":
        return f"identifier '{tok.value}'"
    if tok.kind in ("num", "str", "template"):
        return "token"
    return f"token '{tok.value}'"


class Parser:
    def __init__(self, src: str, line_offset: int = 0) -> None:
        tokens = tokenize(src)
        if line_offset:
            tokens = [replace(tok, line=tok.line + line_offset) for tok in tokens]
        self.src = src
        self.tokens = tokens
        self.pos = 0
        self._var_stack: list[list[str]] = []
        self._no_in = False

    # -- token helpers ------------------------------------------------------

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != "eof":
            self.pos += 1
        return tok

    def at(self, value: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok.kind in ("punct", "keyword") and tok.value == value

    def at_word(self, word: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok.kind == "ident" and tok.value == word

    def eat(self, value: str) -> bool:
        if self.at(value):
            self.advance()
            return True
        return False

    def expect(self, value: str) -> Token:
        tok = self.peek()
        if not self.at(value):
            raise JSSyntaxError(f"Unexpected {_describe(tok)}, expected '{value}'", tok.line)
        return self.advance()

    def fail(self, tok: Token | None = None) -> JSSyntaxError:
        tok = tok or self.peek()
        return JSSyntaxError(f"Unexpected {_describe(tok)}", tok.line)

    def consume_semicolon(self) -> None:
        if self.eat(";"):
            return
        tok = self.peek()
        if tok.kind == "eof" or self.at("}") or tok.nl_before:
            return
        raise self.fail(tok)

    def identifier_name(self) -> str:
        tok = self.advance()
        if tok.kind not in ("ident", "keyword"):
            raise self.fail(tok)
        return str(tok.value)

    def binding_identifier(self) -> n.Ident:
        tok = self.advance()
        if tok.kind != "ident":
            raise self.fail(tok)
        return n.Ident(tok.line, str(tok.value))

    # -- scopes -------------------------------------------------------------

    def _declare_var(self, names: list[str]) -> None:
        if self._var_stack:
            self._var_stack[-1].extend(names)

    @staticmethod
    def _scope_decls(body: list[n.Node]) -> tuple[tuple[tuple[str, str], ...], tuple[n.FunctionDecl, ...]]:
        lexicals: list[tuple[str, str]] = []
        functions: list[n.FunctionDecl] = []
        seen: set[str] = set()
        for stmt in body:
            names: list[tuple[str, str]] = []
            if isinstance(stmt, n.VarDecl) and stmt.kind != "var":
                for decl in stmt.declarations:
                    names.extend((name, stmt.kind) for name in n.bound_names(decl.target))
            elif isinstance(stmt, n.ClassDecl):
                names.append((stmt.cls.name, "class"))
            elif isinstance(stmt, n.FunctionDecl):
                functions.append(stmt)
                continue
            for name, kind in names:
                if name in seen:
                    raise JSSyntaxError(f"Identifier '{name}' has already been declared", stmt.line)
                seen.add(name)
                lexicals.append((name, kind))
        for fn in functions:
            if fn.func.name in seen:
                raise JSSyntaxError(f"Identifier '{fn.func.name}' has already been declared", fn.line)
        return tuple(lexicals), tuple(functions)

    # -- program / statements -----------------------------------------------

    def parse_program(self) -> n.Program:
        self._var_stack.append([])
        body: list[n.Node] = []
        while self.peek().kind != "eof":
            body.append(self.parse_statement())
        var_names = tuple(dict.fromkeys(self._var_stack.pop()))
        lexicals, functions = self._scope_decls(body)
        return n.Program(1, tuple(body), var_names, lexicals, functions)

    def parse_statement(self) -> n.Node:
        tok = self.peek()
        if tok.kind == "punct":
            if tok.value == "{":
                return self.parse_block()
            if tok.value == ";":
                self.advance()
                return n.Empty(tok.line)
        if tok.kind == "keyword":
            word = tok.value
            if word in ("var", "const"):
                self.advance()
                decl = self.parse_var_declarations(str(word), tok.line)
                self.consume_semicolon()
                return decl
            if word == "function":
                self.advance()
                return n.FunctionDecl(tok.line, self.parse_function_rest(tok, require_name=True))
            if word == "class":
                self.advance()
                return n.ClassDecl(tok.line, self.parse_class_rest(tok, require_name=True))
            handler = getattr(self, f"_stmt_{word}", None)
            if handler is not None:
                self.advance()
                return handler(tok)
        if tok.kind == "ident" and tok.value == "let":
            nxt = self.peek(1)
            if nxt.kind == "ident" or (nxt.kind == "punct" and nxt.value in ("[", "{")):
                self.advance()
                decl = self.parse_var_declarations("let", tok.line)
                self.consume_semicolon()
                return decl
        expr = self.parse_expression()
        self.consume_semicolon()
        return n.ExprStmt(tok.line, expr)

    def parse_block(self) -> n.Block:
        start = self.expect("{")
        body: list[n.Node] = []
        while not self.at("}"):
            if self.peek().kind == "eof":
                raise self.fail()
            body.append(self.parse_statement())
        self.advance()
        lexicals, functions = self._scope_decls(body)
        return n.Block(start.line, tuple(body), lexicals, functions)

    def parse_var_declarations(self, kind: str, line: int, in_for: bool = False) -> n.VarDecl:
        declarations: list[n.Declarator] = []
        while True:
            target = self.parse_binding_target()
            init = None
            if self.eat("="):
                saved, self._no_in = self._no_in, in_for
                init = self.parse_assign()
                self._no_in = saved
            elif kind == "const" and not (in_for and (self.at_word("of") or self.at("in"))):
                raise JSSyntaxError("Missing initializer in const declaration", target.line)
            elif not isinstance(target, n.Ident) and not (in_for and (self.at_word("of") or self.at("in"))):
                raise JSSyntaxError("Missing initializer in destructuring declaration", target.line)
            declarations.append(n.Declarator(target.line, target, init))
            if kind == "var":
                self._declare_var(n.bound_names(target))
            if not self.eat(","):
                break
        return n.VarDecl(line, kind, tuple(declarations))

    def parse_binding_target(self) -> n.Node:
        if self.at("["):
            return self.parse_array_pattern()
        if self.at("{"):
            return self.parse_object_pattern()
        return self.binding_identifier()

    def parse_binding_element(self) -> n.Node:
        target = self.parse_binding_target()
        if self.eat("="):
            return n.AssignPattern(target.line, target, self.parse_assign())
        return target

    def parse_array_pattern(self) -> n.ArrayPattern:
        start = self.expect("[")
        elements: list[n.Node | None] = []
        rest = None
        while not self.at("]"):
            if self.eat(","):
                elements.append(None)
                continue
            if self.eat("..."):
                rest = self.parse_binding_target()
                break
            elements.append(self.parse_binding_element())
            if not self.at("]"):
                self.expect(",")
        self.expect("]")
        return n.ArrayPattern(start.line, tuple(elements), rest)

    def parse_object_pattern(self) -> n.ObjectPattern:
        start = self.expect("{")
        props: list[n.PatternProp] = []
        rest = None
        while not self.at("}"):
            if self.eat("..."):
                rest = self.binding_identifier()
                break
            key, computed = self.parse_property_key()
            if self.eat(":"):
                target = self.parse_binding_element()
            else:
                if computed or not isinstance(key, n.Literal) or not isinstance(key.value, str):
                    raise self.fail()
                target = n.Ident(key.line, key.value)
                if self.eat("="):
                    target = n.AssignPattern(key.line, target, self.parse_assign())
            props.append(n.PatternProp(key.line, key, computed, target))
            if not self.at("}"):
                self.expect(",")
        self.expect("}")
        return n.ObjectPattern(start.line, tuple(props), rest)

    def _stmt_if(self, tok: Token) -> n.Node:
        self.expect("(")
        test = self.parse_expression()
        self.expect(")")
        consequent = self.parse_statement()
        alternate = self.parse_statement() if self.eat("else") else None
        return n.If(tok.line, test, consequent, alternate)

    def _stmt_while(self, tok: Token) -> n.Node:
        self.expect("(")
        test = self.parse_expression()
        self.expect(")")
        return n.While(tok.line, test, self.parse_statement())

    def _stmt_do(self, tok: Token) -> n.Node:
        body = self.parse_statement()
        self.expect("while")
        self.expect("(")
        test = self.parse_expression()
        self.expect(")")
        self.eat(";")
        return n.DoWhile(tok.line, body, test)

    def _stmt_for(self, tok: Token) -> n.Node:
        self.expect("(")
        init: n.Node | None = None
        first = self.peek()
        is_let = first.kind == "ident" and first.value == "let"
        if self.at("var") or self.at("const") or is_let:
            kind = str(self.advance().value)
            target_start = self.pos
            target = self.parse_binding_target()
            if self.at_word("of") or self.at("in"):
                over = str(self.advance().value)
                if kind == "var":
                    self._declare_var(n.bound_names(target))
                return self._for_each(tok, over, kind, target)
            self.pos = target_start
            init = self.parse_var_declarations(kind, first.line, in_for=True)
        elif not self.at(";"):
            saved, self._no_in = self._no_in, True
            expr = self.parse_expression()
            self._no_in = saved
            if self.at_word("of") or self.at("in"):
                over = str(self.advance().value)
                return self._for_each(tok, over, "", self.to_pattern(expr))
            init = n.ExprStmt(first.line, expr)
        self.expect(";")
        test = None if self.at(";") else self.parse_expression()
        self.expect(";")
        update = None if self.at(")") else self.parse_expression()
        self.expect(")")
        return n.For(tok.line, init, test, update, self.parse_statement())

    def _for_each(self, tok: Token, over: str, kind: str, target: n.Node) -> n.Node:
        iterable = self.parse_assign() if over == "of" else self.parse_expression()
        self.expect(")")
        return n.ForEach(tok.line, over, kind, target, iterable, self.parse_statement())

    def _stmt_switch(self, tok: Token) -> n.Node:
        self.expect("(")
        disc = self.parse_expression()
        self.expect(")")
        self.expect("{")
        cases: list[n.Case] = []
        every: list[n.Node] = []
        while not self.eat("}"):
            case_tok = self.peek()
            if self.eat("case"):
                test: n.Node | None = self.parse_expression()
            elif self.eat("default"):
                test = None
            else:
                raise self.fail()
            self.expect(":")
            body: list[n.Node] = []
            while not (self.at("case") or self.at("default") or self.at("}")):
                if self.peek().kind == "eof":
                    raise self.fail()
                body.append(self.parse_statement())
            every.extend(body)
            cases.append(n.Case(case_tok.line, test, tuple(body)))
        lexicals, functions = self._scope_decls(every)
        return n.Switch(tok.line, disc, tuple(cases), lexicals, functions)

    def _stmt_break(self, tok: Token) -> n.Node:
        self.consume_semicolon()
        return n.Break(tok.line)

    def _stmt_continue(self, tok: Token) -> n.Node:
        self.consume_semicolon()
        return n.Continue(tok.line)

    def _stmt_return(self, tok: Token) -> n.Node:
        nxt = self.peek()
        if nxt.kind == "eof" or nxt.nl_before or self.at(";") or self.at("}"):
            self.eat(";")
            return n.Return(tok.line, None)
        arg = self.parse_expression()
        self.consume_semicolon()
        return n.Return(tok.line, arg)

    def _stmt_throw(self, tok: Token) -> n.Node:
        if self.peek().nl_before:
            raise JSSyntaxError("Illegal newline after throw", tok.line)
        arg = self.parse_expression()
        self.consume_semicolon()
        return n.Throw(tok.line, arg)

    def _stmt_try(self, tok: Token) -> n.Node:
        block = self.parse_block()
        param = handler = finalizer = None
        if self.eat("catch"):
            if self.eat("("):
                param = self.parse_binding_target()
                self.expect(")")
            handler = self.parse_block()
        if self.eat("finally"):
            finalizer = self.parse_block()
        if handler is None and finalizer is None:
            raise JSSyntaxError("Missing catch or finally after try", tok.line)
        return n.Try(tok.line, block, param, handler, finalizer)

    # -- functions and classes ----------------------------------------------

    def parse_params(self) -> tuple[n.Param, ...]:
        self.expect("(")
        params: list[n.Param] = []
        while not self.at(")"):
            start = self.peek()
            if self.eat("..."):
                params.append(n.Param(start.line, self.parse_binding_target(), None, True))
                break
            target = self.parse_binding_target()
            default = self.parse_assign() if self.eat("=") else None
            params.append(n.Param(start.line, target, default))
            if not self.at(")"):
                self.expect(",")
        self.expect(")")
        return tuple(params)

    def parse_function_body(self) -> tuple[tuple[n.Node, ...], tuple[str, ...], tuple, tuple, Token]:
        self.expect("{")
        self._var_stack.append([])
        saved, self._no_in = self._no_in, False
        body: list[n.Node] = []
        while not self.at("}"):
            if self.peek().kind == "eof":
                raise self.fail()
            body.append(self.parse_statement())
        end = self.advance()
        self._no_in = saved
        var_names = tuple(dict.fromkeys(self._var_stack.pop()))
        lexicals, functions = self._scope_decls(body)
        return tuple(body), var_names, lexicals, functions, end

    def parse_function_rest(self, start: Token, require_name: bool = False, kind: str = "function", name: str = "") -> n.FunctionNode:
        if self.peek().kind == "ident":
            name = str(self.advance().value)
        elif require_name:
            raise self.fail()
        params = self.parse_params()
        body, var_names, lexicals, functions, end = self.parse_function_body()
        source = self.src[start.pos : end.pos + 1]
        return n.FunctionNode(start.line, name, params, body, False, None, source, var_names, lexicals, functions, kind)

    def parse_method(self, start: Token, name: str, kind: str) -> n.FunctionNode:
        params = self.parse_params()
        body, var_names, lexicals, functions, end = self.parse_function_body()
        source = self.src[start.pos : end.pos + 1]
        return n.FunctionNode(start.line, name, params, body, False, None, source, var_names, lexicals, functions, kind)

    def parse_arrow(self) -> n.FunctionNode:
        start = self.peek()
        if start.kind == "ident":
            ident = self.binding_identifier()
            params: tuple[n.Param, ...] = (n.Param(ident.line, ident),)
        else:
            params = self.parse_params()
        arrow = self.expect("=>")
        if arrow.nl_before:
            raise self.fail(arrow)
        if self.at("{"):
            body, var_names, lexicals, functions, end = self.parse_function_body()
            source = self.src[start.pos : end.pos + 1]
            return n.FunctionNode(start.line, "", params, body, True, None, source, var_names, lexicals, functions)
        saved, self._no_in = self._no_in, False
        expr = self.parse_assign()
        self._no_in = saved
        source = self.src[start.pos : self.peek().pos].rstrip()
        return n.FunctionNode(start.line, "", params, (), True, expr, source)

    def _arrow_ahead(self) -> bool:
        tok = self.peek()
        if tok.kind == "ident":
            return self.at("=>", 1)
        if not self.at("("):
            return False
        depth = 0
        idx = self.pos
        while idx < len(self.tokens):
            cur = self.tokens[idx]
            if cur.kind == "eof":
                return False
            if cur.kind == "punct":
                if cur.value in ("(", "[", "{"):
                    depth += 1
                elif cur.value in (")", "]", "}"):
                    depth -= 1
                    if depth == 0:
                        nxt = self.tokens[idx + 1]
                        return nxt.kind == "punct" and nxt.value == "=>"
            idx += 1
        return False

    def parse_property_key(self) -> tuple[n.Node, bool]:
        tok = self.peek()
        if self.eat("["):
            key = self.parse_assign()
            self.expect("]")
            return key, True
        self.advance()
        if tok.kind in ("ident", "keyword", "str"):
            return n.Literal(tok.line, str(tok.value)), False
        if tok.kind == "num":
            return n.Literal(tok.line, tok.value), False
        raise self.fail(tok)

    def parse_class_rest(self, start: Token, require_name: bool = False) -> n.ClassNode:
        name = ""
        if self.peek().kind == "ident":
            name = str(self.advance().value)
        elif require_name:
            raise self.fail()
        superclass = None
        if self.eat("extends"):
            superclass = self.parse_call_member(allow_call=True)
        self.expect("{")
        constructor = None
        members: list[n.ClassMember] = []
        while not self.at("}"):
            if self.eat(";"):
                continue
            member_tok = self.peek()
            static = False
            if self.at_word("static") and not (self.at("(", 1) or self.at("=", 1)):
                self.advance()
                static = True
            kind = "method"
            if (self.at_word("get") or self.at_word("set")) and not (
                self.at("(", 1) or self.at("=", 1) or self.at(";", 1) or self.at("}", 1)
            ):
                kind = str(self.advance().value)
            key, computed = self.parse_property_key()
            key_name = key.value if isinstance(key, n.Literal) and not computed else ""
            if self.at("("):
                fn_kind = {"get": "getter", "set": "setter"}.get(kind, "method")
                if key_name == "constructor" and not static and kind == "method":
                    constructor = self.parse_method(member_tok, name, "constructor")
                    continue
                value = self.parse_method(member_tok, str(key_name), fn_kind)
                members.append(n.ClassMember(member_tok.line, key, computed, static, kind, value))
                continue
            if kind != "method":
                raise self.fail()
            init = self.parse_assign() if self.eat("=") else None
            self.consume_semicolon()
            members.append(n.ClassMember(member_tok.line, key, computed, static, "field", init))
        end = self.advance()
        source = self.src[start.pos : end.pos + 1]
        return n.ClassNode(start.line, name, superclass, constructor, tuple(members), source)

    # -- expressions ----------------------------------------------------------

    def parse_expression(self) -> n.Node:
        first = self.parse_assign()
        if not self.at(","):
            return first
        exprs = [first]
        while self.eat(","):
            exprs.append(self.parse_assign())
        return n.Sequence(first.line, tuple(exprs))

    def parse_assign(self) -> n.Node:
        if self._arrow_ahead():
            return self.parse_arrow()
        left = self.parse_conditional()
        tok = self.peek()
        if tok.kind == "punct" and tok.value in ASSIGN_OPS:
            self.advance()
            if tok.value == "=":
                target = self.to_pattern(left)
            elif isinstance(left, (n.Ident, n.Member, n.SuperMember)):
                target = left
            else:
                raise JSSyntaxError("Invalid left-hand side in assignment", tok.line)
            return n.Assign(tok.line, str(tok.value), target, self.parse_assign())
        return left

    def to_pattern(self, expr: n.Node) -> n.Node:
        if isinstance(expr, (n.Ident, n.Member, n.SuperMember)):
            return expr
        if isinstance(expr, n.ArrayLit):
            elements: list[n.Node | None] = []
            rest = None
            for idx, element in enumerate(expr.elements):
                if isinstance(element, n.Spread):
                    if idx != len(expr.elements) - 1:
                        raise JSSyntaxError("Rest element must be last element", element.line)
                    rest = self.to_pattern(element.arg)
                else:
                    elements.append(None if element is None else self.to_pattern(element))
            return n.ArrayPattern(expr.line, tuple(elements), rest)
        if isinstance(expr, n.ObjectLit):
            props: list[n.PatternProp] = []
            obj_rest = None
            for prop in expr.props:
                if prop.kind == "spread":
                    obj_rest = self.to_pattern(prop.value)
                    continue
                if prop.kind != "init" or prop.key is None:
                    raise JSSyntaxError("Invalid destructuring assignment target", prop.line)
                props.append(n.PatternProp(prop.line, prop.key, prop.computed, self.to_pattern(prop.value)))
            return n.ObjectPattern(expr.line, tuple(props), obj_rest)
        if isinstance(expr, n.Assign) and expr.op == "=":
            return n.AssignPattern(expr.line, self.to_pattern(expr.target), expr.value)
        if isinstance(expr, n.AssignPattern):
            return expr
        raise JSSyntaxError("Invalid left-hand side in assignment", expr.line)

    def parse_conditional(self) -> n.Node:
        test = self.parse_binary(1)
        if not self.at("?"):
            return test
        tok = self.advance()
        saved, self._no_in = self._no_in, False
        consequent = self.parse_assign()
        self._no_in = saved
        self.expect(":")
        alternate = self.parse_assign()
        return n.Conditional(tok.line, test, consequent, alternate)

    def _binary_op(self) -> str | None:
        tok = self.peek()
        if tok.kind == "punct" and tok.value in BINARY_PRECEDENCE:
            return str(tok.value)
        if tok.kind == "keyword" and tok.value in ("instanceof", "in"):
            if tok.value == "in" and self._no_in:
                return None
            return str(tok.value)
        return None

    def parse_binary(self, min_prec: int) -> n.Node:
        left = self.parse_unary()
        while True:
            op = self._binary_op()
            if op is None:
                return left
            prec = BINARY_PRECEDENCE[op]
            if prec < min_prec:
                return left
            tok = self.advance()
            right = self.parse_binary(prec if op == "**" else prec + 1)
            node_type = n.Logical if op in LOGICAL_OPS else n.Binary
            left = node_type(tok.line, op, left, right)

    def parse_unary(self) -> n.Node:
        tok = self.peek()
        if (tok.kind == "punct" and tok.value in ("!", "-", "+", "~")) or (
            tok.kind == "keyword" and tok.value in ("typeof", "void", "delete")
        ):
            self.advance()
            return n.Unary(tok.line, str(tok.value), self.parse_unary())
        if tok.kind == "punct" and tok.value in ("++", "--"):
            self.advance()
            target = self.parse_unary()
            if not isinstance(target, (n.Ident, n.Member)):
                raise JSSyntaxError("Invalid left-hand side expression in prefix operation", tok.line)
            return n.Update(tok.line, str(tok.value), True, target)
        expr = self.parse_call_member(allow_call=True)
        nxt = self.peek()
        if nxt.kind == "punct" and nxt.value in ("++", "--") and not nxt.nl_before:
            if not isinstance(expr, (n.Ident, n.Member)):
                raise JSSyntaxError("Invalid left-hand side expression in postfix operation", nxt.line)
            self.advance()
            return n.Update(nxt.line, str(nxt.value), False, expr)
        return expr

    def parse_arguments(self) -> tuple[n.Node, ...]:
        self.expect("(")
        args: list[n.Node] = []
        saved, self._no_in = self._no_in, False
        while not self.at(")"):
            start = self.peek()
            if self.eat("..."):
                args.append(n.Spread(start.line, self.parse_assign()))
            else:
                args.append(self.parse_assign())
            if not self.at(")"):
                self.expect(",")
        self._no_in = saved
        self.expect(")")
        return tuple(args)

    def parse_call_member(self, allow_call: bool) -> n.Node:
        tok = self.peek()
        if self.at("new"):
            self.advance()
            callee = self.parse_call_member(allow_call=False)
            args = self.parse_arguments() if self.at("(") else ()
            expr: n.Node = n.New(tok.line, callee, args)
        else:
            expr = self.parse_primary()
        chained = False
        while True:
            cur = self.peek()
            if self.eat("."):
                name_tok = self.peek()
                expr = n.Member(cur.line, expr, n.Literal(name_tok.line, self.identifier_name()), False)
            elif self.at("?."):
                if not allow_call:
                    raise JSSyntaxError("Invalid optional chain from new expression", cur.line)
                self.advance()
                chained = True
                if self.at("("):
                    expr = n.Call(cur.line, expr, self.parse_arguments(), True)
                elif self.eat("["):
                    prop = self.parse_expression()
                    self.expect("]")
                    expr = n.Member(cur.line, expr, prop, True, True)
                else:
                    name_tok = self.peek()
                    expr = n.Member(cur.line, expr, n.Literal(name_tok.line, self.identifier_name()), False, True)
            elif self.eat("["):
                saved, self._no_in = self._no_in, False
                prop = self.parse_expression()
                self._no_in = saved
                self.expect("]")
                expr = n.Member(cur.line, expr, prop, True)
            elif allow_call and self.at("("):
                expr = n.Call(cur.line, expr, self.parse_arguments())
            elif cur.kind == "template" and not cur.nl_before:
                raise JSSyntaxError("Tagged templates are not supported", cur.line)
            else:
                break
        return n.OptionalChain(expr.line, expr) if chained else expr

    def parse_template(self, tok: Token) -> n.TemplateLit:
        quasis: list[str] = []
        exprs: list[n.Node] = []
        for part in tok.value:  # type: ignore[union-attr]
            if isinstance(part, str):
                quasis.append(part)
                continue
            source, line = part
            sub = Parser(source, line_offset=line - 1)
            expr = sub.parse_expression()
            if sub.peek().kind != "eof":
                raise sub.fail()
            exprs.append(expr)
        return n.TemplateLit(tok.line, tuple(quasis), tuple(exprs))

    def parse_primary(self) -> n.Node:
        tok = self.advance()
        kind, value = tok.kind, tok.value
        if kind in ("num", "str"):
            return n.Literal(tok.line, value)
        if kind == "template":
            return self.parse_template(tok)
        if kind == "ident":
            return n.Ident(tok.line, str(value))
        if kind == "keyword":
            if value == "this":
                return n.This(tok.line)
            if value == "true":
                return n.Literal(tok.line, True)
            if value == "false":
                return n.Literal(tok.line, False)
            if value == "null":
                return n.Literal(tok.line, NULL)
            if value == "function":
                return self.parse_function_rest(tok)
            if value == "class":
                return self.parse_class_rest(tok)
            if value == "super":
                if self.at("("):
                    return n.SuperCall(tok.line, self.parse_arguments())
                if self.eat("."):
                    return n.SuperMember(tok.line, n.Literal(tok.line, self.identifier_name()), False)
                if self.eat("["):
                    prop = self.parse_expression()
                    self.expect("]")
                    return n.SuperMember(tok.line, prop, True)
                raise JSSyntaxError("'super' keyword unexpected here", tok.line)
        if kind == "punct":
            if value == "(":
                saved, self._no_in = self._no_in, False
                expr = self.parse_expression()
                self._no_in = saved
                self.expect(")")
                return expr
            if value == "[":
                return self.parse_array_literal(tok)
            if value == "{":
                return self.parse_object_literal(tok)
        raise self.fail(tok)

    def parse_array_literal(self, start: Token) -> n.ArrayLit:
        elements: list[n.Node | None] = []
        saved, self._no_in = self._no_in, False
        while not self.at("]"):
            if self.eat(","):
                elements.append(None)
                continue
            tok = self.peek()
            if self.eat("..."):
                elements.append(n.Spread(tok.line, self.parse_assign()))
            else:
                elements.append(self.parse_assign())
            if not self.at("]"):
                self.expect(",")
        self._no_in = saved
        self.expect("]")
        return n.ArrayLit(start.line, tuple(elements))

    def parse_object_literal(self, start: Token) -> n.ObjectLit:
        props: list[n.Prop] = []
        saved, self._no_in = self._no_in, False
        while not self.at("}"):
            tok = self.peek()
            if self.eat("..."):
                props.append(n.Prop(tok.line, "spread", None, False, self.parse_assign()))
            elif (self.at_word("get") or self.at_word("set")) and not (
                self.at(":", 1) or self.at("(", 1) or self.at(",", 1) or self.at("}", 1)
            ):
                accessor = str(self.advance().value)
                key, computed = self.parse_property_key()
                name = key.value if isinstance(key, n.Literal) else ""
                fn = self.parse_method(tok, str(name), "getter" if accessor == "get" else "setter")
                props.append(n.Prop(tok.line, accessor, key, computed, fn))
            else:
                key, computed = self.parse_property_key()
                if self.at("("):
                    name = key.value if isinstance(key, n.Literal) else ""
                    props.append(n.Prop(tok.line, "init", key, computed, self.parse_method(tok, str(name), "method")))
                elif self.eat(":"):
                    props.append(n.Prop(tok.line, "init", key, computed, self.parse_assign()))
                else:
                    if computed or tok.kind != "ident":
                        raise self.fail(tok)
                    value: n.Node = n.Ident(tok.line, str(tok.value))
                    if self.at("="):
                        eq = self.advance()
                        value = n.Assign(eq.line, "=", value, self.parse_assign())
                    props.append(n.Prop(tok.line, "init", key, False, value, True))
            if not self.at("}"):
                self.expect(",")
        self._no_in = saved
        self.expect("}")
        return n.ObjectLit(start.line, tuple(props))


def parse(src: str) -> n.Program:
    return Parser(src).parse_program()


__all__ = ["Parser", "parse"]
