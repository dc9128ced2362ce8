from __future__ import annotations

import re
from dataclasses import dataclass

from .values import to_units

KEYWORDS = frozenset(
    {
        "break", "case", "catch", "class", "const", "continue", "default", "delete", "do", "else",
        "extends", "false", "finally", "for", "function", "if", "in", "instanceof", "new",
        "null", "return", "super", "switch", "this", "throw", "true", "try",
        "typeof", "var", "void", "while",
    }
)
# Contextual words: lexed as identifiers, recognised by the parser in position.
SOFT_KEYWORDS = frozenset({"of", "let", "static", "get", "set"})

PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
        "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=", "*=", "/=",
        "%=", "&=", "|=", "^=", "**", "<<", ">>",
        "{", "}", "(", ")", "[", "]", ";", ",", "<", ">", "+", "-", "*", "/", "%", "&", "|",
        "^", "!", "~", "?", ":", "=", ".",
    ],
    key=len,
    reverse=True,
)

_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+|(?:\d[\d_]*\.?[\d_]*|\.\d[\d_]*)(?:[eE][+-]?\d+)?"
)
_IDENT_RE = re.compile(r"(?:[^\W\d]|\$)[\w$]*")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


class JSSyntaxError(Exception):
    def __init__(self, message: str, line: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.line = line


@dataclass(frozen=True)
class Token:
    kind: str  # num | str | template | ident | keyword | punct | eof
    value: object
    line: int
    pos: int
    nl_before: bool = False


def _read_escape(src: str, i: int, line: int) -> tuple[str, int]:
    ch = src[i]
    if ch in _ESCAPES and not (ch == "0" and i + 1 < len(src) and src[i + 1].isdigit()):
        return _ESCAPES[ch], i + 1
    if ch == "x":
        digits = src[i + 1 : i + 3]
        if len(digits) != 2 or not all(c in "0123456789abcdefABCDEF" for c in digits):
            raise JSSyntaxError("Invalid hexadecimal escape sequence", line)
        return chr(int(digits, 16)), i + 3
    if ch == "u":
        if src.startswith("{", i + 1):
            end = src.find("}", i + 2)
            if end < 0:
                raise JSSyntaxError("Invalid Unicode escape sequence", line)
            return chr(int(src[i + 2 : end], 16)), end + 1
        digits = src[i + 1 : i + 5]
        if len(digits) != 4:
            raise JSSyntaxError("Invalid Unicode escape sequence", line)
        return chr(int(digits, 16)), i + 5
    if ch == "\n":
        return "", i + 1
    return ch, i + 1


def _parse_number(text: str) -> float:
    clean = text.replace("_", "")
    lowered = clean.lower()
    if lowered.startswith("0x"):
        return float(int(clean[2:], 16))
    if lowered.startswith("0b"):
        return float(int(clean[2:], 2))
    if lowered.startswith("0o"):
        return float(int(clean[2:], 8))
    return float(clean)


def _scan_template(src: str, i: int, line: int) -> tuple[list[object], int, int]:
    """Scan a template literal starting after the opening backtick.

    Returns alternating parts: str chunks and (source, line) tuples for
    `${...}` substitutions.
    """
    parts: list[object] = []
    buf: list[str] = []
    n = len(src)
    while True:
        if i >= n:
            raise JSSyntaxError("Unterminated template literal", line)
        ch = src[i]
        if ch == "`":
            parts.append(to_units("".join(buf)))
            return parts, i + 1, line
        if ch == "\\":
            text, i = _read_escape(src, i + 1, line)
            buf.append(text)
            continue
        if ch == "$" and src.startswith("{", i + 1):
            parts.append(to_units("".join(buf)))
            buf = []
            depth = 1
            j = i + 2
            start_line = line
            quote = ""
            while j < n and depth:
                c = src[j]
                if quote:
                    if c == "\\":
                        j += 2
                        continue
                    if c == quote:
                        quote = ""
                elif c in "'\"`":
                    quote = c
                elif c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                if c == "\n":
                    line += 1
                j += 1
            if depth:
                raise JSSyntaxError("Unterminated template substitution", start_line)
            parts.append((src[i + 2 : j - 1], start_line))
            i = j
            continue
        if ch == "\n":
            line += 1
        buf.append(ch)
        i += 1


def tokenize(src: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    line = 1
    n = len(src)
    nl_before = False
    while i < n:
        ch = src[i]
        if ch == "\n":
            line += 1
            nl_before = True
            i += 1
            continue
        if ch in " \t\r\f\v\ufeff\xa0":
            i += 1
            continue
        if src.startswith("//", i):
            end = src.find("\n", i)
            i = n if end < 0 else end
            continue
        if src.startswith("/*", i):
            end = src.find("*/", i + 2)
            if end < 0:
                raise JSSyntaxError("Unterminated comment", line)
            chunk = src[i : end + 2]
            if "\n" in chunk:
                line += chunk.count("\n")
                nl_before = True
            i = end + 2
            continue
        start_line = line
        if ch.isdigit() or (ch == "." and i + 1 < n and src[i + 1].isdigit()):
            match = _NUMBER_RE.match(src, i)
            assert match is not None
            text = match.group(0)
            if match.end() < n and (_IDENT_RE.match(src, match.end()) is not None):
                raise JSSyntaxError("Invalid or unexpected token", line)
            tokens.append(Token("num", _parse_number(text), start_line, i, nl_before))
            i = match.end()
        elif ch in "'\"":
            j = i + 1
            buf: list[str] = []
            while True:
                if j >= n or src[j] == "\n":
                    raise JSSyntaxError("Invalid or unexpected token", line)
                c = src[j]
                if c == ch:
                    j += 1
                    break
                if c == "\\":
                    if src.startswith("\n", j + 1):
                        line += 1
                    text, j = _read_escape(src, j + 1, line)
                    buf.append(text)
                    continue
                buf.append(c)
                j += 1
            tokens.append(Token("str", to_units("".join(buf)), start_line, i, nl_before))
            i = j
        elif ch == "`":
            parts, i_next, line = _scan_template(src, i + 1, line)
            tokens.append(Token("template", parts, start_line, i, nl_before))
            i = i_next
        elif ch.isalpha() or ch in "_$":
            match = _IDENT_RE.match(src, i)
            assert match is not None
            word = match.group(0)
            kind = "keyword" if word in KEYWORDS else "ident"
            tokens.append(Token(kind, word, start_line, i, nl_before))
            i = match.end()
        else:
            for punct in PUNCTUATORS:
                if src.startswith(punct, i):
                    # `a?.5:b` is a conditional, not optional chaining.
                    if punct == "?." and i + 2 < n and src[i + 2].isdigit():
                        continue
                    tokens.append(Token("punct", punct, start_line, i, nl_before))
                    i += len(punct)
                    break
            else:
                raise JSSyntaxError(f"Invalid or unexpected token '{ch}'", line)
        nl_before = False
    tokens.append(Token("eof", None, line, n, nl_before))
    return tokens


__all__ = ["JSSyntaxError", "KEYWORDS", "SOFT_KEYWORDS", "Token", "tokenize"]
