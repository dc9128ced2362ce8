"""The snippet language: lexer, parser, values and tree-walking interpreter."""

from .builtins import Realm
from .interpreter import CancelFlag, Interpreter
from .parser import parse
from .values import NULL, UNDEFINED, JSThrow

__all__ = ["CancelFlag", "Interpreter", "JSThrow", "NULL", "Realm", "UNDEFINED", "parse"]
