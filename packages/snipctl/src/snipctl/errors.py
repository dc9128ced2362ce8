from __future__ import annotations

from dataclasses import dataclass

from .exit_codes import ERR_CONFIG, ERR_CONTEXT, ERR_INTERNAL, ERR_PARSE, ERR_VALIDATION


@dataclass
class ScriptError(Exception):
    message: str
    code: int = ERR_INTERNAL
    kind: str = "generic_error"

    def __str__(self) -> str:
        return self.message


@dataclass
class ParseError(ScriptError):
    code: int = ERR_PARSE
    kind: str = "parse_error"
    doc_id: str = ""
    line: int = 0

    def __str__(self) -> str:
        return f"{self.doc_id}:{self.line}: {self.message}"


@dataclass
class ConfigError(ScriptError):
    code: int = ERR_CONFIG
    kind: str = "config_error"


@dataclass
class ContextError(ScriptError):
    code: int = ERR_CONTEXT
    kind: str = "context_error"


@dataclass
class ContractError(ScriptError):
    code: int = ERR_VALIDATION
    kind: str = "contract_error"


__all__ = ["ConfigError", "ContextError", "ContractError", "ParseError", "ScriptError"]
