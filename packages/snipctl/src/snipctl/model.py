from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

TARGET_LANGUAGES = frozenset({"js", "javascript", "node"})

RUNNABLE = "runnable"
EXPECT_ERROR = "expect-error"
ISOLATED = "isolated"
OUTPUT = "output"


@dataclass(frozen=True)
class Prose:
    text: str
    start_line: int


@dataclass(frozen=True)
class CodeBlock:
    source: str
    language: str
    annotations: tuple[str, ...]
    start_line: int
    expected_output: tuple[str, ...] | None = None

    @property
    def is_target_language(self) -> bool:
        return self.language in TARGET_LANGUAGES

    @property
    def runnable(self) -> bool:
        return self.is_target_language and RUNNABLE in self.annotations

    @property
    def isolated(self) -> bool:
        return ISOLATED in self.annotations

    @property
    def expect_error(self) -> bool:
        return any(token == EXPECT_ERROR or token.startswith(EXPECT_ERROR + "=") for token in self.annotations)

    @property
    def expected_error_name(self) -> str | None:
        for token in self.annotations:
            if token.startswith(EXPECT_ERROR + "="):
                name = token.split("=", 1)[1].strip()
                return name or None
        return None


@dataclass(frozen=True)
class ExpectedOutput:
    text: str
    start_line: int

    @property
    def lines(self) -> tuple[str, ...]:
        return tuple(self.text.splitlines())


Segment = Union[Prose, CodeBlock, ExpectedOutput]


@dataclass(frozen=True)
class Document:
    doc_id: str
    segments: tuple[Segment, ...]

    @property
    def code_blocks(self) -> tuple[CodeBlock, ...]:
        return tuple(seg for seg in self.segments if isinstance(seg, CodeBlock))

    @property
    def runnable_blocks(self) -> tuple[CodeBlock, ...]:
        return tuple(block for block in self.code_blocks if block.runnable)


class ContextLifetime(str, Enum):
    FRESH = "fresh"
    CARRIED = "carried"


class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    THROWN = "thrown"
    TIMED_OUT = "timed_out"
    POLICY_VIOLATION = "policy_violation"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Outcome:
    """Terminal state of one block evaluation.

    `value` is the rendered completion value for COMPLETED and the rendered
    thrown value for THROWN. `error_name`/`error_message` are filled for
    THROWN when the thrown value is an error object. `reason` is the
    machine-readable cause for TIMED_OUT, POLICY_VIOLATION and SKIPPED.
    """

    kind: OutcomeKind
    value: str = "undefined"
    error_name: str = ""
    error_message: str = ""
    error_line: int = 0
    reason: str = ""

    @classmethod
    def completed(cls, value: str) -> "Outcome":
        return cls(OutcomeKind.COMPLETED, value=value)

    @classmethod
    def thrown(cls, display: str, name: str = "", message: str = "", line: int = 0) -> "Outcome":
        return cls(OutcomeKind.THROWN, value=display, error_name=name, error_message=message, error_line=line)

    @classmethod
    def timed_out(cls, reason: str) -> "Outcome":
        return cls(OutcomeKind.TIMED_OUT, reason=reason)

    @classmethod
    def policy_violation(cls, reason: str) -> "Outcome":
        return cls(OutcomeKind.POLICY_VIOLATION, reason=reason)

    @classmethod
    def skipped(cls, reason: str = "run-cancelled") -> "Outcome":
        return cls(OutcomeKind.SKIPPED, reason=reason)


@dataclass(frozen=True)
class ExecutionResult:
    block: CodeBlock
    output: tuple[str, ...]
    outcome: Outcome
    duration_ms: int
    assertion_failures: tuple[str, ...] = ()
    steps: int = 0

    @property
    def start_line(self) -> int:
        return self.block.start_line

    @classmethod
    def skipped(cls, block: CodeBlock, reason: str = "run-cancelled") -> "ExecutionResult":
        return cls(block=block, output=(), outcome=Outcome.skipped(reason), duration_ms=0)


@dataclass(frozen=True)
class BlockRow:
    result: ExecutionResult
    passed: bool
    reason: str = ""
    expected: bool = False


@dataclass(frozen=True)
class DocumentReport:
    doc_id: str
    rows: tuple[BlockRow, ...] = ()
    parse_error: str = ""
    parse_error_line: int = 0
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def results(self) -> tuple[ExecutionResult, ...]:
        return tuple(row.result for row in self.rows)

    @property
    def failed(self) -> bool:
        return bool(self.parse_error) or any(not row.passed for row in self.rows)

    @property
    def total(self) -> int:
        return int(self.summary.get("total", len(self.rows)))


__all__ = [
    "BlockRow",
    "CodeBlock",
    "ContextLifetime",
    "Document",
    "DocumentReport",
    "ExecutionResult",
    "ExpectedOutput",
    "Outcome",
    "OutcomeKind",
    "Prose",
    "Segment",
    "TARGET_LANGUAGES",
]
