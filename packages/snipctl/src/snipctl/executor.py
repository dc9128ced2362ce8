from __future__ import annotations

import time
from typing import Any

from .context import ExecutionContext
from .core.context import RunContext
from .errors import ContextError
from .lang.inspect import error_fields, inspect
from .lang.interpreter import CancelFlag, Interpreter
from .lang.values import JSError, JSThrow, from_units
from .model import CodeBlock, ExecutionResult, Outcome
from .policy import CancelToken, Policy, PolicyEnforcer

STACK_OVERFLOW_MESSAGE = "Maximum call stack size exceeded"
CONTEXT_ABANDONED = "context-abandoned"


def thrown_outcome(exc: JSThrow, block: CodeBlock) -> Outcome:
    """Describe an uncaught language throw, with its line relative to the document."""
    value = exc.value
    line = block.start_line + exc.line if exc.line else block.start_line
    if isinstance(value, JSError):
        name, message = error_fields(value)
        display = from_units(inspect(value, depth=0))
        return Outcome.thrown(display, name=from_units(name), message=from_units(message), line=line)
    return Outcome.thrown(from_units(inspect(value)), line=line)


class SnippetExecutor:
    """Evaluate one code block inside an execution context under a policy."""

    def __init__(
        self,
        policy: Policy | None = None,
        cancel: CancelToken | None = None,
        ctx: RunContext | None = None,
    ) -> None:
        self.policy = policy or Policy()
        self.enforcer = PolicyEnforcer(self.policy, cancel, ctx)

    def execute(self, block: CodeBlock, context: ExecutionContext) -> ExecutionResult:
        if context.released:
            raise ContextError(f"execution context of run {context.owner} has been released")
        if context.abandoned:
            return ExecutionResult.skipped(block, CONTEXT_ABANDONED)
        started = time.perf_counter()
        holder: dict[str, Interpreter] = {}

        def evaluate(flag: CancelFlag) -> Any:
            interp = Interpreter(context.realm, self.policy.max_steps, flag, self.policy.allow_capabilities)
            holder["interp"] = interp
            try:
                return interp.run(block.source)
            except RecursionError:
                raise JSThrow(context.realm.make_error("RangeError", STACK_OVERFLOW_MESSAGE), interp.line) from None

        try:
            guarded = self.enforcer.guard(evaluate, context)
        except JSThrow as exc:
            outcome = thrown_outcome(exc, block)
        else:
            outcome = guarded.outcome or Outcome.completed(from_units(inspect(guarded.value)))
        duration_ms = int((time.perf_counter() - started) * 1000)
        interp = holder.get("interp")
        if interp is None:
            return ExecutionResult(block=block, output=(), outcome=outcome, duration_ms=duration_ms)
        return ExecutionResult(
            block=block,
            output=tuple(from_units(line) for line in interp.output),
            outcome=outcome,
            duration_ms=duration_ms,
            assertion_failures=tuple(from_units(text) for text in interp.assertion_failures),
            steps=interp.steps,
        )


def execute(block: CodeBlock, context: ExecutionContext, policy: Policy | None = None) -> ExecutionResult:
    return SnippetExecutor(policy).execute(block, context)


__all__ = ["CONTEXT_ABANDONED", "SnippetExecutor", "execute", "thrown_outcome"]
