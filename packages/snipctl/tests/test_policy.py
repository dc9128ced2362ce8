from __future__ import annotations

import sys
import threading

import pytest

from helpers import block, evaluate
from snipctl import policy as policy_module
from snipctl.context import ExecutionContext
from snipctl.errors import ConfigError
from snipctl.executor import CONTEXT_ABANDONED, SnippetExecutor
from snipctl.model import ContextLifetime, OutcomeKind
from snipctl.policy import (
    RUN_CANCELLED,
    STEP_BUDGET_EXCEEDED,
    WALL_CLOCK_TIMEOUT,
    WORKER_RECURSION_LIMIT,
    CancelToken,
    Policy,
    PolicyEnforcer,
)


def _context() -> ExecutionContext:
    return ExecutionContext(ContextLifetime.CARRIED, "policy#1")


@pytest.mark.unit
def test_step_budget_stops_infinite_loops() -> None:
    result = evaluate("let i = 0\nwhile (true) { i++ }", max_steps=1_000)
    assert result.outcome.kind is OutcomeKind.TIMED_OUT
    assert result.outcome.reason == STEP_BUDGET_EXCEEDED
    assert result.steps > 1_000


@pytest.mark.slow
def test_wall_clock_budget_cancels_evaluation() -> None:
    result = evaluate("while (true) {}", max_steps=10**12, timeout_ms=150)
    assert result.outcome.kind is OutcomeKind.TIMED_OUT
    assert result.outcome.reason == WALL_CLOCK_TIMEOUT


@pytest.mark.unit
@pytest.mark.parametrize(
    ("source", "capability"),
    [
        ("require('fs')", "fs"),
        ("fetch('https://example.com')", "network"),
        ("process.env.HOME", "process"),
        ("Date.now()", "clock"),
        ("new Date()", "clock"),
        ("performance.now()", "clock"),
        ("setTimeout(() => {}, 1)", "timers"),
    ],
)
def test_denied_capabilities_are_policy_violations(source: str, capability: str) -> None:
    result = evaluate(source)
    assert result.outcome.kind is OutcomeKind.POLICY_VIOLATION
    assert result.outcome.reason == f"capability-denied:{capability}"


@pytest.mark.unit
def test_print_can_be_denied_too() -> None:
    result = evaluate("console.log('hi')", allow=("assert",))
    assert result.outcome.reason == "capability-denied:print"
    assert result.output == ()


@pytest.mark.unit
def test_allowed_host_primitives_still_have_no_real_effect() -> None:
    outcome = evaluate("require('fs')", allow=("fs",)).outcome
    assert outcome.kind is OutcomeKind.THROWN
    assert (outcome.error_name, outcome.error_message) == ("Error", "Cannot find module 'fs'")
    outcome = evaluate("fetch('https://example.com')", allow=("network",)).outcome
    assert (outcome.error_name, outcome.error_message) == ("TypeError", "fetch failed")
    assert evaluate("process.platform", allow=("process",)).outcome.value == "'sandbox'"


@pytest.mark.unit
def test_denied_capability_inside_try_is_not_catchable() -> None:
    result = evaluate("try { require('fs') } catch (e) { console.log('caught') }")
    assert result.outcome.kind is OutcomeKind.POLICY_VIOLATION
    assert result.output == ()


@pytest.mark.unit
def test_aborted_blocks_roll_back_context_bindings() -> None:
    context = _context()
    evaluate("let kept = 1\nvar counter = 0", context)
    result = evaluate("kept = 2\ncounter++\nlet extra = 3\nglobalThis.flag = true\nrequire('fs')", context)
    assert result.outcome.kind is OutcomeKind.POLICY_VIOLATION
    assert context.lookup("kept") == 1.0
    assert context.lookup("counter") == 0.0
    assert not context.has("extra")
    assert not context.has("flag")


@pytest.mark.unit
def test_step_budget_abort_rolls_back_too() -> None:
    context = _context()
    evaluate("let n = 1", context)
    result = evaluate("n = 50\nwhile (true) {}", context, max_steps=500)
    assert result.outcome.reason == STEP_BUDGET_EXCEEDED
    assert context.lookup("n") == 1.0


@pytest.mark.unit
def test_thrown_blocks_keep_their_side_effects() -> None:
    context = _context()
    evaluate("let n = 1", context)
    result = evaluate("n = 5\nthrow new Error('x')", context)
    assert result.outcome.kind is OutcomeKind.THROWN
    assert context.lookup("n") == 5.0


@pytest.mark.unit
def test_cancelled_token_aborts_evaluation() -> None:
    token = CancelToken()
    token.cancel()
    executor = SnippetExecutor(Policy(), token)
    result = executor.execute(block("console.log('never')"), _context())
    assert result.outcome.kind is OutcomeKind.TIMED_OUT
    assert result.outcome.reason == RUN_CANCELLED
    assert result.output == ()


@pytest.mark.unit
def test_guard_returns_value_without_outcome() -> None:
    guarded = PolicyEnforcer(Policy()).guard(lambda flag: 42)
    assert guarded.value == 42
    assert guarded.outcome is None
    assert not guarded.rolled_back


@pytest.mark.unit
def test_policy_validation() -> None:
    with pytest.raises(ConfigError):
        Policy(timeout_ms=0)
    with pytest.raises(ConfigError):
        Policy(max_steps=-1)
    policy = Policy(allow_capabilities="print, fs")  # type: ignore[arg-type]
    assert policy.allows("fs")
    assert not policy.allows("network")


@pytest.mark.slow
def test_worker_outliving_its_grace_period_abandons_the_context(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(policy_module, "GRACE_SECONDS", 0.05)
    context = _context()
    release = threading.Event()
    try:
        guarded = PolicyEnforcer(Policy(timeout_ms=50)).guard(lambda flag: release.wait(10), context)
        assert guarded.outcome is not None
        assert guarded.outcome.reason == WALL_CLOCK_TIMEOUT
        assert context.abandoned
        result = SnippetExecutor(Policy()).execute(block("console.log('late')"), context)
        assert result.outcome.kind is OutcomeKind.SKIPPED
        assert result.outcome.reason == CONTEXT_ABANDONED
        assert result.output == ()
    finally:
        release.set()


@pytest.mark.slow
def test_cooperative_timeout_leaves_the_context_usable() -> None:
    context = _context()
    result = evaluate("while (true) {}", context, max_steps=10**12, timeout_ms=100)
    assert result.outcome.reason == WALL_CLOCK_TIMEOUT
    assert not context.abandoned
    assert evaluate("1 + 1", context).outcome.value == "2"


@pytest.mark.unit
def test_recursion_limit_is_not_reset_per_block(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    monkeypatch.setattr(sys, "setrecursionlimit", calls.append)
    evaluate("function f(n) { return n ? f(n - 1) : 0 }\nf(100)")
    PolicyEnforcer(Policy()).guard(lambda flag: None)
    assert calls == []
    assert sys.getrecursionlimit() >= WORKER_RECURSION_LIMIT
