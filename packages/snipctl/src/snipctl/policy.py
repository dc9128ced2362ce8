"""Resource and capability limits around one block evaluation.

Every evaluation runs on its own worker thread. The calling thread is the
watchdog: when the wall-clock budget expires it raises the interpreter's
cancellation flag and waits a short grace period for the worker to observe
it. Step budgets and capability checks are enforced by the interpreter
itself and surface here as exceptions.
"""

from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from .config import DEFAULT_CAPABILITIES, RunConfig, parse_capabilities
from .context import ExecutionContext
from .core.context import RunContext
from .core.logging import log_event
from .errors import ConfigError
from .lang.interpreter import CancelFlag, Cancelled, CapabilityDenied, StepBudgetExceeded
from .lang.values import JSThrow
from .model import Outcome

STEP_BUDGET_EXCEEDED = "step-budget-exceeded"
WALL_CLOCK_TIMEOUT = "wall-clock-timeout"
RUN_CANCELLED = "run-cancelled"
CAPABILITY_DENIED = "capability-denied"

GRACE_SECONDS = 2.0
WORKER_STACK_BYTES = 256 * 1024 * 1024
WORKER_RECURSION_LIMIT = 40_000

_STACK_LOCK = threading.Lock()

if sys.getrecursionlimit() < WORKER_RECURSION_LIMIT:
    sys.setrecursionlimit(WORKER_RECURSION_LIMIT)

T = TypeVar("T")


@dataclass(frozen=True)
class Policy:
    timeout_ms: int = 2000
    max_steps: int = 1_000_000
    allow_capabilities: frozenset[str] = DEFAULT_CAPABILITIES

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0 or self.max_steps <= 0:
            raise ConfigError("policy limits must be positive")
        object.__setattr__(self, "allow_capabilities", parse_capabilities(self.allow_capabilities))

    @classmethod
    def from_config(cls, config: RunConfig) -> "Policy":
        return cls(config.timeout_ms, config.max_steps, config.allow_capabilities)

    def allows(self, capability: str) -> bool:
        return capability in self.allow_capabilities


class CancelToken:
    """Whole-run cancellation shared by every document worker."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._flags: set[CancelFlag] = set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            flags = list(self._flags)
        for flag in flags:
            flag.cancel(RUN_CANCELLED)

    def register(self, flag: CancelFlag) -> None:
        with self._lock:
            self._flags.add(flag)
            cancelled = self._event.is_set()
        if cancelled:
            flag.cancel(RUN_CANCELLED)

    def unregister(self, flag: CancelFlag) -> None:
        with self._lock:
            self._flags.discard(flag)


@dataclass(frozen=True)
class Guarded(Generic[T]):
    """What a guarded evaluation produced: a value, or an outcome that replaced it."""

    value: T | None = None
    outcome: Outcome | None = None
    rolled_back: bool = False


def _worker_pool() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="snipctl-block")


class PolicyEnforcer:
    def __init__(self, policy: Policy | None = None, cancel: CancelToken | None = None, ctx: RunContext | None = None):
        self.policy = policy or Policy()
        self.cancel = cancel
        self.ctx = ctx or RunContext.from_args()

    def guard(self, fn: Callable[[CancelFlag], T], context: ExecutionContext | None = None) -> Guarded[T]:
        """Run ``fn(flag)`` under the policy.

        Language-level throws raised by ``fn`` propagate to the caller. Budget,
        timeout and capability aborts are converted into an ``Outcome`` and the
        context's bindings are restored to their state before the call.
        """
        flag = CancelFlag()
        if self.cancel is not None:
            self.cancel.register(flag)
        snapshot = context.snapshot() if context is not None else None
        with _STACK_LOCK:
            previous = threading.stack_size(WORKER_STACK_BYTES)
            try:
                pool = _worker_pool()
                future = pool.submit(fn, flag)
            finally:
                threading.stack_size(previous)
        try:
            try:
                return Guarded(value=future.result(timeout=self.policy.timeout_ms / 1000.0))
            except FutureTimeoutError:
                flag.cancel(WALL_CLOCK_TIMEOUT)
                try:
                    future.result(timeout=GRACE_SECONDS)
                except (Cancelled, StepBudgetExceeded, CapabilityDenied, FutureTimeoutError, JSThrow):
                    pass
                if not future.done() and context is not None:
                    context.abandoned = True
                    log_event(
                        self.ctx, "error", "policy", "abandon", owner=context.owner, grace_seconds=GRACE_SECONDS
                    )
                outcome = Outcome.timed_out(flag.reason)
            except StepBudgetExceeded:
                outcome = Outcome.timed_out(STEP_BUDGET_EXCEEDED)
            except Cancelled as exc:
                outcome = Outcome.timed_out(exc.reason or RUN_CANCELLED)
            except CapabilityDenied as exc:
                outcome = Outcome.policy_violation(f"{CAPABILITY_DENIED}:{exc.capability}")
        finally:
            pool.shutdown(wait=False)
            if self.cancel is not None:
                self.cancel.unregister(flag)
        if snapshot is not None and context is not None:
            context.restore(snapshot)
        log_event(self.ctx, "warn", "policy", "abort", outcome=outcome.kind.value, reason=outcome.reason)
        return Guarded(outcome=outcome, rolled_back=snapshot is not None)


__all__ = [
    "CAPABILITY_DENIED",
    "CancelToken",
    "Guarded",
    "Policy",
    "PolicyEnforcer",
    "RUN_CANCELLED",
    "STEP_BUDGET_EXCEEDED",
    "WALL_CLOCK_TIMEOUT",
]
