"""Execution contexts and their lifetimes within one document run."""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from .config import RunConfig
from .core.context import RunContext
from .core.logging import log_event
from .errors import ContextError
from .lang.builtins import Realm
from .lang.values import MISSING
from .model import CodeBlock, ContextLifetime, Document

_RUN_SEQUENCE = itertools.count(1)


@dataclass(frozen=True)
class ContextSnapshot:
    bindings: dict[str, Any]
    global_props: dict[object, Any]
    global_hidden: frozenset[object]


class ExecutionContext:
    """One global environment owned by a single document run.

    ``abandoned`` is set when a block's worker was still running after its
    timeout and grace period; that worker may keep touching the realm, so no
    further block is evaluated in this context.
    """

    def __init__(self, lifetime: ContextLifetime, owner: str, seed: int = 0) -> None:
        self.lifetime = lifetime
        self.owner = owner
        self.realm = Realm(seed)
        self.released = False
        self.abandoned = False

    def snapshot(self) -> ContextSnapshot:
        glob = self.realm.global_object
        return ContextSnapshot(
            bindings=self.realm.global_scope.snapshot(),
            global_props=dict(glob.props),
            global_hidden=frozenset(glob.hidden),
        )

    def restore(self, snap: ContextSnapshot) -> None:
        self.realm.global_scope.restore(snap.bindings)
        glob = self.realm.global_object
        glob.props = dict(snap.global_props)
        glob.hidden = set(snap.global_hidden)

    def lookup(self, name: str) -> Any:
        binding = self.realm.global_scope.vars.get(name)
        if binding is not None:
            return binding.value
        return self.realm.global_object.get_slot(name)

    def has(self, name: str) -> bool:
        return self.lookup(name) is not MISSING

    def names(self) -> list[str]:
        return sorted(self.realm.global_scope.vars)

    def release(self) -> None:
        self.released = True
        self.realm.global_scope.vars.clear()


@dataclass
class _DocumentRun:
    doc_id: str
    token: str
    carried: ExecutionContext
    fresh: list[ExecutionContext]


class ContextManager:
    def __init__(self, config: RunConfig | None = None, ctx: RunContext | None = None) -> None:
        self.config = config or RunConfig()
        self.ctx = ctx or RunContext.from_args()
        self._run: _DocumentRun | None = None

    @property
    def active_run(self) -> str | None:
        return None if self._run is None else self._run.token

    def begin(self, document: Document) -> str:
        if self._run is not None:
            raise ContextError(f"document run already active for {self._run.doc_id}")
        token = f"{document.doc_id}#{next(_RUN_SEQUENCE)}"
        carried = ExecutionContext(ContextLifetime.CARRIED, token, self.config.seed)
        self._run = _DocumentRun(document.doc_id, token, carried, [])
        log_event(self.ctx, "debug", "context", "begin", doc_id=document.doc_id, run=token)
        return token

    def context_for(self, block: CodeBlock, run: str | None = None) -> ExecutionContext:
        active = self._run
        if active is None:
            raise ContextError("no document run is active; call begin() first")
        if run is not None and run != active.token:
            raise ContextError(f"context requested by run {run} but owned by run {active.token}")
        if block.isolated:
            fresh = ExecutionContext(ContextLifetime.FRESH, active.token, self.config.seed)
            active.fresh.append(fresh)
            return fresh
        return active.carried

    def end(self, document: Document) -> None:
        active = self._run
        if active is None:
            return
        if active.doc_id != document.doc_id:
            raise ContextError(f"cannot end run of {active.doc_id} from {document.doc_id}")
        for context in (active.carried, *active.fresh):
            context.release()
        self._run = None
        log_event(
            self.ctx, "debug", "context", "end", doc_id=document.doc_id, run=active.token, fresh=len(active.fresh)
        )

    @contextmanager
    def session(self, document: Document) -> Iterator[str]:
        token = self.begin(document)
        try:
            yield token
        finally:
            self.end(document)


__all__ = ["ContextManager", "ContextSnapshot", "ExecutionContext"]
