from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from snipctl.config import RunConfig
from snipctl.context import ExecutionContext
from snipctl.executor import SnippetExecutor
from snipctl.model import CodeBlock, ContextLifetime, ExecutionResult
from snipctl.policy import Policy
from snipctl.runner import run

ROOT = Path(__file__).resolve().parents[3]


def run_snipctl(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["PYTHONPATH"] = str(ROOT / "packages/snipctl/src")
    for key in list(env):
        if key.startswith("SNIPCTL_"):
            env.pop(key)
    return subprocess.run(
        [sys.executable, "-m", "snipctl", *args],
        cwd=(cwd or ROOT),
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )


def block(source: str, *annotations: str, line: int = 1, expected: tuple[str, ...] | None = None) -> CodeBlock:
    return CodeBlock(source, "js", ("runnable", *annotations), line, expected)


def evaluate(
    source: str,
    context: ExecutionContext | None = None,
    *,
    allow: tuple[str, ...] = ("print", "assert"),
    max_steps: int = 1_000_000,
    timeout_ms: int = 5000,
    seed: int = 0,
) -> ExecutionResult:
    context = context or ExecutionContext(ContextLifetime.CARRIED, "test#1", seed)
    policy = Policy(timeout_ms=timeout_ms, max_steps=max_steps, allow_capabilities=frozenset(allow))
    return SnippetExecutor(policy).execute(block(source), context)


def run_markdown(text: str, doc_id: str = "doc.md", **config: object):
    return run([(doc_id, text)], RunConfig(**config))[0]  # type: ignore[arg-type]


def fence(source: str, info: str = "js runnable") -> str:
    return f"```{info}\n{source}\n```\n"
