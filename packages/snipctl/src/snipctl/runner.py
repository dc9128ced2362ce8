"""Batch runs: many documents, each with its own carried context."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Sequence, Union

from .config import RunConfig
from .context import ContextManager
from .core.context import RunContext
from .core.logging import log_event
from .errors import ParseError, ScriptError
from .executor import SnippetExecutor
from .exit_codes import ERR_USAGE
from .extract import extract, ignored_runnable_blocks
from .model import Document, DocumentReport, ExecutionResult
from .policy import CancelToken, Policy
from .report import aggregate, parse_failure

DocumentInput = Union[Document, tuple[str, str]]


def run_document(
    document: Document,
    config: RunConfig,
    cancel: CancelToken | None = None,
    ctx: RunContext | None = None,
) -> DocumentReport:
    ctx = ctx or RunContext.from_args(log_json=config.log_json)
    executor = SnippetExecutor(Policy.from_config(config), cancel, ctx)
    manager = ContextManager(config, ctx)
    for block in ignored_runnable_blocks(document):
        log_event(
            ctx,
            "warn",
            "extract",
            "ignored-runnable",
            doc_id=document.doc_id,
            line=block.start_line,
            language=block.language or "<none>",
        )
    log_event(ctx, "info", "runner", "document.begin", doc_id=document.doc_id, blocks=len(document.runnable_blocks))
    results: list[ExecutionResult] = []
    with manager.session(document) as run:
        for block in document.runnable_blocks:
            if cancel is not None and cancel.cancelled:
                results.append(ExecutionResult.skipped(block))
                continue
            result = executor.execute(block, manager.context_for(block, run))
            log_event(
                ctx,
                "debug",
                "executor",
                "block",
                doc_id=document.doc_id,
                line=block.start_line,
                outcome=result.outcome.kind.value,
                reason=result.outcome.reason or "-",
                duration_ms=result.duration_ms,
            )
            results.append(result)
    report = aggregate(document, results, config.expect_error_match)
    log_event(
        ctx,
        "info",
        "runner",
        "document.end",
        doc_id=document.doc_id,
        failed=report.failed,
        total=report.summary["total"],
        failures=report.summary["failed"],
    )
    return report


def _load(item: DocumentInput, ctx: RunContext) -> Document | DocumentReport:
    if isinstance(item, Document):
        return item
    doc_id, text = item
    try:
        return extract(text, doc_id)
    except ParseError as exc:
        log_event(ctx, "error", "extract", "parse-error", doc_id=doc_id, line=exc.line, error=exc.message)
        return parse_failure(doc_id, exc)


def run(
    documents: Iterable[DocumentInput],
    config: RunConfig | None = None,
    cancel: CancelToken | None = None,
    ctx: RunContext | None = None,
) -> list[DocumentReport]:
    """Run every document and return one report per document, in input order."""
    config = config or RunConfig()
    ctx = ctx or RunContext.from_args(log_json=config.log_json)
    items = list(documents)

    def one(item: DocumentInput) -> DocumentReport:
        loaded = _load(item, ctx)
        if isinstance(loaded, DocumentReport):
            return loaded
        return run_document(loaded, config, cancel, ctx)

    if config.workers <= 1 or len(items) <= 1:
        return [one(item) for item in items]
    with ThreadPoolExecutor(max_workers=config.workers, thread_name_prefix="snipctl-doc") as pool:
        return list(pool.map(one, items))


def collect_documents(paths: Sequence[Path]) -> list[tuple[str, str]]:
    """Read Markdown files, expanding directories to their ``**/*.md`` files."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(path.rglob("*.md")))
        elif path.is_file():
            files.append(path)
        else:
            raise ScriptError(f"no such file or directory: {path}", ERR_USAGE, kind="usage_error")
    documents: list[tuple[str, str]] = []
    for file in files:
        try:
            documents.append((file.as_posix(), file.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as exc:
            raise ScriptError(f"cannot read {file}: {exc}", ERR_USAGE, kind="usage_error") from exc
    return documents


__all__ = ["CancelToken", "DocumentInput", "collect_documents", "run", "run_document"]
