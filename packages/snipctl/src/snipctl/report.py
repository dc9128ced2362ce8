"""Turn per-block execution results into document reports and run verdicts."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from .contracts import validate
from .errors import ParseError
from .exit_codes import ERR_DOCS, OK
from .model import BlockRow, ContextLifetime, Document, DocumentReport, ExecutionResult, OutcomeKind

DOCUMENT_SCHEMA = "snipctl.document-report.v1"
RUN_SCHEMA = "snipctl.run-report.v1"
SEGMENTS_SCHEMA = "snipctl.segments.v1"

EXPECTED_ERROR_NOT_THROWN = "expected-error-not-thrown"
OUTPUT_MISMATCH = "output-mismatch"
ASSERTION_FAILED = "assertion-failed"


def _normalize(lines: Iterable[str]) -> list[str]:
    flat = [line.rstrip() for entry in lines for line in (entry.split("\n") if entry else [""])]
    while flat and not flat[-1]:
        flat.pop()
    return flat


def output_matches(result: ExecutionResult) -> bool:
    expected = result.block.expected_output
    if expected is None:
        return True
    return _normalize(result.output) == _normalize(expected)


def judge(result: ExecutionResult, expect_error_match: str = "name") -> BlockRow:
    """Decide whether one block passed, and why not."""
    block = result.block
    outcome = result.outcome
    kind = outcome.kind
    if kind is OutcomeKind.SKIPPED:
        return BlockRow(result, passed=False, reason=f"skipped:{outcome.reason}")
    if kind in (OutcomeKind.TIMED_OUT, OutcomeKind.POLICY_VIOLATION):
        return BlockRow(result, passed=False, reason=outcome.reason)
    expected = False
    if block.expect_error:
        if kind is OutcomeKind.COMPLETED:
            return BlockRow(result, passed=False, reason=EXPECTED_ERROR_NOT_THROWN)
        wanted = block.expected_error_name
        if expect_error_match == "name" and wanted and outcome.error_name != wanted:
            return BlockRow(result, passed=False, reason=f"error-name-mismatch:{wanted}!={outcome.error_name or 'value'}")
        expected = True
    elif kind is OutcomeKind.THROWN:
        return BlockRow(result, passed=False, reason=f"thrown:{outcome.error_name or 'value'}")
    if result.assertion_failures:
        return BlockRow(result, passed=False, reason=ASSERTION_FAILED, expected=expected)
    if not output_matches(result):
        return BlockRow(result, passed=False, reason=OUTPUT_MISMATCH, expected=expected)
    return BlockRow(result, passed=True, expected=expected)


def summarize(rows: Sequence[BlockRow]) -> dict[str, int]:
    skipped = sum(1 for row in rows if row.result.outcome.kind is OutcomeKind.SKIPPED)
    failed = sum(1 for row in rows if not row.passed and row.result.outcome.kind is not OutcomeKind.SKIPPED)
    return {
        "total": len(rows),
        "run": len(rows) - skipped,
        "passed": sum(1 for row in rows if row.passed),
        "failed": failed,
        "skipped": skipped,
        "expected_errors": sum(1 for row in rows if row.expected),
    }


def aggregate(
    document: Document,
    results: Sequence[ExecutionResult],
    expect_error_match: str = "name",
) -> DocumentReport:
    order = {id(block): idx for idx, block in enumerate(document.runnable_blocks)}
    ordered = sorted(results, key=lambda result: order.get(id(result.block), result.start_line))
    rows = tuple(judge(result, expect_error_match) for result in ordered)
    return DocumentReport(doc_id=document.doc_id, rows=rows, summary=summarize(rows))


def parse_failure(doc_id: str, error: ParseError) -> DocumentReport:
    return DocumentReport(
        doc_id=doc_id,
        parse_error=error.message,
        parse_error_line=error.line,
        summary=summarize(()),
    )


def failure_lines(report: DocumentReport) -> list[str]:
    lines: list[str] = []
    if report.parse_error:
        lines.append(f"{report.doc_id}:{report.parse_error_line}: parse-error: {report.parse_error}")
    for row in report.rows:
        if not row.passed:
            lines.append(f"{report.doc_id}:{row.result.start_line}: {row.reason}")
    return lines


def exit_code(reports: Iterable[DocumentReport]) -> int:
    return ERR_DOCS if any(report.failed for report in reports) else OK


def _block_payload(row: BlockRow) -> dict[str, Any]:
    result = row.result
    outcome = result.outcome
    block = result.block
    error = None
    if outcome.kind is OutcomeKind.THROWN:
        error = {"name": outcome.error_name, "message": outcome.error_message, "line": outcome.error_line}
    lifetime = ContextLifetime.FRESH if block.isolated else ContextLifetime.CARRIED
    return {
        "start_line": block.start_line,
        "language": block.language,
        "annotations": list(block.annotations),
        "context": lifetime.value,
        "outcome": outcome.kind.value,
        "value": outcome.value,
        "error": error,
        "reason": row.reason or outcome.reason,
        "passed": row.passed,
        "expected": row.expected,
        "output": list(result.output),
        "expected_output": None if block.expected_output is None else list(block.expected_output),
        "assertion_failures": list(result.assertion_failures),
        "duration_ms": result.duration_ms,
        "steps": result.steps,
    }


def payload(report: DocumentReport) -> dict[str, Any]:
    body = {
        "schema_name": DOCUMENT_SCHEMA,
        "schema_version": 1,
        "doc_id": report.doc_id,
        "failed": report.failed,
        "parse_error": (
            {"line": report.parse_error_line, "message": report.parse_error} if report.parse_error else None
        ),
        "summary": dict(report.summary) or summarize(report.rows),
        "blocks": [_block_payload(row) for row in report.rows],
    }
    validate(DOCUMENT_SCHEMA, body)
    return body


def run_payload(reports: Sequence[DocumentReport], run_id: str, config: dict[str, Any]) -> dict[str, Any]:
    code = exit_code(reports)
    body = {
        "schema_name": RUN_SCHEMA,
        "schema_version": 1,
        "run_id": run_id,
        "config": config,
        "failed": code != OK,
        "exit_code": code,
        "documents": [payload(report) for report in reports],
    }
    validate(RUN_SCHEMA, body)
    return body


__all__ = [
    "aggregate",
    "exit_code",
    "failure_lines",
    "judge",
    "output_matches",
    "parse_failure",
    "payload",
    "run_payload",
    "summarize",
]
