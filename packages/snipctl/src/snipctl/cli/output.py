"""CLI payload output helpers."""

from __future__ import annotations

from typing import Sequence

from ..core.serialize import dumps_json
from ..model import DocumentReport
from ..report import failure_lines


def emit(payload: dict[str, object], as_json: bool) -> None:
    print(dumps_json(payload, pretty=not as_json))


def render_error(*, as_json: bool, message: str, code: int, kind: str = "generic_error") -> str:
    if as_json:
        return dumps_json(
            {
                "schema_name": "snipctl.error.v1",
                "schema_version": 1,
                "tool": "snipctl",
                "status": "error",
                "errors": [{"code": code, "kind": kind, "message": message}],
            },
            pretty=False,
        )
    return message


def render_text(reports: Sequence[DocumentReport]) -> str:
    lines: list[str] = []
    for report in reports:
        summary = report.summary
        status = "FAIL" if report.failed else "ok  "
        lines.append(
            f"{status} {report.doc_id} blocks={summary.get('total', 0)} passed={summary.get('passed', 0)} "
            f"failed={summary.get('failed', 0)} skipped={summary.get('skipped', 0)}"
        )
        lines.extend(f"  {line}" for line in failure_lines(report))
    failed = sum(1 for report in reports if report.failed)
    lines.append(f"summary: documents={len(reports)} failed={failed}")
    return "\n".join(lines)
