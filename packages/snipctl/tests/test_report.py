from __future__ import annotations

import json
from pathlib import Path

import pytest

from helpers import ROOT, block, fence, run_markdown
from snipctl.config import RunConfig
from snipctl.contracts import load_catalog, schema_path, validate
from snipctl.errors import ContractError
from snipctl.model import ExecutionResult, Outcome
from snipctl.report import (
    DOCUMENT_SCHEMA,
    RUN_SCHEMA,
    judge,
    output_matches,
    payload,
    run_payload,
    summarize,
)


@pytest.mark.unit
def test_all_catalog_schemas_have_files() -> None:
    catalog = load_catalog()
    assert set(catalog) == {"snipctl.document-report.v1", "snipctl.run-report.v1", "snipctl.segments.v1"}
    schemas_root = ROOT / "packages/snipctl/src/snipctl/contracts/schemas"
    for entry in catalog.values():
        assert (schemas_root / entry.file).is_file(), entry.file
        assert schema_path(entry.name).is_file()
        json.loads((schemas_root / entry.file).read_text(encoding="utf-8"))


@pytest.mark.unit
def test_unknown_schema_is_a_contract_error() -> None:
    with pytest.raises(ContractError):
        schema_path("snipctl.nope.v1")


@pytest.mark.unit
def test_invalid_payload_is_rejected() -> None:
    with pytest.raises(ContractError) as err:
        validate(DOCUMENT_SCHEMA, {"schema_name": DOCUMENT_SCHEMA})
    assert "schema validation failed" in str(err.value)


@pytest.mark.unit
def test_document_payload_shape() -> None:
    report = run_markdown(fence("console.log('hi')\n40 + 2") + "```output\nhi\n```\n" + fence("throw new Error('x')"))
    body = payload(report)
    assert body["schema_name"] == DOCUMENT_SCHEMA
    first, second = body["blocks"]
    assert first["outcome"] == "completed"
    assert first["value"] == "42"
    assert first["output"] == ["hi"]
    assert first["expected_output"] == ["hi"]
    assert first["passed"] is True
    assert second["error"] == {"name": "Error", "message": "x", "line": 9}
    assert second["reason"] == "thrown:Error"
    assert body["failed"] is True
    assert body["summary"]["failed"] == 1


@pytest.mark.unit
def test_run_payload_carries_config_and_exit_code() -> None:
    config = RunConfig(seed=3)
    report = run_markdown(fence("1"), seed=3)
    body = run_payload([report], "run-1", config.as_dict())
    assert body["schema_name"] == RUN_SCHEMA
    assert body["exit_code"] == 0
    assert body["config"]["allow_capabilities"] == ["assert", "print"]
    assert body["documents"][0]["doc_id"] == "doc.md"


def _result(output: tuple[str, ...], expected: tuple[str, ...] | None) -> ExecutionResult:
    return ExecutionResult(block=block("x", expected=expected), output=output, outcome=Outcome.completed("undefined"), duration_ms=0)


@pytest.mark.unit
def test_output_comparison_ignores_trailing_whitespace() -> None:
    assert output_matches(_result(("a  ", "b\nc"), ("a", "b", "c", "")))
    assert output_matches(_result(("anything",), None))
    assert not output_matches(_result(("a",), ("A",)))
    assert not output_matches(_result(("a", "", "b"), ("a", "b")))


@pytest.mark.unit
def test_skipped_rows_are_counted_separately() -> None:
    skipped = judge(ExecutionResult.skipped(block("1")))
    passed = judge(_result((), None))
    assert not skipped.passed and skipped.reason == "skipped:run-cancelled"
    summary = summarize([skipped, passed])
    assert summary == {"total": 2, "run": 1, "passed": 1, "failed": 0, "skipped": 1, "expected_errors": 0}


@pytest.mark.unit
def test_sample_payloads_validate(tmp_path: Path) -> None:
    report = run_markdown(fence("1"))
    path = tmp_path / "report.json"
    path.write_text(json.dumps(payload(report)), encoding="utf-8")
    validate(DOCUMENT_SCHEMA, json.loads(path.read_text(encoding="utf-8")))
