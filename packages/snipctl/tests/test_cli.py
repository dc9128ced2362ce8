from __future__ import annotations

import json
from pathlib import Path

import pytest

from helpers import fence, run_snipctl
from snipctl.cli.main import build_parser
from snipctl.exit_codes import ERR_CONFIG, ERR_DOCS, ERR_PARSE, ERR_USAGE, OK

PASSING = "# Ok\n\n" + fence("const xs = [1, 2, 3]\nconsole.log(xs.length)") + "```output\n3\n```\n"
FAILING = fence("console.log('a')") + "```output\nb\n```\n"


@pytest.mark.unit
def test_parser_exposes_run_and_extract() -> None:
    parser = build_parser()
    ns = parser.parse_args(["run", "docs", "--allow", "print,timers", "--workers", "2", "--json"])
    assert ns.cmd == "run"
    assert ns.allow == "print,timers"
    assert ns.workers == 2
    assert ns.json
    assert parser.parse_args(["extract", "a.md"]).cmd == "extract"


@pytest.mark.integration
def test_run_passing_document_exits_zero(docs_dir: Path) -> None:
    (docs_dir / "ok.md").write_text(PASSING, encoding="utf-8")
    proc = run_snipctl("run", str(docs_dir))
    assert proc.returncode == OK, proc.stderr
    assert "summary: documents=1 failed=0" in proc.stdout


@pytest.mark.integration
def test_run_failing_document_reports_location(docs_dir: Path) -> None:
    doc = docs_dir / "bad.md"
    doc.write_text(FAILING, encoding="utf-8")
    proc = run_snipctl("run", str(doc))
    assert proc.returncode == ERR_DOCS
    assert f"{doc.as_posix()}:1: output-mismatch" in proc.stdout


@pytest.mark.integration
def test_run_json_report(docs_dir: Path) -> None:
    (docs_dir / "ok.md").write_text(PASSING, encoding="utf-8")
    (docs_dir / "bad.md").write_text(FAILING, encoding="utf-8")
    proc = run_snipctl("run", str(docs_dir), "--json", "--run-id", "cli-test", "--seed", "4")
    assert proc.returncode == ERR_DOCS
    payload = json.loads(proc.stdout)
    assert payload["schema_name"] == "snipctl.run-report.v1"
    assert payload["run_id"] == "cli-test"
    assert payload["config"]["seed"] == 4
    assert [Path(doc["doc_id"]).name for doc in payload["documents"]] == ["bad.md", "ok.md"]


@pytest.mark.integration
def test_allow_flag_grants_capabilities(docs_dir: Path) -> None:
    (docs_dir / "t.md").write_text(fence("setTimeout(() => console.log('tick'), 5)") + "```output\ntick\n```\n", encoding="utf-8")
    assert run_snipctl("run", str(docs_dir)).returncode == ERR_DOCS
    assert run_snipctl("run", str(docs_dir), "--allow", "print,timers").returncode == OK


@pytest.mark.integration
def test_log_json_writes_structured_events(docs_dir: Path) -> None:
    (docs_dir / "ok.md").write_text(PASSING, encoding="utf-8")
    proc = run_snipctl("run", str(docs_dir), "--log-json")
    events = [json.loads(line) for line in proc.stderr.splitlines() if line.startswith("{")]
    assert {event["action"] for event in events} >= {"start", "document.begin", "document.end", "finish"}


@pytest.mark.integration
def test_missing_path_is_a_usage_error(tmp_path: Path) -> None:
    proc = run_snipctl("run", str(tmp_path / "nope.md"), "--json")
    assert proc.returncode == ERR_USAGE
    error = json.loads(proc.stderr.strip().splitlines()[-1])
    assert error["errors"][0]["kind"] == "usage_error"


@pytest.mark.integration
def test_bad_config_is_a_config_error(docs_dir: Path) -> None:
    (docs_dir / "ok.md").write_text(PASSING, encoding="utf-8")
    config = docs_dir.parent / "snipctl.yaml"
    config.write_text("workers: 0\n", encoding="utf-8")
    proc = run_snipctl("run", str(docs_dir), "--config", str(config))
    assert proc.returncode == ERR_CONFIG
    assert run_snipctl("run", str(docs_dir), "--allow", "print,teleport").returncode == ERR_CONFIG


@pytest.mark.integration
def test_extract_emits_segments(docs_dir: Path) -> None:
    doc = docs_dir / "ok.md"
    doc.write_text(PASSING, encoding="utf-8")
    proc = run_snipctl("extract", str(doc), "--json")
    assert proc.returncode == OK, proc.stderr
    payload = json.loads(proc.stdout)
    assert payload["schema_name"] == "snipctl.segments.v1"
    assert [segment["kind"] for segment in payload["segments"]] == ["prose", "code", "output"]


@pytest.mark.integration
def test_extract_reports_broken_documents_and_keeps_going(docs_dir: Path) -> None:
    (docs_dir / "a.md").write_text("intro\n\n```js runnable\nlet x = 1\n", encoding="utf-8")
    (docs_dir / "b.md").write_text(PASSING, encoding="utf-8")
    proc = run_snipctl("extract", str(docs_dir), "--json")
    assert proc.returncode == ERR_PARSE
    payload = json.loads(proc.stdout)
    assert Path(payload["doc_id"]).name == "b.md"
    errors = [json.loads(line) for line in proc.stderr.splitlines() if line.startswith('{"errors"')]
    assert [error["errors"][0]["kind"] for error in errors] == ["parse_error"]
    assert "a.md:3: unterminated code fence '```' opened" in errors[0]["errors"][0]["message"]
