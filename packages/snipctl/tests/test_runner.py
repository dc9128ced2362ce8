from __future__ import annotations

from pathlib import Path

import pytest

from helpers import fence, run_markdown
from snipctl.config import RunConfig
from snipctl.errors import ScriptError
from snipctl.exit_codes import ERR_DOCS, ERR_USAGE, OK
from snipctl.model import OutcomeKind
from snipctl.report import exit_code, failure_lines
from snipctl.runner import CancelToken, collect_documents, run

CARRIED_SUM = (
    "# Sums\n\n"
    + fence("let sum = 0")
    + "\nAdd them up:\n\n"
    + fence("for (const n of [1, 2, 3, 4]) sum += n")
    + "\n"
    + fence("console.log(sum)")
    + "\n```output\n10\n```\n"
)


@pytest.mark.unit
def test_carried_context_accumulates_across_blocks() -> None:
    report = run_markdown(CARRIED_SUM)
    assert not report.failed
    assert report.summary == {"total": 3, "run": 3, "passed": 3, "failed": 0, "skipped": 0, "expected_errors": 0}
    assert report.results[-1].output == ("10",)


@pytest.mark.unit
def test_isolated_block_does_not_see_carried_bindings() -> None:
    text = fence("let total = 1") + fence("console.log(typeof total)", "js runnable isolated") + "```output\nundefined\n```\n"
    report = run_markdown(text)
    assert not report.failed


@pytest.mark.unit
def test_output_mismatch_fails_the_block() -> None:
    report = run_markdown(fence("console.log('actual')") + "```output\nexpected\n```\n")
    assert report.failed
    assert report.rows[0].reason == "output-mismatch"
    assert exit_code([report]) == ERR_DOCS


@pytest.mark.unit
def test_expect_error_blocks_pass_when_the_named_error_is_thrown() -> None:
    report = run_markdown(fence("null.x", "js runnable expect-error=TypeError"))
    assert not report.failed
    assert report.summary["expected_errors"] == 1
    assert report.rows[0].result.outcome.kind is OutcomeKind.THROWN


@pytest.mark.unit
def test_expect_error_block_that_completes_fails() -> None:
    report = run_markdown(fence("1 + 1", "js runnable expect-error"))
    assert report.rows[0].reason == "expected-error-not-thrown"


@pytest.mark.unit
def test_expect_error_name_matching_modes() -> None:
    text = fence("throw new TypeError('x')", "js runnable expect-error=RangeError")
    strict = run_markdown(text)
    assert strict.rows[0].reason == "error-name-mismatch:RangeError!=TypeError"
    relaxed = run_markdown(text, expect_error_match="any")
    assert not relaxed.failed


@pytest.mark.unit
def test_uncaught_throw_is_reported_at_its_document_line() -> None:
    report = run_markdown("intro\n\n" + fence("const a = 1\nthrow new Error('boom')"), "err.md")
    assert report.rows[0].reason == "thrown:Error"
    assert report.rows[0].result.outcome.error_line == 5
    assert failure_lines(report) == ["err.md:3: thrown:Error"]


@pytest.mark.unit
def test_policy_violation_rolls_back_and_later_blocks_continue() -> None:
    text = fence("let n = 1") + fence("n = 99\nrequire('x')") + fence("console.log(n)") + "```output\n1\n```\n"
    report = run_markdown(text)
    reasons = [row.reason for row in report.rows]
    assert reasons == ["", "capability-denied:fs", ""]
    assert [row.passed for row in report.rows] == [True, False, True]


@pytest.mark.unit
def test_runaway_string_growth_throws_and_later_blocks_still_run() -> None:
    text = fence("let s = 'ab'\nfor (let i = 0; i < 40; i++) s = s + s") + fence("console.log(s.length)") + "```output\n67108864\n```\n"
    report = run_markdown(text)
    first, second = report.rows
    assert first.reason == "thrown:RangeError"
    assert first.result.outcome.error_message == "Invalid string length"
    assert second.passed


@pytest.mark.unit
def test_failed_assertions_fail_the_block() -> None:
    report = run_markdown(fence("assert.equal(1, 2)\nconsole.log('still runs')"))
    row = report.rows[0]
    assert row.reason == "assertion-failed"
    assert row.result.output == ("still runs",)
    assert row.result.assertion_failures == ("1 == 2",)


@pytest.mark.unit
def test_parse_errors_fail_only_their_document() -> None:
    reports = run([("broken.md", "```js runnable\nlet x = 1\n"), ("fine.md", fence("1"))])
    broken, fine = reports
    assert broken.failed and broken.parse_error_line == 1
    assert failure_lines(broken)[0].startswith("broken.md:1: parse-error:")
    assert not fine.failed
    assert exit_code(reports) == ERR_DOCS


@pytest.mark.unit
def test_non_target_runnable_blocks_are_not_executed() -> None:
    report = run_markdown("```python runnable\nprint(1)\n```\n" + fence("1"))
    assert report.summary["total"] == 1


@pytest.mark.unit
def test_parallel_runs_keep_input_order_and_isolation() -> None:
    docs = [(f"doc{i}.md", fence(f"let id = {i}") + fence("console.log(id)") + f"```output\n{i}\n```\n") for i in range(6)]
    reports = run(docs, RunConfig(workers=4))
    assert [report.doc_id for report in reports] == [doc_id for doc_id, _ in docs]
    assert all(not report.failed for report in reports)
    assert exit_code(reports) == OK


@pytest.mark.unit
def test_cancelled_run_skips_remaining_blocks() -> None:
    token = CancelToken()
    token.cancel()
    report = run([("c.md", fence("1") + fence("2"))], cancel=token)[0]
    assert report.summary["skipped"] == 2
    assert report.summary["failed"] == 0
    assert report.failed
    assert {row.reason for row in report.rows} == {"skipped:run-cancelled"}


@pytest.mark.unit
def test_collect_documents_expands_directories(docs_dir: Path) -> None:
    (docs_dir / "b.md").write_text("b", encoding="utf-8")
    (docs_dir / "sub").mkdir()
    (docs_dir / "sub" / "a.md").write_text("a", encoding="utf-8")
    (docs_dir / "notes.txt").write_text("skip", encoding="utf-8")
    collected = collect_documents([docs_dir])
    assert [Path(doc_id).name for doc_id, _ in collected] == ["b.md", "a.md"]
    assert [text for _, text in collected] == ["b", "a"]


@pytest.mark.unit
def test_collect_documents_rejects_missing_paths(tmp_path: Path) -> None:
    with pytest.raises(ScriptError) as err:
        collect_documents([tmp_path / "missing.md"])
    assert err.value.code == ERR_USAGE
