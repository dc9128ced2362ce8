from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from .. import __version__
from ..config import EXPECT_ERROR_MODES, load_run_config
from ..contracts import validate
from ..core.context import RunContext
from ..core.logging import log_event
from ..errors import ParseError, ScriptError
from ..exit_codes import ERR_INTERNAL, ERR_PARSE
from ..extract import extract, segments_as_rows
from ..report import SEGMENTS_SCHEMA, exit_code, run_payload
from ..runner import collect_documents, run
from .output import emit, render_error, render_text


def _common_flags() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="emit JSON output")
    common.add_argument("--run-id", help="run identifier carried by log events and reports")
    common.add_argument("--log-json", action="store_true", help="write log events as JSON lines")
    vg = common.add_mutually_exclusive_group()
    vg.add_argument("--verbose", action="store_true", help="enable debug log events")
    vg.add_argument("--quiet", action="store_true", help="only emit warnings and errors")
    return common


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="snipctl", description="execute and verify code examples embedded in Markdown")
    p.add_argument("--version", action="version", version=f"snipctl {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)
    common = _common_flags()

    run_p = sub.add_parser("run", parents=[common], help="run runnable blocks and verify their expectations")
    run_p.add_argument("paths", nargs="+", type=Path, help="Markdown files or directories")
    run_p.add_argument("--timeout-ms", type=int, help="wall-clock budget per block")
    run_p.add_argument("--max-steps", type=int, help="evaluation step budget per block")
    run_p.add_argument("--allow", help="comma-separated capabilities to allow (default: print,assert)")
    run_p.add_argument("--workers", type=int, help="documents executed in parallel")
    run_p.add_argument("--seed", type=int, help="Math.random seed for every document run")
    run_p.add_argument("--expect-error-match", choices=EXPECT_ERROR_MODES, help="how expect-error blocks are checked")
    run_p.add_argument("--config", type=Path, help="YAML or JSON run configuration file")

    extract_p = sub.add_parser("extract", parents=[common], help="print the segments of Markdown documents")
    extract_p.add_argument("paths", nargs="+", type=Path, help="Markdown files or directories")
    return p


def _run_command(ctx: RunContext, ns: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {
        "timeout_ms": ns.timeout_ms,
        "max_steps": ns.max_steps,
        "allow_capabilities": ns.allow,
        "workers": ns.workers,
        "seed": ns.seed,
        "expect_error_match": ns.expect_error_match,
        "log_json": True if ns.log_json else None,
    }
    config = load_run_config(ns.config, overrides={key: value for key, value in overrides.items() if value is not None})
    ctx = replace(ctx, log_json=config.log_json)
    documents = collect_documents(ns.paths)
    log_event(ctx, "info", "cli", "start", cmd="run", documents=len(documents), workers=config.workers)
    reports = run(documents, config, ctx=ctx)
    code = exit_code(reports)
    if ns.json:
        emit(run_payload(reports, ctx.run_id, config.as_dict()), as_json=True)
    else:
        print(render_text(reports))
    log_event(ctx, "info", "cli", "finish", cmd="run", exit_code=code)
    return code


def _extract_command(ctx: RunContext, ns: argparse.Namespace) -> int:
    failed = 0
    for doc_id, text in collect_documents(ns.paths):
        try:
            document = extract(text, doc_id)
        except ParseError as exc:
            failed += 1
            log_event(ctx, "error", "extract", "parse-error", doc_id=doc_id, line=exc.line, error=exc.message)
            print(render_error(as_json=ns.json, message=str(exc), code=exc.code, kind=exc.kind), file=sys.stderr)
            continue
        payload = {
            "schema_name": SEGMENTS_SCHEMA,
            "schema_version": 1,
            "doc_id": document.doc_id,
            "segments": segments_as_rows(document),
        }
        validate(SEGMENTS_SCHEMA, payload)
        emit(payload, ns.json)
    return ERR_PARSE if failed else 0


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    ns = p.parse_args(argv)
    ctx = RunContext.from_args(ns.run_id, ns.log_json, ns.verbose, ns.quiet)
    try:
        if ns.cmd == "extract":
            return _extract_command(ctx, ns)
        return _run_command(ctx, ns)
    except ScriptError as exc:
        print(render_error(as_json=ns.json, message=str(exc), code=exc.code, kind=exc.kind), file=sys.stderr)
        return exc.code
    except Exception as exc:  # pragma: no cover
        print(render_error(as_json=ns.json, message=f"internal error: {exc}", code=ERR_INTERNAL), file=sys.stderr)
        return ERR_INTERNAL


if __name__ == "__main__":
    raise SystemExit(main())
