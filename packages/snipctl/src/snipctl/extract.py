"""Split Markdown documents into prose, code blocks and expected-output blocks."""

from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path

from .errors import ParseError
from .model import OUTPUT, RUNNABLE, CodeBlock, Document, ExpectedOutput, Prose, Segment, TARGET_LANGUAGES

FENCE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")


def _closes(line: str, fence: str) -> bool:
    stripped = line.strip()
    if len(line) - len(line.lstrip(" ")) > 3:
        return False
    return bool(stripped) and set(stripped) == {fence[0]} and len(stripped) >= len(fence)


def _dedent(line: str, indent: int) -> str:
    width = len(line) - len(line.lstrip(" "))
    return line[min(width, indent):]


def _parse_info(info: str) -> tuple[str, tuple[str, ...]]:
    tokens = info.split()
    if not tokens:
        return "", ()
    return tokens[0].lower(), tuple(tokens[1:])


def _attach_expected_output(segments: list[Segment]) -> list[Segment]:
    attached = list(segments)
    for idx, seg in enumerate(attached):
        if not isinstance(seg, ExpectedOutput):
            continue
        prev = idx - 1
        while prev >= 0 and isinstance(attached[prev], Prose) and not attached[prev].text.strip():
            prev -= 1
        if prev >= 0 and isinstance(attached[prev], CodeBlock) and attached[prev].runnable:
            attached[prev] = replace(attached[prev], expected_output=seg.lines)
    return attached


def extract(text: str, doc_id: str = "<document>") -> Document:
    lines = text.splitlines()
    segments: list[Segment] = []
    prose: list[str] = []
    prose_start = 1
    idx = 0
    while idx < len(lines):
        match = FENCE_RE.match(lines[idx])
        if match is None or (match.group("fence")[0] == "`" and "`" in match.group("info")):
            if not prose:
                prose_start = idx + 1
            prose.append(lines[idx])
            idx += 1
            continue
        if prose:
            segments.append(Prose("\n".join(prose), prose_start))
            prose = []
        fence = match.group("fence")
        indent = len(match.group("indent"))
        start_line = idx + 1
        body: list[str] = []
        idx += 1
        while idx < len(lines) and not _closes(lines[idx], fence):
            body.append(_dedent(lines[idx], indent))
            idx += 1
        if idx >= len(lines):
            raise ParseError(f"unterminated code fence {fence!r} opened", doc_id=doc_id, line=start_line)
        idx += 1
        language, annotations = _parse_info(match.group("info"))
        source = "\n".join(body)
        if OUTPUT in annotations or language == OUTPUT:
            if language not in TARGET_LANGUAGES:
                segments.append(ExpectedOutput(source, start_line))
                continue
        segments.append(CodeBlock(source, language, annotations, start_line))
    if prose:
        segments.append(Prose("\n".join(prose), prose_start))
    return Document(doc_id=doc_id, segments=tuple(_attach_expected_output(segments)))


def ignored_runnable_blocks(document: Document) -> list[CodeBlock]:
    return [block for block in document.code_blocks if RUNNABLE in block.annotations and not block.is_target_language]


def extract_file(path: Path, doc_id: str | None = None) -> Document:
    return extract(path.read_text(encoding="utf-8"), doc_id or path.as_posix())


def segments_as_rows(document: Document) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for seg in document.segments:
        if isinstance(seg, CodeBlock):
            rows.append(
                {
                    "kind": "code",
                    "start_line": seg.start_line,
                    "language": seg.language,
                    "annotations": list(seg.annotations),
                    "runnable": seg.runnable,
                    "has_expected_output": seg.expected_output is not None,
                }
            )
        elif isinstance(seg, ExpectedOutput):
            rows.append({"kind": "output", "start_line": seg.start_line, "lines": len(seg.lines)})
        else:
            rows.append({"kind": "prose", "start_line": seg.start_line})
    return rows


__all__ = ["extract", "extract_file", "ignored_runnable_blocks", "segments_as_rows"]
