from __future__ import annotations

import pytest

from snipctl.errors import ParseError
from snipctl.extract import extract, ignored_runnable_blocks, segments_as_rows
from snipctl.model import CodeBlock, ExpectedOutput, Prose

DOC = """# Title

Some prose.

```js runnable
console.log(1 + 1)
```

```output
2
```

~~~javascript runnable isolated
let x = 1
~~~

```python runnable
print("ignored")
```

```js
notRunnable()
```
"""


@pytest.mark.unit
def test_segments_keep_document_order_and_lines() -> None:
    doc = extract(DOC, "guide.md")
    kinds = [type(seg) for seg in doc.segments]
    assert kinds[0] is Prose
    blocks = doc.code_blocks
    assert [b.start_line for b in blocks] == [5, 13, 17, 21]
    assert [b.language for b in blocks] == ["js", "javascript", "python", "js"]
    assert any(isinstance(seg, ExpectedOutput) and seg.start_line == 9 for seg in doc.segments)


@pytest.mark.unit
def test_only_target_language_blocks_with_runnable_are_run() -> None:
    doc = extract(DOC)
    runnable = doc.runnable_blocks
    assert [b.start_line for b in runnable] == [5, 13]
    assert runnable[1].isolated
    assert not runnable[0].isolated


@pytest.mark.unit
def test_expected_output_attaches_to_preceding_runnable_block() -> None:
    doc = extract(DOC)
    assert doc.runnable_blocks[0].expected_output == ("2",)
    assert doc.runnable_blocks[1].expected_output is None


@pytest.mark.unit
def test_ignored_runnable_blocks_are_reported() -> None:
    ignored = ignored_runnable_blocks(extract(DOC))
    assert [(b.language, b.start_line) for b in ignored] == [("python", 17)]


@pytest.mark.unit
def test_block_source_excludes_fences() -> None:
    doc = extract("```js runnable\nconst a = 1\nconst b = 2\n```\n")
    assert doc.runnable_blocks[0].source == "const a = 1\nconst b = 2"


@pytest.mark.unit
def test_longer_fence_contains_shorter_fence_lines() -> None:
    text = "````md\n```js runnable\nx\n```\n````\n"
    doc = extract(text)
    assert len(doc.code_blocks) == 1
    assert doc.code_blocks[0].language == "md"
    assert "```js runnable" in doc.code_blocks[0].source


@pytest.mark.unit
def test_unterminated_fence_reports_opening_line() -> None:
    with pytest.raises(ParseError) as err:
        extract("intro\n\n```js runnable\nconsole.log(1)\n", "broken.md")
    assert err.value.line == 3
    assert err.value.doc_id == "broken.md"
    assert "unterminated" in err.value.message
    assert "'```'" in err.value.message
    assert "````" not in err.value.message


@pytest.mark.unit
def test_expect_error_annotation_parsing() -> None:
    doc = extract("```js runnable expect-error=TypeError\nnull.x\n```\n```js runnable expect-error\nthrow 1\n```\n")
    first, second = doc.runnable_blocks
    assert first.expect_error and first.expected_error_name == "TypeError"
    assert second.expect_error and second.expected_error_name is None


@pytest.mark.unit
def test_output_block_after_prose_gap_still_attaches() -> None:
    doc = extract("```js runnable\nconsole.log('hi')\n```\n\n```output\nhi\n```\n")
    assert doc.runnable_blocks[0].expected_output == ("hi",)


@pytest.mark.unit
def test_output_block_after_text_does_not_attach() -> None:
    doc = extract("```js runnable\nconsole.log('hi')\n```\nsee below\n```output\nhi\n```\n")
    assert doc.runnable_blocks[0].expected_output is None


@pytest.mark.unit
def test_segments_as_rows_shape() -> None:
    rows = segments_as_rows(extract(DOC))
    code = [row for row in rows if row["kind"] == "code"]
    assert code[0] == {
        "kind": "code",
        "start_line": 5,
        "language": "js",
        "annotations": ["runnable"],
        "runnable": True,
        "has_expected_output": True,
    }
    assert {row["kind"] for row in rows} == {"code", "output", "prose"}


@pytest.mark.unit
def test_empty_document_has_no_blocks() -> None:
    doc = extract("")
    assert doc.segments == ()
    assert isinstance(extract("just text").segments[0], Prose)
    assert not isinstance(extract("just text").segments[0], CodeBlock)
