from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from helpers import evaluate, fence, run_markdown
from snipctl.extract import extract
from snipctl.lang.values import number_to_string
from snipctl.report import payload

_BLOCK = st.tuples(st.sampled_from(["js runnable", "js", "python runnable", "javascript runnable isolated"]), st.integers(0, 99))
_INTS = st.integers(min_value=-10_000, max_value=10_000)


def _document(blocks: list[tuple[str, int]]) -> str:
    return "\n".join(f"para {idx}\n\n" + fence(f"console.log({value})", info) for idx, (info, value) in enumerate(blocks))


@pytest.mark.unit
@settings(deadline=None, max_examples=25)
@given(st.lists(_BLOCK, max_size=6))
def test_one_result_per_runnable_block_in_order(blocks: list[tuple[str, int]]) -> None:
    text = _document(blocks)
    report = run_markdown(text)
    expected = [block.start_line for block in extract(text).runnable_blocks]
    assert [row.result.start_line for row in report.rows] == expected
    runnable_values = [str(value) for info, value in blocks if info.split()[0] in ("js", "javascript") and "runnable" in info]
    assert [row.result.output[0] for row in report.rows] == runnable_values


@pytest.mark.unit
@settings(deadline=None, max_examples=30)
@given(_INTS, _INTS)
def test_number_and_string_coercion_laws(a: int, b: int) -> None:
    result = evaluate(f'console.log({a} + {b}, "{a}" + {b}, "{a}" - {b}, "{a}" == {a}, {a} < {b})')
    expected = f"{a + b} {a}{b} {a - b} true {'true' if a < b else 'false'}"
    assert result.output == (expected,)


@pytest.mark.unit
@settings(deadline=None, max_examples=20)
@given(st.integers(0, 2**31), st.lists(_INTS, min_size=1, max_size=5))
def test_reruns_are_identical(seed: int, values: list[int]) -> None:
    text = fence(f"const xs = {values}\nxs.sort((a, b) => a - b)\nconsole.log(xs, Math.random())")

    def stable(seed_value: int) -> list[dict[str, object]]:
        blocks = payload(run_markdown(text, seed=seed_value))["blocks"]
        return [{key: value for key, value in block.items() if key != "duration_ms"} for block in blocks]

    assert stable(seed) == stable(seed)


@pytest.mark.unit
@given(st.floats(allow_nan=False, allow_infinity=False))
def test_rendered_numbers_parse_back_to_the_same_value(value: float) -> None:
    text = number_to_string(value)
    assert float(text) == value
    if value.is_integer() and 2**53 <= abs(value) < 1e21:
        assert "." not in text and "e" not in text
