from __future__ import annotations

import pytest

from helpers import block, evaluate
from snipctl.context import ContextManager
from snipctl.errors import ContextError
from snipctl.extract import extract
from snipctl.model import ContextLifetime

DOC = extract("```js runnable\nlet a = 1\n```\n```js runnable isolated\na\n```\n", "ctx.md")


@pytest.mark.unit
def test_carried_blocks_share_one_context() -> None:
    manager = ContextManager()
    run = manager.begin(DOC)
    first = manager.context_for(block("1"), run)
    second = manager.context_for(block("2"), run)
    assert first is second
    assert first.lifetime is ContextLifetime.CARRIED
    assert first.owner == run
    manager.end(DOC)


@pytest.mark.unit
def test_isolated_blocks_get_fresh_contexts() -> None:
    manager = ContextManager()
    with manager.session(DOC) as run:
        carried = manager.context_for(block("1"), run)
        evaluate("let shared = 1", carried)
        isolated = manager.context_for(block("shared", "isolated"), run)
        assert isolated is not carried
        assert isolated.lifetime is ContextLifetime.FRESH
        assert not isolated.has("shared")
        assert carried.has("shared")


@pytest.mark.unit
def test_context_requires_an_active_run() -> None:
    manager = ContextManager()
    with pytest.raises(ContextError):
        manager.context_for(block("1"))


@pytest.mark.unit
def test_only_one_run_at_a_time() -> None:
    manager = ContextManager()
    manager.begin(DOC)
    with pytest.raises(ContextError):
        manager.begin(DOC)


@pytest.mark.unit
def test_foreign_run_token_is_rejected() -> None:
    manager = ContextManager()
    manager.begin(DOC)
    with pytest.raises(ContextError):
        manager.context_for(block("1"), "other.md#999")


@pytest.mark.unit
def test_contexts_are_released_when_the_run_ends() -> None:
    manager = ContextManager()
    with manager.session(DOC) as run:
        context = manager.context_for(block("1"), run)
        evaluate("let a = 1", context)
    assert manager.active_run is None
    assert context.released
    assert context.names() == []
    with pytest.raises(ContextError):
        evaluate("a", context)


@pytest.mark.unit
def test_run_tokens_are_unique() -> None:
    manager = ContextManager()
    with manager.session(DOC) as first:
        pass
    with manager.session(DOC) as second:
        pass
    assert first != second
    assert first.startswith("ctx.md#")
