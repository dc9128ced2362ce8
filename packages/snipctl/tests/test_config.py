from __future__ import annotations

from pathlib import Path

import pytest

from snipctl.config import DEFAULT_CAPABILITIES, RunConfig, load_run_config, parse_capabilities
from snipctl.errors import ConfigError


@pytest.mark.unit
def test_defaults() -> None:
    config = load_run_config(env={})
    assert config == RunConfig()
    assert config.allow_capabilities == DEFAULT_CAPABILITIES
    assert config.timeout_ms == 2000
    assert config.expect_error_match == "name"


@pytest.mark.unit
def test_precedence_file_then_env_then_overrides(tmp_path: Path) -> None:
    path = tmp_path / "snipctl.yaml"
    path.write_text("timeout-ms: 500\nmax_steps: 100\nworkers: 2\nallow_capabilities: [print, timers]\n", encoding="utf-8")
    env = {"SNIPCTL_MAX_STEPS": "200", "SNIPCTL_WORKERS": "3"}
    config = load_run_config(path, env=env, overrides={"workers": 4})
    assert config.timeout_ms == 500
    assert config.max_steps == 200
    assert config.workers == 4
    assert config.allow_capabilities == frozenset({"print", "timers"})


@pytest.mark.unit
def test_json_config_files(tmp_path: Path) -> None:
    path = tmp_path / "snipctl.json"
    path.write_text('{"seed": 9, "expect_error_match": "any"}', encoding="utf-8")
    config = load_run_config(path, env={})
    assert config.seed == 9
    assert config.expect_error_match == "any"


@pytest.mark.unit
def test_env_capabilities_are_comma_separated() -> None:
    config = load_run_config(env={"SNIPCTL_ALLOW": "print, fs ,network"})
    assert config.allow_capabilities == frozenset({"print", "fs", "network"})


@pytest.mark.unit
def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("timeout: 5\n", encoding="utf-8")
    with pytest.raises(ConfigError) as err:
        load_run_config(path, env={})
    assert "unknown config keys: timeout" in str(err.value)


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"timeout_ms": 0},
        {"max_steps": "many"},
        {"workers": True},
        {"allow_capabilities": "print,teleport"},
        {"expect_error_match": "exact"},
    ],
)
def test_invalid_values_are_config_errors(overrides: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        load_run_config(env={}, overrides=overrides)


@pytest.mark.unit
def test_malformed_and_non_mapping_files(tmp_path: Path) -> None:
    broken = tmp_path / "broken.yaml"
    broken.write_text("a: [1\n", encoding="utf-8")
    listing = tmp_path / "list.yaml"
    listing.write_text("- 1\n- 2\n", encoding="utf-8")
    for path in (broken, listing, tmp_path / "missing.yaml"):
        with pytest.raises(ConfigError):
            load_run_config(path, env={})


@pytest.mark.unit
def test_empty_file_means_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_run_config(path, env={}) == RunConfig()


@pytest.mark.unit
def test_parse_capabilities_accepts_lists() -> None:
    assert parse_capabilities(["print", " fs "]) == frozenset({"print", "fs"})
    with pytest.raises(ConfigError):
        parse_capabilities(5)
