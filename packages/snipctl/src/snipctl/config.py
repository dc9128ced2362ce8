"""Run configuration: defaults, config file, environment, then CLI flags."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .core.env import getenv
from .errors import ConfigError

CAPABILITIES = ("print", "assert", "timers", "clock", "fs", "network", "process")
DEFAULT_CAPABILITIES = frozenset({"print", "assert"})
EXPECT_ERROR_MODES = ("any", "name")

ENV_KEYS = {
    "SNIPCTL_TIMEOUT_MS": "timeout_ms",
    "SNIPCTL_MAX_STEPS": "max_steps",
    "SNIPCTL_ALLOW": "allow_capabilities",
    "SNIPCTL_WORKERS": "workers",
    "SNIPCTL_SEED": "seed",
}


@dataclass(frozen=True)
class RunConfig:
    timeout_ms: int = 2000
    max_steps: int = 1_000_000
    allow_capabilities: frozenset[str] = DEFAULT_CAPABILITIES
    workers: int = 1
    seed: int = 0
    expect_error_match: str = "name"
    log_json: bool = False

    def __post_init__(self) -> None:
        for name in ("timeout_ms", "max_steps", "workers"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        unknown = sorted(set(self.allow_capabilities) - set(CAPABILITIES))
        if unknown:
            raise ConfigError(f"unknown capabilities: {', '.join(unknown)}")
        if self.expect_error_match not in EXPECT_ERROR_MODES:
            raise ConfigError(f"expect_error_match must be one of {', '.join(EXPECT_ERROR_MODES)}")

    def as_dict(self) -> dict[str, Any]:
        payload = {item.name: getattr(self, item.name) for item in fields(self)}
        payload["allow_capabilities"] = sorted(self.allow_capabilities)
        return payload


def parse_capabilities(value: Any) -> frozenset[str]:
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [str(item).strip() for item in value]
    else:
        raise ConfigError(f"allow_capabilities must be a list or comma-separated string, got {value!r}")
    return frozenset(item for item in items if item)


def _coerce(key: str, value: Any) -> Any:
    if key == "allow_capabilities":
        return parse_capabilities(value)
    if key in ("timeout_ms", "max_steps", "workers", "seed"):
        if isinstance(value, bool):
            raise ConfigError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from exc
    if key == "log_json":
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    return str(value)


def _apply(config: RunConfig, values: Mapping[str, Any], source: str) -> RunConfig:
    known = {item.name for item in fields(RunConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"{source}: unknown config keys: {', '.join(unknown)}")
    changes = {key: _coerce(key, value) for key, value in values.items() if value is not None}
    return replace(config, **changes)


def load_config_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    try:
        payload = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"invalid config file {path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return {str(key).replace("-", "_"): value for key, value in payload.items()}


def load_run_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RunConfig:
    """Resolve a RunConfig, lowest to highest precedence: defaults, file, env, overrides."""
    config = RunConfig()
    if path is not None:
        config = _apply(config, load_config_file(path), str(path))
    from_env = {field_name: getenv(env_name, env=env) for env_name, field_name in ENV_KEYS.items()}
    config = _apply(config, {key: value for key, value in from_env.items() if value}, "environment")
    if overrides:
        config = _apply(config, overrides, "command line")
    return config


__all__ = ["CAPABILITIES", "DEFAULT_CAPABILITIES", "RunConfig", "load_run_config", "parse_capabilities"]
