"""Centralized environment variable helpers."""

from __future__ import annotations

import os
from typing import Mapping


def getenv(name: str, default: str | None = None, env: Mapping[str, str] | None = None) -> str | None:
    source = os.environ if env is None else env
    return source.get(name, default)
