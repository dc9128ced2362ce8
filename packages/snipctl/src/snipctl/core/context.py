from __future__ import annotations

import os
from dataclasses import dataclass

from .clock import utc_stamp
from .env import getenv


@dataclass(frozen=True)
class RunContext:
    run_id: str
    log_json: bool = False
    verbose: bool = False
    quiet: bool = False

    @classmethod
    def from_args(
        cls,
        run_id: str | None = None,
        log_json: bool = False,
        verbose: bool = False,
        quiet: bool = False,
    ) -> "RunContext":
        default_run = f"snipctl-{utc_stamp()}-{os.getpid()}"
        resolved_run_id = run_id or getenv("SNIPCTL_RUN_ID") or default_run
        return cls(run_id=resolved_run_id, log_json=log_json, verbose=verbose, quiet=quiet)
