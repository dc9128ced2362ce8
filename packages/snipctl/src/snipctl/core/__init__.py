"""snipctl core helpers: run context, environment, logging, serialization."""
from .context import RunContext
from .logging import log_event
from .serialize import dumps_json

__all__ = ["RunContext", "dumps_json", "log_event"]
