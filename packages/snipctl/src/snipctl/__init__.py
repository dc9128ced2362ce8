"""snipctl: execute and verify code examples embedded in Markdown documents."""

__version__ = "0.1.0"

from .config import RunConfig, load_run_config
from .context import ContextManager, ExecutionContext
from .executor import SnippetExecutor, execute
from .extract import extract, extract_file
from .model import CodeBlock, Document, DocumentReport, ExecutionResult, Outcome, OutcomeKind
from .policy import CancelToken, Policy, PolicyEnforcer
from .report import aggregate, exit_code, failure_lines, payload
from .runner import run

__all__ = [
    "CancelToken",
    "CodeBlock",
    "ContextManager",
    "Document",
    "DocumentReport",
    "ExecutionContext",
    "ExecutionResult",
    "Outcome",
    "OutcomeKind",
    "Policy",
    "PolicyEnforcer",
    "RunConfig",
    "SnippetExecutor",
    "__version__",
    "aggregate",
    "execute",
    "exit_code",
    "extract",
    "extract_file",
    "failure_lines",
    "load_run_config",
    "payload",
    "run",
]
