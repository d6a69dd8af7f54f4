"""
snipcheck - verify the code examples in Markdown documentation.

Fenced code blocks are extracted, inline ``# expected`` annotations are
parsed, each block runs in an isolated interpreter and the captured values
are compared with the annotations.

Quick start::

    from snipcheck import verify_paths

    report = verify_paths(["docs/"])
    print(report.status, report.passed, report.failed)

The verifier, settings and CLI pull in pydantic, structlog and rich; they are
imported lazily so that sandbox processes start with the standard library
only.
"""

from __future__ import annotations

from typing import Any

from snipcheck.core.errors import (
    ConfigError,
    DocumentReadError,
    EvaluationError,
    ExtractionError,
    SnipcheckError,
    SnippetTimeout,
)
from snipcheck.expectations import parse_expectations
from snipcheck.extraction import extract_blocks, load_document
from snipcheck.models import (
    BlockStatus,
    CodeBlock,
    Document,
    EvaluationResult,
    Expectation,
    ParseWarning,
    Report,
    ResultStatus,
    RunStatus,
)

__version__ = "0.1.0"

_LAZY = {
    "Verifier": "snipcheck.verifier",
    "verify_paths": "snipcheck.verifier",
    "VerifierSettings": "snipcheck.core.config",
    "get_settings": "snipcheck.core.config",
}


def __getattr__(name: str) -> Any:
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib

    return getattr(importlib.import_module(module_name), name)


__all__ = [
    "BlockStatus",
    "CodeBlock",
    "ConfigError",
    "Document",
    "DocumentReadError",
    "EvaluationError",
    "EvaluationResult",
    "Expectation",
    "ExtractionError",
    "ParseWarning",
    "Report",
    "ResultStatus",
    "RunStatus",
    "SnipcheckError",
    "SnippetTimeout",
    "Verifier",
    "extract_blocks",
    "get_settings",
    "load_document",
    "parse_expectations",
    "verify_paths",
    "__version__",
]
