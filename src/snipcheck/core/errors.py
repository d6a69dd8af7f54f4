"""
Structured error types for snipcheck.

Provides a small hierarchy of typed errors carrying a category, structured
context (document, line, block) and an optional chained cause.

Manifesto:
    - **Typed Error Hierarchy:** One error type per failure domain
    - **Local recovery:** Block-level errors are caught at the block boundary
      and turned into results; only input errors end a run
    - **Rich Context:** Errors carry the document and line they refer to
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      SnipcheckError                           │
        │               (category, context, cause)                      │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ExtractionError     EvaluationError      DocumentReadError   │
        │  (EXTRACTION)        (EVALUATION)         (IO, fatal)         │
        │                           │                                   │
        │                      SnippetTimeout       ConfigError         │
        │                      (TIMEOUT)            (CONFIG)            │
        │                                                               │
        │  InvalidTransitionError (INTERNAL)                            │
        └──────────────────────────────────────────────────────────────┘

    ``ParseWarning`` is not an exception: ambiguous
    annotations are recorded and reported, never raised.

Examples:
    >>> error = EvaluationError("ZeroDivisionError: division by zero")
    >>> error.with_context(document="guide.md", line=12)
    EvaluationError('ZeroDivisionError: division by zero', category=EVALUATION)
    >>> error.context.line
    12

Tags:
    error-handling, exception-hierarchy, error-context, snipcheck

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and reporting.

    Attributes:
        EXTRACTION: Malformed fences in a document
        EVALUATION: A snippet raised, or its sandbox died
        TIMEOUT: A snippet exceeded its execution budget
        IO: An input document could not be read
        CONFIG: Invalid settings or command-line options
        INTERNAL: Bugs, unexpected state
    """

    EXTRACTION = "EXTRACTION"
    EVALUATION = "EVALUATION"
    TIMEOUT = "TIMEOUT"
    IO = "IO"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        document: Identifier of the document the error refers to
        line: 1-based line number inside the document
        block: Label of the code block (``path:line``)
        run_id: Identifier of the verifier run
        metadata: Additional key-value pairs
    """

    document: str | None = None
    line: int | None = None
    block: str | None = None
    run_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["document", "line", "block", "run_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SnipcheckError(Exception):
    """
    Base exception for all snipcheck errors.

    Subclasses set ``default_category`` to classify themselves. Every
    instance carries an :class:`ErrorContext` and may chain a ``cause``.

    Examples:
        >>> error = SnipcheckError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'SnipcheckError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SnipcheckError:
        """
        Add context to this error (fluent API).

        Usage:
            raise DocumentReadError("Cannot read").with_context(document="a.md")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DOCUMENT ERRORS
# =============================================================================


class ExtractionError(SnipcheckError):
    """
    Malformed fence boundaries (nested or unterminated fences).

    The extractor collects these instead of raising them; they surface in the
    report and make the run fail, but never stop extraction of later blocks.
    """

    default_category = ErrorCategory.EXTRACTION

    def __init__(self, message: str, *, document: str, line: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.context.document = document
        self.context.line = line

    @property
    def document(self) -> str:
        return self.context.document or ""

    @property
    def line(self) -> int:
        return self.context.line or 0

    def __str__(self) -> str:
        return f"{self.document}:{self.line}: {self.message}"


class DocumentReadError(SnipcheckError):
    """An input document cannot be read at all. Fatal to the whole run."""

    default_category = ErrorCategory.IO


# =============================================================================
# EVALUATION ERRORS
# =============================================================================


class EvaluationError(SnipcheckError):
    """A snippet raised an exception, or its sandbox process died."""

    default_category = ErrorCategory.EVALUATION


class SnippetTimeout(EvaluationError, TimeoutError):
    """
    A snippet exceeded its execution budget.

    Inherits from built-in TimeoutError for broad exception handling.

    Attributes:
        timeout: The timeout value that was exceeded
    """

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, timeout: float, *, block: str = "block", **kwargs: Any):
        self.timeout = timeout
        super().__init__(f"Snippet '{block}' timed out after {timeout:g}s", **kwargs)
        self.context.block = block


# =============================================================================
# CONFIGURATION / INTERNAL ERRORS
# =============================================================================


class ConfigError(SnipcheckError):
    """Invalid settings or command-line options."""

    default_category = ErrorCategory.CONFIG


class InvalidTransitionError(SnipcheckError):
    """A block outcome was moved backwards or out of a terminal state."""

    default_category = ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SnipcheckError",
    "ExtractionError",
    "DocumentReadError",
    "EvaluationError",
    "SnippetTimeout",
    "ConfigError",
    "InvalidTransitionError",
]
