"""Tests for snipcheck.core.errors module."""

import pytest

from snipcheck.core.errors import (
    ConfigError,
    DocumentReadError,
    ErrorCategory,
    ErrorContext,
    EvaluationError,
    ExtractionError,
    InvalidTransitionError,
    SnipcheckError,
    SnippetTimeout,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.document is None
        assert ctx.line is None
        assert ctx.metadata == {}

    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(document="guide.md", line=3, metadata={"hint": "x"})
        assert ctx.to_dict() == {"document": "guide.md", "line": 3, "hint": "x"}


class TestSnipcheckError:
    """Test the base error type."""

    def test_default_category_is_internal(self):
        error = SnipcheckError("boom")
        assert error.category == ErrorCategory.INTERNAL
        assert error.message == "boom"

    def test_with_context_is_fluent(self):
        error = EvaluationError("bad").with_context(document="a.md", line=4, attempt=2)
        assert isinstance(error, EvaluationError)
        assert error.context.document == "a.md"
        assert error.context.line == 4
        assert error.context.metadata == {"attempt": 2}

    def test_cause_is_chained(self):
        cause = OSError("disk gone")
        error = DocumentReadError("cannot read", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "disk gone"

    def test_to_dict(self):
        error = ConfigError("bad timeout").with_context(run_id="abc")
        data = error.to_dict()
        assert data["error_type"] == "ConfigError"
        assert data["category"] == "CONFIG"
        assert data["context"] == {"run_id": "abc"}

    def test_repr(self):
        assert repr(ConfigError("x")) == "ConfigError('x', category=CONFIG)"


class TestSpecificErrors:
    """Categories and extra attributes of the concrete error types."""

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (ExtractionError("m", document="d", line=1), ErrorCategory.EXTRACTION),
            (DocumentReadError("m"), ErrorCategory.IO),
            (EvaluationError("m"), ErrorCategory.EVALUATION),
            (SnippetTimeout(2.0), ErrorCategory.TIMEOUT),
            (ConfigError("m"), ErrorCategory.CONFIG),
            (InvalidTransitionError("m"), ErrorCategory.INTERNAL),
        ],
    )
    def test_categories(self, error, category):
        assert error.category == category
        assert isinstance(error, SnipcheckError)

    def test_extraction_error_location(self):
        error = ExtractionError("unterminated code fence", document="guide.md", line=7)
        assert error.document == "guide.md"
        assert error.line == 7
        assert str(error) == "guide.md:7: unterminated code fence"

    def test_timeout_is_builtin_timeout(self):
        error = SnippetTimeout(2.0, block="guide.md:12")
        assert isinstance(error, TimeoutError)
        assert isinstance(error, EvaluationError)
        assert error.timeout == 2.0
        assert error.message == "Snippet 'guide.md:12' timed out after 2s"
        assert error.context.block == "guide.md:12"
