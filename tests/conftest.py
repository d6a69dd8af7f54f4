"""
Shared pytest fixtures and configuration for snipcheck tests.

This module provides:
- Settings cache and environment isolation
- structlog reset after every test
- A ready ``RunContext`` for evaluator and verifier tests
- A ``make_block`` factory that builds a CodeBlock from source text
- Paths to the Markdown fixtures under ``tests/fixtures/docs``
"""

from __future__ import annotations

import os
import textwrap
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog

from snipcheck.context import RunContext
from snipcheck.core.config import VerifierSettings, clear_settings_cache
from snipcheck.extraction import extract_blocks
from snipcheck.models import CodeBlock

FIXTURES = Path(__file__).parent / "fixtures"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop SNIPCHECK_* variables and the settings cache around each test."""
    for key in list(os.environ):
        if key.startswith("SNIPCHECK_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo structlog configuration; CLI runs bind it to CliRunner's short-lived stderr."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Settings / context
# =============================================================================


@pytest.fixture
def settings() -> VerifierSettings:
    return VerifierSettings(timeout_seconds=5.0, workers=2)


@pytest.fixture
def run_context(settings: VerifierSettings) -> RunContext:
    return RunContext(settings=settings)


# =============================================================================
# Blocks and documents
# =============================================================================


@pytest.fixture
def make_block() -> Callable[..., CodeBlock]:
    """Build a single CodeBlock from dedented source.

    Usage:
        block = make_block("x = 1  # 1", info="python snip-timeout=2")
    """

    def _make(source: str, info: str = "python", document_id: str = "doc.md") -> CodeBlock:
        body = textwrap.dedent(source).strip("\n")
        text = f"```{info}\n{body}\n```\n"
        document, errors = extract_blocks(text, document_id)
        assert not errors
        assert len(document.blocks) == 1
        return document.blocks[0]

    return _make


@pytest.fixture
def docs_dir() -> Path:
    return FIXTURES / "docs"
