"""Data models for the snippet verifier.

Parsed artefacts (documents, blocks, expectations) are frozen dataclasses:
they are created once by the extractor and the expectation parser and never
mutated afterwards. The per-block state machine lives in
:class:`BlockOutcome`, which moves strictly forward through
:class:`BlockStatus`.

Reports carry no timestamps or durations, so two runs over an unchanged
document set serialise identically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from snipcheck.core.errors import ExtractionError, InvalidTransitionError

# ---------------------------------------------------------------------------
# Controlled vocabularies
# ---------------------------------------------------------------------------

UNKNOWN_LANGUAGE = "unknown"

FLAG_CONTINUE = "snip-continue"
FLAG_SKIP = "snip-skip"
ATTR_TIMEOUT = "snip-timeout"

KNOWN_FLAGS = frozenset({FLAG_CONTINUE, FLAG_SKIP})
KNOWN_ATTRS = frozenset({ATTR_TIMEOUT})


class BlockStatus(Enum):
    """Lifecycle of a code block within one run."""

    EXTRACTED = "extracted"
    PARSED = "parsed"
    EVALUATED = "evaluated"
    COMPARED = "compared"
    REPORTED = "reported"
    SKIPPED = "skipped"
    ERRORED = "errored"


class ResultStatus(Enum):
    """Outcome of verifying one expectation."""

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


class RunStatus(Enum):
    """Overall status of a verifier run."""

    PASSED = "passed"
    FAILED = "failed"
    EXTRACTION_ERRORS = "extraction_errors"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({BlockStatus.REPORTED, BlockStatus.SKIPPED, BlockStatus.ERRORED})

_TRANSITIONS: dict[BlockStatus, frozenset[BlockStatus]] = {
    BlockStatus.EXTRACTED: frozenset({BlockStatus.PARSED, BlockStatus.SKIPPED}),
    BlockStatus.PARSED: frozenset({BlockStatus.EVALUATED, BlockStatus.SKIPPED, BlockStatus.ERRORED}),
    BlockStatus.EVALUATED: frozenset({BlockStatus.COMPARED}),
    BlockStatus.COMPARED: frozenset({BlockStatus.REPORTED}),
    # An errored block is still reported, but keeps its terminal status.
    BlockStatus.REPORTED: frozenset(),
    BlockStatus.SKIPPED: frozenset(),
    BlockStatus.ERRORED: frozenset(),
}


# ---------------------------------------------------------------------------
# Parsed artefacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block extracted from a document.

    Attributes:
        document_id: Identifier of the owning document (back-reference).
        start_line: 1-based line of the opening fence.
        language: Normalised language tag, ``"unknown"`` when absent.
        lines: Source lines between the fences.
        info: Raw info string after the opening fence.
        flags: ``snip-*`` flags from the info string.
        attrs: ``snip-*=value`` attributes from the info string.
        section: Nearest preceding Markdown heading.
        index: 0-based position of the block within its document.
    """

    document_id: str
    start_line: int
    language: str
    lines: tuple[str, ...]
    info: str = ""
    flags: frozenset[str] = frozenset()
    attrs: tuple[tuple[str, str], ...] = ()
    section: str | None = None
    index: int = 0

    @property
    def source(self) -> str:
        return "\n".join(self.lines) + ("\n" if self.lines else "")

    @property
    def label(self) -> str:
        return f"{self.document_id}:{self.start_line}"

    @property
    def continues(self) -> bool:
        return FLAG_CONTINUE in self.flags

    @property
    def skip_requested(self) -> bool:
        return FLAG_SKIP in self.flags

    def attr(self, key: str) -> str | None:
        for name, value in self.attrs:
            if name == key:
                return value
        return None

    @property
    def timeout_override(self) -> float | None:
        """Per-block timeout from ``snip-timeout=<seconds>``, if valid."""
        raw = self.attr(ATTR_TIMEOUT)
        if raw is None:
            return None
        try:
            value = float(raw)
        except ValueError:
            return None
        return value if value > 0 else None

    def line_number(self, offset: int) -> int:
        """Document line of the block line at *offset* (0-based)."""
        return self.start_line + 1 + offset


@dataclass(frozen=True)
class Document:
    """An ordered collection of code blocks parsed from one file."""

    identifier: str
    blocks: tuple[CodeBlock, ...] = ()
    path: Path | None = None


@dataclass(frozen=True)
class Expectation:
    """An inline ``# value`` annotation on one line of a block.

    Attributes:
        block: Owning code block.
        line_text: Full source line carrying the annotation.
        expected: Expected literal, as text.
        offset: 0-based line offset within the block.
    """

    block: CodeBlock
    line_text: str
    expected: str
    offset: int

    @property
    def line_number(self) -> int:
        return self.block.line_number(self.offset)


@dataclass(frozen=True)
class ParseWarning:
    """A non-fatal problem found while parsing annotations or fence metadata.

    Attributes:
        source: Where the warning originated (block label).
        line: Document line the warning refers to.
        value: The offending text.
        message: Human-readable warning message.
    """

    source: str
    line: int
    value: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "line": self.line, "value": self.value, "message": self.message}


# ---------------------------------------------------------------------------
# Evaluation artefacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Capture:
    """What the evaluator observed for one annotated line."""

    text: str
    alternate: str | None = None


@dataclass(frozen=True)
class EvaluationResult:
    """Verification outcome of a single expectation."""

    expectation: Expectation
    status: ResultStatus
    actual: str | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.status is ResultStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "line": self.expectation.line_number,
            "source": self.expectation.line_text.strip(),
            "expected": self.expectation.expected,
            "status": self.status.value,
        }
        if self.actual is not None:
            data["actual"] = self.actual
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BlockEvaluation:
    """Raw evaluator output for one block, before comparison.

    ``captures`` maps block line offsets to what was observed there. When
    ``error`` is set, ``error_offset`` is the offset of the failing statement
    (``None`` when the whole block is affected, e.g. a timeout).
    """

    captures: dict[int, Capture] = field(default_factory=dict)
    error: str | None = None
    error_offset: int | None = None
    stderr: str = ""
    not_run: str | None = None


@dataclass
class BlockOutcome:
    """Per-block state machine record.

    Created in :attr:`BlockStatus.EXTRACTED`; the verifier advances it through
    the lifecycle. Transitions only move forward.
    """

    block: CodeBlock
    status: BlockStatus = BlockStatus.EXTRACTED
    expectations: list[Expectation] = field(default_factory=list)
    results: list[EvaluationResult] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)
    error: str | None = None
    skip_reason: str | None = None
    stderr: str = ""

    def advance(self, status: BlockStatus) -> None:
        """Move to *status*, rejecting backward or out-of-terminal moves."""
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Block {self.block.label}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status

    def skip(self, reason: str) -> None:
        self.advance(BlockStatus.SKIPPED)
        self.skip_reason = reason

    def fail(self, error: str) -> None:
        self.advance(BlockStatus.ERRORED)
        self.error = error

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status is ResultStatus.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status is ResultStatus.FAILED)

    @property
    def errored(self) -> int:
        return sum(1 for r in self.results if r.status is ResultStatus.ERRORED)

    @property
    def ok(self) -> bool:
        return self.status is not BlockStatus.ERRORED and self.failed == 0 and self.errored == 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "line": self.block.start_line,
            "language": self.block.language,
            "section": self.block.section,
            "status": self.status.value,
            "results": [r.to_dict() for r in self.results],
        }
        if self.error is not None:
            data["error"] = self.error
        if self.skip_reason is not None:
            data["skip_reason"] = self.skip_reason
        if self.stderr:
            data["stderr"] = self.stderr
        if self.warnings:
            data["warnings"] = [w.to_dict() for w in self.warnings]
        return data


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass
class DocumentReport:
    """Aggregated outcomes for one document."""

    document: Document
    outcomes: list[BlockOutcome] = field(default_factory=list)
    extraction_errors: list[ExtractionError] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(o.passed for o in self.outcomes)

    @property
    def failed(self) -> int:
        return sum(o.failed for o in self.outcomes)

    @property
    def errored(self) -> int:
        return sum(o.errored for o in self.outcomes)

    @property
    def blocks_errored(self) -> int:
        return sum(1 for o in self.outcomes if o.status is BlockStatus.ERRORED)

    @property
    def blocks_skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status is BlockStatus.SKIPPED)

    @property
    def all_warnings(self) -> list[ParseWarning]:
        found = list(self.warnings)
        for outcome in self.outcomes:
            found.extend(outcome.warnings)
        return found

    @property
    def ok(self) -> bool:
        return (
            self.failed == 0
            and self.errored == 0
            and self.blocks_errored == 0
            and not self.extraction_errors
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "document": self.document.identifier,
            "counts": {
                "blocks": len(self.outcomes),
                "passed": self.passed,
                "failed": self.failed,
                "errored": self.errored,
                "blocks_errored": self.blocks_errored,
                "blocks_skipped": self.blocks_skipped,
                "extraction_errors": len(self.extraction_errors),
                "warnings": len(self.all_warnings),
            },
            "extraction_errors": [
                {"line": e.line, "message": e.message} for e in self.extraction_errors
            ],
            "warnings": [w.to_dict() for w in self.warnings],
            "blocks": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class Report:
    """Terminal output of a run."""

    documents: list[DocumentReport] = field(default_factory=list)
    cancelled: bool = False
    strict: bool = False

    @property
    def passed(self) -> int:
        return sum(d.passed for d in self.documents)

    @property
    def failed(self) -> int:
        return sum(d.failed for d in self.documents)

    @property
    def errored(self) -> int:
        return sum(d.errored for d in self.documents)

    @property
    def blocks_errored(self) -> int:
        return sum(d.blocks_errored for d in self.documents)

    @property
    def blocks_skipped(self) -> int:
        return sum(d.blocks_skipped for d in self.documents)

    @property
    def extraction_errors(self) -> int:
        return sum(len(d.extraction_errors) for d in self.documents)

    @property
    def warnings(self) -> int:
        return sum(len(d.all_warnings) for d in self.documents)

    @property
    def status(self) -> RunStatus:
        if self.cancelled:
            return RunStatus.CANCELLED
        if self.failed or self.errored or self.blocks_errored:
            return RunStatus.FAILED
        if self.extraction_errors or (self.strict and self.warnings):
            return RunStatus.EXTRACTION_ERRORS
        return RunStatus.PASSED

    @property
    def success(self) -> bool:
        return self.status is RunStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "success": self.success,
            "totals": {
                "documents": len(self.documents),
                "passed": self.passed,
                "failed": self.failed,
                "errored": self.errored,
                "blocks_errored": self.blocks_errored,
                "blocks_skipped": self.blocks_skipped,
                "extraction_errors": self.extraction_errors,
                "warnings": self.warnings,
            },
            "documents": [d.to_dict() for d in self.documents],
        }
