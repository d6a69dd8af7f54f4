"""Report aggregation and rendering.

:class:`ReportCollector` is the only object shared between worker threads;
every write goes through its lock. :meth:`ReportCollector.build` orders
documents by discovery order and blocks by position, so scheduling order
never shows in the output.

Renderers:
    render_text  — rich tables for humans
    render_json  — stable, indented JSON for machines
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable
from enum import IntEnum

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from snipcheck.core.errors import ExtractionError
from snipcheck.models import (
    BlockOutcome,
    BlockStatus,
    Document,
    DocumentReport,
    ParseWarning,
    Report,
    ResultStatus,
    RunStatus,
)


class ExitCode(IntEnum):
    """Process exit codes."""

    OK = 0
    VERIFICATION_FAILED = 1
    USAGE = 2  # reserved for Typer/Click usage errors and invalid settings
    EXTRACTION_ERRORS = 3
    FATAL = 4
    CANCELLED = 130


_EXIT_CODES = {
    RunStatus.PASSED: ExitCode.OK,
    RunStatus.FAILED: ExitCode.VERIFICATION_FAILED,
    RunStatus.EXTRACTION_ERRORS: ExitCode.EXTRACTION_ERRORS,
    RunStatus.CANCELLED: ExitCode.CANCELLED,
}


def exit_code_for(report: Report) -> ExitCode:
    return _EXIT_CODES[report.status]


class ReportCollector:
    """Thread-safe sink for block outcomes."""

    def __init__(self, *, strict: bool = False) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, DocumentReport] = {}
        self._strict = strict

    def register(self, document: Document, extraction_errors: Iterable[ExtractionError] = ()) -> None:
        with self._lock:
            self._documents[document.identifier] = DocumentReport(
                document=document,
                extraction_errors=list(extraction_errors),
            )

    def warn(self, document_id: str, warning: ParseWarning) -> None:
        with self._lock:
            self._documents[document_id].warnings.append(warning)

    def record(self, outcome: BlockOutcome) -> None:
        """Store a finished outcome. Compared blocks become ``REPORTED``."""
        if not outcome.terminal and outcome.status is not BlockStatus.COMPARED:
            raise ValueError(f"Block {outcome.block.label} recorded before finishing ({outcome.status.value})")
        with self._lock:
            if outcome.status is BlockStatus.COMPARED:
                outcome.advance(BlockStatus.REPORTED)
            self._documents[outcome.block.document_id].outcomes.append(outcome)

    def build(self, *, cancelled: bool = False) -> Report:
        with self._lock:
            documents = list(self._documents.values())
            for document in documents:
                document.outcomes.sort(key=lambda o: o.block.index)
            return Report(documents=documents, cancelled=cancelled, strict=self._strict)


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------

_STATUS_STYLE = {
    BlockStatus.REPORTED: "green",
    BlockStatus.SKIPPED: "dim",
    BlockStatus.ERRORED: "bold red",
}


def render_json(report: Report) -> str:
    """Serialise *report* as indented JSON with a stable key order."""
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def render_text(report: Report, console: Console) -> None:
    """Render a human-readable report to *console*."""
    for document in report.documents:
        _render_document(document, console)

    status = report.status
    color = "green" if status is RunStatus.PASSED else "red"
    console.print(
        f"[bold {color}]{status.value.upper()}[/bold {color}]  "
        f"{report.passed} passed, {report.failed} failed, {report.errored} errored; "
        f"{report.blocks_errored} block(s) errored, {report.blocks_skipped} skipped, "
        f"{report.extraction_errors} extraction error(s), {report.warnings} warning(s) "
        f"in {len(report.documents)} document(s)"
    )


def _render_document(document: DocumentReport, console: Console) -> None:
    marker = "[green]✓[/green]" if document.ok else "[red]✗[/red]"
    console.print(f"\n{marker} [bold]{escape(document.document.identifier)}[/bold]")

    if document.outcomes:
        table = Table(show_lines=False, pad_edge=False, show_edge=False)
        table.add_column("Line", justify="right")
        table.add_column("Lang")
        table.add_column("Section", overflow="fold")
        table.add_column("Status")
        table.add_column("Pass", justify="right")
        table.add_column("Fail", justify="right")
        table.add_column("Err", justify="right")
        for outcome in document.outcomes:
            style = _STATUS_STYLE.get(outcome.status, "")
            table.add_row(
                str(outcome.block.start_line),
                escape(outcome.block.language),
                escape(outcome.block.section or ""),
                f"[{style}]{outcome.status.value}[/{style}]" if style else outcome.status.value,
                str(outcome.passed),
                str(outcome.failed),
                str(outcome.errored),
            )
        console.print(table)

    for error in document.extraction_errors:
        console.print(f"  [red]extraction error[/red] line {error.line}: {escape(error.message)}")

    for outcome in document.outcomes:
        if outcome.status is BlockStatus.ERRORED and outcome.error and not outcome.results:
            console.print(f"  [red]block error[/red] {escape(outcome.block.label)}: {escape(outcome.error)}")
        for result in outcome.results:
            if result.status is ResultStatus.PASSED:
                continue
            where = f"{outcome.block.document_id}:{result.expectation.line_number}"
            if result.status is ResultStatus.FAILED:
                console.print(
                    f"  [red]mismatch[/red] {escape(where)}: expected "
                    f"{escape(repr(result.expectation.expected))}, got {escape(repr(result.actual))}"
                )
            else:
                console.print(f"  [red]error[/red] {escape(where)}: {escape(result.error or '')}")

    for warning in document.all_warnings:
        console.print(f"  [yellow]warning[/yellow] line {warning.line}: {escape(warning.message)}")


__all__ = [
    "ExitCode",
    "ReportCollector",
    "exit_code_for",
    "render_json",
    "render_text",
]
