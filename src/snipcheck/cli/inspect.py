"""
CLI: ``snipcheck inspect`` — show what the verifier would see, without
running anything.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from snipcheck.cli.utils import console, fail, load_settings
from snipcheck.core.config import VerifierSettings
from snipcheck.core.errors import DocumentReadError, ExtractionError
from snipcheck.discovery import discover_documents
from snipcheck.expectations import parse_expectations
from snipcheck.extraction import load_document
from snipcheck.models import Document
from snipcheck.reporting import ExitCode
from snipcheck.verifier import skip_reason

app = typer.Typer(no_args_is_help=True)


def _load(paths: list[Path], settings: VerifierSettings) -> list[tuple[Document, list[ExtractionError]]]:
    try:
        return [load_document(p) for p in discover_documents(paths, settings.patterns)]
    except DocumentReadError as exc:
        raise fail(exc.message, ExitCode.FATAL) from exc


@app.command("blocks")
def list_blocks(
    paths: list[Path] = typer.Argument(..., help="Markdown files, directories or glob patterns."),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List extracted code blocks and extraction errors."""
    settings = load_settings()
    loaded = _load(paths, settings)

    if as_json:
        payload = [
            {
                "document": document.identifier,
                "blocks": [
                    {
                        "line": block.start_line,
                        "language": block.language,
                        "section": block.section,
                        "lines": len(block.lines),
                        "flags": sorted(block.flags),
                        "skip_reason": skip_reason(block, settings),
                    }
                    for block in document.blocks
                ],
                "extraction_errors": [{"line": e.line, "message": e.message} for e in errors],
            }
            for document, errors in loaded
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    for document, errors in loaded:
        table = Table(title=escape(document.identifier), title_justify="left")
        table.add_column("Line", justify="right")
        table.add_column("Lang")
        table.add_column("Section")
        table.add_column("Lines", justify="right")
        table.add_column("Plan")
        for block in document.blocks:
            reason = skip_reason(block, settings)
            plan = f"[dim]skip: {escape(reason)}[/dim]" if reason else "[green]evaluate[/green]"
            if block.continues and not reason:
                plan += " (continues)"
            table.add_row(
                str(block.start_line),
                escape(block.language),
                escape(block.section or ""),
                str(len(block.lines)),
                plan,
            )
        console.print(table)
        for error in errors:
            console.print(f"  [red]extraction error[/red] line {error.line}: {escape(error.message)}")


@app.command("expectations")
def list_expectations(
    paths: list[Path] = typer.Argument(..., help="Markdown files, directories or glob patterns."),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List parsed expectations and parse warnings."""
    settings = load_settings()
    rows = []
    for document, _errors in _load(paths, settings):
        for block in document.blocks:
            if skip_reason(block, settings):
                continue
            expectations, warnings = parse_expectations(block)
            rows.append((document, block, expectations, warnings))

    if as_json:
        payload = [
            {
                "document": document.identifier,
                "block": block.start_line,
                "expectations": [
                    {"line": e.line_number, "source": e.line_text.strip(), "expected": e.expected}
                    for e in expectations
                ],
                "warnings": [w.to_dict() for w in warnings],
            }
            for document, block, expectations, warnings in rows
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    table = Table()
    table.add_column("Location")
    table.add_column("Source", overflow="fold")
    table.add_column("Expected", overflow="fold")
    for _document, block, expectations, _warnings in rows:
        for e in expectations:
            table.add_row(
                escape(f"{block.document_id}:{e.line_number}"),
                escape(e.line_text.strip()),
                escape(e.expected),
            )
    console.print(table)
    for _document, _block, _expectations, warnings in rows:
        for w in warnings:
            console.print(f"[yellow]warning[/yellow] {escape(w.source)} line {w.line}: {escape(w.message)}")
