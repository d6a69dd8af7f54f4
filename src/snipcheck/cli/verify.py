"""
CLI: ``snipcheck verify`` — run the verifier and render the report.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from snipcheck.cli.utils import console, err_console, fail, load_settings, setup_logging
from snipcheck.core.config import LogFormat, ReportFormat
from snipcheck.core.errors import DocumentReadError
from snipcheck.models import Report
from snipcheck.reporting import ExitCode, exit_code_for, render_json, render_text
from snipcheck.verifier import Verifier


def verify_command(
    paths: list[Path] = typer.Argument(..., help="Markdown files, directories or glob patterns."),
    timeout_seconds: float | None = typer.Option(  # noqa: UP007
        None, "--timeout-seconds", "-t", help="Per-block execution timeout in seconds."
    ),
    fail_fast: bool | None = typer.Option(  # noqa: UP007
        None, "--fail-fast/--no-fail-fast", help="Stop scheduling blocks after the first failure."
    ),
    format: ReportFormat | None = typer.Option(  # noqa: UP007
        None, "--format", "-f", case_sensitive=False, help="Report format."
    ),
    output: Path | None = typer.Option(  # noqa: UP007
        None, "--output", "-o", help="Write the report to FILE instead of stdout."
    ),
    workers: int | None = typer.Option(  # noqa: UP007
        None, "--workers", "-j", help="Number of sessions evaluated concurrently."
    ),
    strict: bool | None = typer.Option(  # noqa: UP007
        None, "--strict/--no-strict", help="Treat parse warnings as errors."
    ),
    language: list[str] | None = typer.Option(  # noqa: UP007
        None, "--language", "-l", help="Language tag to evaluate (repeatable)."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),  # noqa: UP007
    log_format: LogFormat | None = typer.Option(  # noqa: UP007
        None, "--log-format", case_sensitive=False, help="Log rendering on stderr."
    ),
) -> None:
    """Verify the inline expectations of every code block in PATHS."""
    settings = load_settings(
        timeout_seconds=timeout_seconds,
        fail_fast=fail_fast,
        format=format,
        workers=workers,
        strict=strict,
        languages=language or None,
        log_level=log_level,
        log_format=log_format,
    )
    setup_logging(settings)

    try:
        report = Verifier(settings).verify_paths(paths)
    except DocumentReadError as exc:
        raise fail(exc.message, ExitCode.FATAL) from exc
    except KeyboardInterrupt as exc:
        raise fail("run cancelled", ExitCode.CANCELLED) from exc

    try:
        _emit(report, settings.format, output)
    except OSError as exc:
        raise fail(f"Cannot write report to {output}: {exc}", ExitCode.FATAL) from exc

    if report.cancelled:
        err_console.print("[yellow]Run cancelled; unfinished blocks were skipped.[/yellow]")
    raise typer.Exit(code=exit_code_for(report))


def _emit(report: Report, fmt: ReportFormat, output: Path | None) -> None:
    if fmt is ReportFormat.JSON:
        payload = render_json(report)
        if output is None:
            typer.echo(payload)
        else:
            output.write_text(payload + "\n", encoding="utf-8")
        return

    if output is None:
        render_text(report, console)
        return
    with output.open("w", encoding="utf-8") as fh:
        render_text(report, Console(file=fh, no_color=True, width=120))
