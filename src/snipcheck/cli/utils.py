"""
CLI utility helpers: consoles, settings loading and logging set-up.
"""

from __future__ import annotations

from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from snipcheck.core.config import LogFormat, VerifierSettings, get_settings
from snipcheck.core.errors import ConfigError
from snipcheck.core.logging import configure_logging
from snipcheck.reporting import ExitCode

console = Console()
err_console = Console(stderr=True)


def load_settings(**overrides: Any) -> VerifierSettings:
    """Resolve settings with command-line *overrides*; exit 2 when invalid."""
    try:
        return get_settings(**overrides)
    except ConfigError as exc:
        err_console.print(f"[bold red]Configuration error:[/bold red] {escape(exc.message)}")
        raise typer.Exit(code=ExitCode.USAGE) from exc


def setup_logging(settings: VerifierSettings) -> None:
    """Configure structlog on stderr from *settings*."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format is LogFormat.JSON,
    )


def fail(message: str, code: int) -> typer.Exit:
    """Print *message* to stderr and return the ``typer.Exit`` to raise."""
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    return typer.Exit(code=code)
