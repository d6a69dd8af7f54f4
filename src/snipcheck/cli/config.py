"""
CLI: ``snipcheck config`` — configuration inspection and validation.
"""

from __future__ import annotations

import json

import typer
from rich.markup import escape
from rich.table import Table

from snipcheck.cli.utils import console, load_settings

app = typer.Typer(no_args_is_help=True)


def _plain(value: object) -> str:
    # Lists in the form pydantic-settings reads back from the environment
    if isinstance(value, list):
        return json.dumps(value)
    return str(getattr(value, "value", value))


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the resolved configuration."""
    settings = load_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            typer.echo(f"SNIPCHECK_{key.upper()}={_plain(value)}")
        return

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in settings.model_dump().items():
        table.add_row(key, escape(_plain(value)))
    console.print(table)


@app.command("validate")
def validate_config() -> None:
    """Validate configuration from the environment, .env and pyproject.toml."""
    settings = load_settings(_force_reload=True)
    console.print(
        f"[green]✓ Configuration is valid[/green] "
        f"(timeout {settings.timeout_seconds:g}s, {settings.workers} worker(s), "
        f"languages: {escape(', '.join(settings.languages))})"
    )
