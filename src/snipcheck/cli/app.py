"""
Root Typer application for the snipcheck CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="snipcheck",
    help="snipcheck — verify the code examples in Markdown documentation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from snipcheck import __version__

        typer.echo(f"snipcheck {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """snipcheck CLI — extract, run and check documentation snippets."""


# ── Sub-command registration ─────────────────────────────────────────────

from snipcheck.cli.config import app as config_app  # noqa: E402
from snipcheck.cli.inspect import app as inspect_app  # noqa: E402
from snipcheck.cli.verify import verify_command  # noqa: E402

app.command("verify")(verify_command)
app.add_typer(inspect_app, name="inspect", help="Show extracted blocks and expectations.")
app.add_typer(config_app, name="config", help="Configuration management.")
