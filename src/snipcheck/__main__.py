"""Allow ``python -m snipcheck``."""

from snipcheck.cli.app import app

app(prog_name="snipcheck")
