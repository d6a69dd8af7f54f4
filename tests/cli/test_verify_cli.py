"""Tests for ``snipcheck verify`` via typer.testing.CliRunner."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from snipcheck import __version__
from snipcheck.cli.app import app

runner = CliRunner()


def _flat(output: str) -> str:
    """Collapse Rich line wrapping."""
    return " ".join(output.split())


class TestRootApp:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"snipcheck {__version__}" in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("verify", "inspect", "config"):
            assert command in result.output


class TestVerifyErrors:
    """Paths that fail before any snippet runs."""

    def test_missing_path_is_fatal(self, tmp_path):
        result = runner.invoke(app, ["verify", str(tmp_path / "missing.md")])
        assert result.exit_code == 4
        assert "No such file" in result.output

    def test_empty_directory_is_fatal(self, tmp_path):
        result = runner.invoke(app, ["verify", str(tmp_path)])
        assert result.exit_code == 4

    def test_invalid_timeout_is_config_error(self, docs_dir):
        result = runner.invoke(app, ["verify", str(docs_dir / "guide.md"), "--timeout-seconds", "0"])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_invalid_env_setting(self, docs_dir, monkeypatch):
        monkeypatch.setenv("SNIPCHECK_WORKERS", "0")
        result = runner.invoke(app, ["verify", str(docs_dir / "guide.md")])
        assert result.exit_code == 2

    def test_unknown_format_rejected_by_typer(self, docs_dir):
        result = runner.invoke(app, ["verify", str(docs_dir / "guide.md"), "--format", "xml"])
        assert result.exit_code == 2


@pytest.mark.integration
class TestVerifyRuns:
    def test_passing_document(self, docs_dir):
        result = runner.invoke(app, ["verify", str(docs_dir / "guide.md")])
        assert result.exit_code == 0, result.output
        assert "PASSED" in result.output
        assert "4 passed" in result.output

    def test_failing_document(self, docs_dir):
        result = runner.invoke(app, ["verify", str(docs_dir / "broken.md")])
        assert result.exit_code == 1
        assert "mismatch" in result.output
        assert "expected '5', got '4'" in _flat(result.output)

    def test_extraction_errors_only(self, docs_dir):
        result = runner.invoke(app, ["verify", str(docs_dir / "nested" / "unterminated.md")])
        assert result.exit_code == 3
        assert "unterminated" in result.output

    def test_json_format(self, docs_dir):
        result = runner.invoke(
            app, ["verify", str(docs_dir / "guide.md"), str(docs_dir / "broken.md"), "--format", "json"]
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["status"] == "failed"
        assert data["totals"]["passed"] == 4
        assert data["totals"]["failed"] == 1
        assert [d["document"].rsplit("/", 1)[-1] for d in data["documents"]] == ["guide.md", "broken.md"]

    def test_output_file(self, docs_dir, tmp_path):
        target = tmp_path / "report.json"
        result = runner.invoke(
            app, ["verify", str(docs_dir / "guide.md"), "-f", "json", "--output", str(target)]
        )
        assert result.exit_code == 0
        assert json.loads(target.read_text())["success"] is True

    def test_text_output_file(self, docs_dir, tmp_path):
        target = tmp_path / "report.txt"
        result = runner.invoke(app, ["verify", str(docs_dir / "broken.md"), "-o", str(target)])
        assert result.exit_code == 1
        assert "mismatch" in target.read_text()

    def test_strict_turns_warnings_into_errors(self, tmp_path):
        doc = tmp_path / "orphan.md"
        doc.write_text("```python snip-continue\nx = 1  # 1\n```\n")
        assert runner.invoke(app, ["verify", str(doc)]).exit_code == 0
        assert runner.invoke(app, ["verify", str(doc), "--strict"]).exit_code == 3

    def test_language_option(self, tmp_path):
        doc = tmp_path / "pycon.md"
        doc.write_text("```pycon\nx = 2  # 3\n```\n")
        assert runner.invoke(app, ["verify", str(doc)]).exit_code == 0
        assert runner.invoke(app, ["verify", str(doc), "--language", "pycon"]).exit_code == 1

    def test_fail_fast(self, tmp_path):
        doc = tmp_path / "two.md"
        doc.write_text(
            "```python\nx = 1  # 2\n```\n\n```python snip-continue\ny = 2  # 2\n```\n"
        )
        result = runner.invoke(app, ["verify", str(doc), "--fail-fast", "--format", "json", "--log-level", "ERROR"])
        assert result.exit_code == 1
        blocks = json.loads(result.stdout)["documents"][0]["blocks"]
        assert blocks[1]["status"] == "skipped"
        assert blocks[1]["skip_reason"] == "run cancelled"
