"""Tests for ``snipcheck inspect`` — nothing is executed."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from snipcheck.cli.app import app

runner = CliRunner()


def _flat(output: str) -> str:
    return " ".join(output.split())


class TestInspectBlocks:
    def test_table(self, docs_dir):
        result = runner.invoke(app, ["inspect", "blocks", str(docs_dir / "guide.md")])
        assert result.exit_code == 0
        assert "evaluate" in result.output
        assert "skip" in result.output

    def test_json(self, docs_dir):
        result = runner.invoke(app, ["inspect", "blocks", str(docs_dir), "--json"])
        assert result.exit_code == 0
        data = {d["document"].rsplit("/", 1)[-1]: d for d in json.loads(result.stdout)}
        guide = data["guide.md"]
        assert [b["language"] for b in guide["blocks"]] == ["python", "bash", "python", "python"]
        assert guide["blocks"][1]["skip_reason"] == "language 'bash' is not evaluated"
        assert guide["blocks"][3]["flags"] == ["snip-continue"]
        assert data["unterminated.md"]["extraction_errors"][0]["line"] == 7

    def test_missing_path(self, tmp_path):
        result = runner.invoke(app, ["inspect", "blocks", str(tmp_path / "missing.md")])
        assert result.exit_code == 4


class TestInspectExpectations:
    def test_json(self, docs_dir):
        result = runner.invoke(app, ["inspect", "expectations", str(docs_dir / "guide.md"), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        expected = [e["expected"] for entry in data for e in entry["expectations"]]
        assert expected == ["3", "hi", "hello", "42"]

    def test_warnings_listed(self, tmp_path):
        doc = tmp_path / "warn.md"
        doc.write_text("```python\nx = 3  # 3 # or 4\n```\n")
        result = runner.invoke(app, ["inspect", "expectations", str(doc)])
        assert result.exit_code == 0
        assert "ambiguous annotation" in _flat(result.output)
