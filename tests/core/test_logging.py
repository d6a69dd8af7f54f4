"""
Tests for snipcheck.core.logging.

Tests verify:
- Logs are written to stderr, never stdout
- JSON mode emits parseable records with service metadata
- Events below the configured level are suppressed
"""

from __future__ import annotations

import json

from snipcheck.context import RunContext
from snipcheck.core.logging import configure_logging, get_logger


class TestConfigureLogging:
    def test_json_records_on_stderr(self, capsys):
        configure_logging(level="INFO", json_format=True, add_timestamp=False)
        get_logger("tests", run_id="r1").info("verifier.session_started", block="a.md:3")

        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "verifier.session_started"
        assert record["level"] == "info"
        assert record["service"] == "snipcheck"
        assert record["logger"] == "tests"
        assert record["run_id"] == "r1"
        assert record["block"] == "a.md:3"

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        log = get_logger("tests")
        log.info("hidden")
        log.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_timestamp_added(self, capsys):
        configure_logging(level="INFO", json_format=True)
        get_logger().info("tick")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert "timestamp" in record

    def test_console_renderer(self, capsys):
        configure_logging(level="INFO", json_format=False)
        get_logger("tests").info("hello.world", answer=42)
        err = capsys.readouterr().err
        assert "hello.world" in err
        assert "answer" in err


class TestRunContextLogger:
    def test_logger_bound_with_run_id(self, settings, capsys):
        configure_logging(level="INFO", json_format=True, add_timestamp=False)
        ctx = RunContext(settings=settings, metadata={"caller": "tests"})
        ctx.log.info("run.started")

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["run_id"] == ctx.run_id
        assert record["logger"] == "snipcheck"
        assert record["caller"] == "tests"

    def test_cancel_first_reason_wins(self, settings):
        ctx = RunContext(settings=settings)
        assert not ctx.cancelled
        ctx.cancel("fail-fast: a.md:3 did not pass")
        ctx.cancel("interrupted by operator", interrupted=True)
        assert ctx.cancelled
        assert ctx.cancel_reason == "fail-fast: a.md:3 did not pass"
        assert ctx.interrupted is False
