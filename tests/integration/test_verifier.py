"""End-to-end tests for snipcheck.verifier.

Every test here spawns sandbox interpreters.
"""

from __future__ import annotations

import json
import multiprocessing
import textwrap
from unittest.mock import patch

import pytest

from snipcheck import verify_paths
from snipcheck.context import RunContext
from snipcheck.core.errors import DocumentReadError
from snipcheck.core.logging import configure_logging
from snipcheck.models import BlockStatus, ResultStatus, RunStatus
from snipcheck.reporting import render_json
from snipcheck.verifier import Verifier

pytestmark = pytest.mark.integration


def _verify(text: str, settings, **updates):
    if updates:
        settings = settings.model_copy(update=updates)
    return Verifier(settings).verify_text(textwrap.dedent(text).lstrip("\n"), "doc.md")


def _outcomes(report):
    return report.documents[0].outcomes


class TestScenarios:
    def test_assignment_passes(self, settings):
        report = _verify(
            """
            ```python
            x = 1 + 2  # 3
            ```
            """,
            settings,
        )
        (outcome,) = _outcomes(report)
        (result,) = outcome.results
        assert result.status is ResultStatus.PASSED
        assert result.expectation.expected == "3"
        assert result.actual == "3"
        assert outcome.status is BlockStatus.REPORTED
        assert report.success

    def test_print_passes(self, settings):
        report = _verify(
            """
            ```python
            print("hi")  # hi
            ```
            """,
            settings,
        )
        (result,) = _outcomes(report)[0].results
        assert result.passed
        assert result.actual == "hi"

    def test_exception_errors_block(self, settings):
        report = _verify(
            """
            ```python
            1 / 0  # anything
            ```
            """,
            settings,
        )
        (outcome,) = _outcomes(report)
        assert outcome.status is BlockStatus.ERRORED
        assert outcome.results[0].status is ResultStatus.ERRORED
        assert "ZeroDivisionError" in outcome.error
        assert report.status is RunStatus.FAILED

    @pytest.mark.slow
    def test_infinite_loop_times_out(self, settings):
        report = _verify(
            """
            ```python
            while True:
                pass
            ```

            ```python
            done = True  # True
            ```
            """,
            settings,
            timeout_seconds=2.0,
        )
        looping, other = _outcomes(report)
        assert looping.status is BlockStatus.ERRORED
        assert "timed out after 2s" in looping.error
        assert other.status is BlockStatus.REPORTED
        assert other.passed == 1

    def test_unterminated_fence(self, settings):
        report = _verify(
            """
            # Notes

            ```python
            a = 1  # 1
            ```

            ```python
            b = 2
            """,
            settings,
        )
        document = report.documents[0]
        assert [e.line for e in document.extraction_errors] == [7]
        (outcome,) = document.outcomes
        assert outcome.passed == 1
        assert report.status is RunStatus.EXTRACTION_ERRORS


class TestProperties:
    def test_isolation_between_blocks(self, settings):
        report = _verify(
            """
            ```python
            secret = 1
            ```

            ```python
            secret  # 1
            ```
            """,
            settings,
        )
        _, second = _outcomes(report)
        assert second.status is BlockStatus.ERRORED
        assert "NameError" in second.error

    def test_continuation_shares_namespace(self, settings):
        report = _verify(
            """
            ```python
            secret = 1
            ```

            Some prose, and an unevaluated block in between.

            ```text
            output
            ```

            ```python snip-continue
            secret  # 1
            ```
            """,
            settings,
        )
        assert report.success
        assert [o.status for o in _outcomes(report)] == [
            BlockStatus.REPORTED,
            BlockStatus.SKIPPED,
            BlockStatus.REPORTED,
        ]

    def test_zero_expectations_still_run(self, settings):
        report = _verify(
            """
            ```python
            x = 1
            ```

            ```python
            raise RuntimeError("crash")
            ```
            """,
            settings,
        )
        clean, crashing = _outcomes(report)
        assert clean.status is BlockStatus.REPORTED
        assert clean.results == []
        assert crashing.status is BlockStatus.ERRORED
        assert crashing.results == []
        assert report.status is RunStatus.FAILED

    def test_idempotent_reports(self, settings, docs_dir):
        paths = [docs_dir / "guide.md", docs_dir / "broken.md"]
        first = render_json(Verifier(settings).verify_paths(paths))
        second = render_json(Verifier(settings).verify_paths(paths))
        assert first == second

    def test_stderr_attached(self, settings):
        report = _verify(
            """
            ```python
            import sys
            print("warn", file=sys.stderr)
            ```
            """,
            settings,
        )
        assert _outcomes(report)[0].stderr == "warn\n"


class TestSkipping:
    def test_unknown_and_foreign_languages_skipped(self, settings):
        report = _verify(
            """
            ```
            no language
            ```

            ```bash
            echo hi  # hi
            ```

            ```python snip-skip
            raise SystemExit("never")
            ```
            """,
            settings,
        )
        reasons = [o.skip_reason for o in _outcomes(report)]
        assert reasons == [
            "language 'unknown' is not evaluated",
            "language 'bash' is not evaluated",
            "marked snip-skip",
        ]
        assert report.success

    def test_language_setting(self, settings):
        report = _verify(
            """
            ```pycon
            x = 2  # 2
            ```
            """,
            settings,
            languages=["pycon"],
        )
        assert _outcomes(report)[0].passed == 1

    def test_orphan_continuation_warns(self, settings):
        report = _verify(
            """
            ```python snip-continue
            x = 1  # 1
            ```
            """,
            settings,
        )
        assert report.warnings == 1
        assert report.status is RunStatus.PASSED
        assert _verify(
            """
            ```python snip-continue
            x = 1  # 1
            ```
            """,
            settings,
            strict=True,
        ).status is RunStatus.EXTRACTION_ERRORS


class TestFailFastAndCancellation:
    def test_fail_fast_skips_remaining(self, settings):
        report = _verify(
            """
            ```python
            x = 1  # 2
            ```

            ```python snip-continue
            y = 2  # 2
            ```
            """,
            settings,
            fail_fast=True,
            workers=1,
        )
        first, second = _outcomes(report)
        assert first.failed == 1
        assert second.status is BlockStatus.SKIPPED
        assert second.skip_reason == "run cancelled"
        assert report.status is RunStatus.FAILED
        assert not report.cancelled

    def test_pre_cancelled_run_reports_nothing_as_passed(self, settings):
        ctx = RunContext(settings=settings)
        ctx.cancel("operator", interrupted=True)
        report = Verifier(ctx=ctx).verify_text("```python\nx = 1  # 1\n```\n", "doc.md")
        (outcome,) = _outcomes(report)
        assert outcome.status is BlockStatus.SKIPPED
        assert report.passed == 0
        assert report.status is RunStatus.CANCELLED

    def test_keyboard_interrupt_cancels(self, settings):
        with patch("snipcheck.verifier.as_completed", side_effect=KeyboardInterrupt):
            verifier = Verifier(settings.model_copy(update={"workers": 1}))
            report = verifier.verify_text(
                "```python\nx = 1  # 1\n```\n\n```python\ny = 2  # 2\n```\n", "doc.md"
            )
        assert verifier.ctx.interrupted
        assert report.status is RunStatus.CANCELLED
        assert all(o.terminal for o in _outcomes(report))
        assert report.passed <= 1


class TestVerifyPaths:
    def test_fixture_documents(self, settings, docs_dir):
        report = Verifier(settings).verify_paths([docs_dir])
        by_name = {d.document.identifier.rsplit("/", 1)[-1]: d for d in report.documents}
        assert set(by_name) == {"broken.md", "guide.md", "unterminated.md"}
        assert by_name["guide.md"].passed == 4
        assert by_name["guide.md"].blocks_skipped == 1
        assert by_name["broken.md"].failed == 1
        assert len(by_name["unterminated.md"].extraction_errors) == 1
        assert report.status is RunStatus.FAILED

    def test_module_level_api(self, settings, docs_dir):
        report = verify_paths([docs_dir / "guide.md"], settings)
        assert report.success

    def test_missing_path_is_fatal(self, settings, tmp_path):
        with pytest.raises(DocumentReadError):
            Verifier(settings).verify_paths([tmp_path / "nope.md"])


class TestSnippetEdgeCases:
    def test_str_enum_defined_in_snippet(self, settings):
        report = _verify(
            """
            ```python
            from enum import Enum

            class Color(str, Enum):
                RED = "red"

            Color.RED  # <Color.RED: 'red'>
            Color.RED.value  # 'red'
            ```

            ```python snip-continue
            Color("red") is Color.RED  # True
            ```
            """,
            settings,
        )
        first, second = _outcomes(report)
        assert first.status is BlockStatus.REPORTED
        assert first.passed == 2
        assert second.status is BlockStatus.REPORTED
        assert second.passed == 1
        assert report.status is RunStatus.PASSED

    def test_descriptor_level_output_stays_in_sandbox(self, settings, capfd):
        report = _verify(
            """
            ```python
            import os
            import sys
            os.write(1, b"raw out\\n")
            print("dunder out", file=sys.__stdout__)
            x = 1  # 1
            ```
            """,
            settings,
        )
        (outcome,) = _outcomes(report)
        assert outcome.status is BlockStatus.REPORTED
        assert outcome.passed == 1
        assert "raw out" in outcome.stderr
        assert "dunder out" in outcome.stderr
        assert "raw out" not in capfd.readouterr().out

    @pytest.mark.skipif("fork" not in multiprocessing.get_all_start_methods(), reason="needs fork")
    def test_snippet_may_start_processes(self, settings):
        report = _verify(
            """
            ```python
            import multiprocessing
            child = multiprocessing.get_context("fork").Process(target=len, args=([],))
            child.start()
            child.join()
            child.exitcode  # 0
            ```
            """,
            settings,
        )
        (outcome,) = _outcomes(report)
        assert outcome.error is None
        assert outcome.passed == 1

    @pytest.mark.slow
    def test_timeout_is_described_and_logged(self, settings, capsys):
        configure_logging(level="WARNING", json_format=True, add_timestamp=False)
        report = _verify(
            """
            ```python snip-timeout=1
            while True:
                pass
            ```
            """,
            settings,
        )
        (outcome,) = _outcomes(report)
        assert outcome.status is BlockStatus.ERRORED
        assert outcome.error == "Snippet 'doc.md:1' timed out after 1s"
        events = [json.loads(line)["event"] for line in capsys.readouterr().err.splitlines() if line.startswith("{")]
        assert "evaluator.timeout" in events


class TestVerifierReuse:
    def test_fail_fast_does_not_leak_into_next_run(self, settings):
        verifier = Verifier(settings.model_copy(update={"fail_fast": True}))
        text = "```python\nx = 1  # 2\n```\n"

        first = verifier.verify_text(text, "doc.md")
        second = verifier.verify_text(text, "doc.md")

        for report in (first, second):
            (outcome,) = _outcomes(report)
            assert outcome.failed == 1
            assert report.status is RunStatus.FAILED

    def test_interrupted_run_does_not_cancel_next_run(self, settings):
        verifier = Verifier(settings.model_copy(update={"workers": 1}))
        text = "```python\nx = 1  # 1\n```\n"
        with patch("snipcheck.verifier.as_completed", side_effect=KeyboardInterrupt):
            assert verifier.verify_text(text, "doc.md").status is RunStatus.CANCELLED

        report = verifier.verify_text(text, "doc.md")
        assert report.status is RunStatus.PASSED
        assert not verifier.ctx.cancelled

    def test_reports_match_across_runs(self, settings, docs_dir):
        verifier = Verifier(settings)
        paths = [docs_dir / "guide.md", docs_dir / "broken.md"]
        assert render_json(verifier.verify_paths(paths)) == render_json(verifier.verify_paths(paths))
