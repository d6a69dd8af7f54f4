"""Verifier — wire extraction, parsing, evaluation and comparison together.

Manifesto:
    Blocks of different sessions share nothing, so they are scheduled on a
    worker pool. Only the :class:`~snipcheck.reporting.ReportCollector` is
    shared, and the report it builds is ordered by document and block, never
    by completion order.

ARCHITECTURE
────────────
::

    Verifier(settings)
      └── .verify_paths(paths)
            ├── discover_documents()        ─ files, dirs, globs
            ├── load_document()             ─ Document + ExtractionErrors
            └── .verify_documents(loaded)
                  ├── _prepare()            ─ skip / parse / group sessions
                  ├── _run_sessions()       ─ ThreadPoolExecutor
                  │     └── _run_session()  ─ evaluate → compare → record
                  └── collector.build()     ─ Report

Cancellation:
    ``ctx.cancel_event`` is set by fail-fast (first failed or errored block)
    or by ``KeyboardInterrupt``. Sessions not yet started, and the remaining
    blocks of running sessions, are reported ``SKIPPED`` ("run cancelled").

Tags:
    snipcheck, verifier, scheduler, threadpool, cancellation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

from snipcheck.comparison import compare_block
from snipcheck.context import RunContext
from snipcheck.core.config import VerifierSettings, get_settings
from snipcheck.core.errors import ExtractionError
from snipcheck.discovery import discover_documents
from snipcheck.evaluator import CANCELLED_REASON, IsolatedEvaluator
from snipcheck.expectations import parse_expectations
from snipcheck.extraction import extract_blocks, load_document
from snipcheck.models import (
    BlockEvaluation,
    BlockOutcome,
    BlockStatus,
    CodeBlock,
    Document,
    ParseWarning,
    Report,
)
from snipcheck.reporting import ReportCollector

LoadedDocument = tuple[Document, list[ExtractionError]]
Session = list[BlockOutcome]


def skip_reason(block: CodeBlock, settings: VerifierSettings) -> str | None:
    """Why *block* will not be evaluated, or ``None`` if it will be."""
    if not settings.is_evaluated(block.language):
        return f"language '{block.language}' is not evaluated"
    if block.skip_requested:
        return "marked snip-skip"
    return None


class Verifier:
    """Run the full verification pipeline over a set of documents.

    Example:
        >>> report = Verifier().verify_text("```python\\nx = 1 + 2  # 3\\n```\\n")
        >>> report.success
        True
    """

    def __init__(
        self,
        settings: VerifierSettings | None = None,
        *,
        ctx: RunContext | None = None,
        evaluator: IsolatedEvaluator | None = None,
    ) -> None:
        if ctx is None:
            ctx = RunContext(settings=settings or get_settings())
        self.ctx = ctx
        self.settings = ctx.settings
        self.evaluator = evaluator or IsolatedEvaluator(ctx)
        self._ctx_used = False

    def _begin_run(self) -> RunContext:
        """Return the context for a new run.

        The context given at construction serves the first run. Later runs get
        a fresh one, so a cancelled run never leaks into the next.
        """
        if self._ctx_used:
            self.ctx = RunContext(settings=self.settings, metadata=dict(self.ctx.metadata))
            self.evaluator.ctx = self.ctx
        self._ctx_used = True
        return self.ctx

    # ── Entry points ─────────────────────────────────────────────────

    def verify_paths(self, paths: Iterable[str | Path]) -> Report:
        """Discover, load and verify documents.

        Raises:
            DocumentReadError: An input is missing or unreadable.
        """
        files = discover_documents(paths, self.settings.patterns)
        self.ctx.log.info("verifier.discovered", documents=len(files))
        return self.verify_documents([load_document(path) for path in files])

    def verify_text(self, text: str, document_id: str = "<text>") -> Report:
        return self.verify_documents([extract_blocks(text, document_id)])

    def verify_documents(self, loaded: Sequence[LoadedDocument]) -> Report:
        self._begin_run()
        collector = ReportCollector(strict=self.settings.strict)
        sessions: list[Session] = []
        for document, errors in loaded:
            collector.register(document, errors)
            for error in errors:
                self.ctx.log.warning("extractor.error", document=error.document, line=error.line, error=error.message)
            sessions.extend(self._prepare(document, collector))

        self._run_sessions(sessions, collector)
        report = collector.build(cancelled=self.ctx.interrupted)
        self.ctx.log.info(
            "verifier.finished",
            status=report.status.value,
            passed=report.passed,
            failed=report.failed,
            errored=report.errored,
        )
        return report

    # ── Preparation ──────────────────────────────────────────────────

    def _prepare(self, document: Document, collector: ReportCollector) -> list[Session]:
        """Parse every block; record skipped ones and group the rest into sessions."""
        sessions: list[Session] = []
        for block in document.blocks:
            outcome = BlockOutcome(block)
            reason = skip_reason(block, self.settings)
            if reason is not None:
                outcome.skip(reason)
                collector.record(outcome)
                continue

            expectations, warnings = parse_expectations(block)
            outcome.expectations = expectations
            outcome.warnings = warnings
            outcome.advance(BlockStatus.PARSED)

            if block.continues and sessions:
                sessions[-1].append(outcome)
                continue
            if block.continues:
                collector.warn(
                    document.identifier,
                    ParseWarning(
                        source=block.label,
                        line=block.start_line,
                        value="snip-continue",
                        message="snip-continue without a preceding evaluated block",
                    ),
                )
            sessions.append([outcome])
        return sessions

    # ── Scheduling ───────────────────────────────────────────────────

    def _run_sessions(self, sessions: list[Session], collector: ReportCollector) -> None:
        if not sessions:
            return
        workers = min(self.settings.workers, len(sessions))
        self.ctx.log.debug("verifier.scheduling", sessions=len(sessions), workers=workers)

        pending: dict[Future, Session] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="snipcheck") as executor:
            try:
                for session in sessions:
                    pending[executor.submit(self._run_session, session, collector)] = session
                for future in as_completed(pending):
                    if future.cancelled():
                        continue
                    future.result()
            except KeyboardInterrupt:
                self.ctx.cancel("interrupted by operator", interrupted=True)
                for future in pending:
                    future.cancel()
                # Wait for in-flight sessions; they stop at the next block boundary.
                executor.shutdown(wait=True, cancel_futures=True)

        for future, session in pending.items():
            if future.cancelled():
                self._skip_all(session, collector)

    def _run_session(self, session: Session, collector: ReportCollector) -> None:
        if self.ctx.cancelled:
            self._skip_all(session, collector)
            return

        self.ctx.log.debug("verifier.session_started", session=session[0].block.label, blocks=len(session))
        evaluations = self.evaluator.iter_session([(o.block, o.expectations) for o in session])
        for outcome, evaluation in zip(session, evaluations, strict=True):
            self._finish(outcome, evaluation)
            collector.record(outcome)
            if self.settings.fail_fast and not outcome.ok:
                self.ctx.cancel(f"fail-fast: {outcome.block.label} did not pass")

    @staticmethod
    def _finish(outcome: BlockOutcome, evaluation: BlockEvaluation) -> None:
        if evaluation.not_run is not None:
            outcome.skip(evaluation.not_run)
            return
        outcome.stderr = evaluation.stderr
        outcome.results = compare_block(outcome.expectations, evaluation)
        if evaluation.error is not None:
            outcome.fail(evaluation.error)
            return
        outcome.advance(BlockStatus.EVALUATED)
        outcome.advance(BlockStatus.COMPARED)

    @staticmethod
    def _skip_all(session: Session, collector: ReportCollector) -> None:
        for outcome in session:
            if not outcome.terminal:
                outcome.skip(CANCELLED_REASON)
                collector.record(outcome)


def verify_paths(paths: Iterable[str | Path], settings: VerifierSettings | None = None) -> Report:
    """Verify the documents found under *paths* and return the report.

    Raises:
        DocumentReadError: An input is missing or unreadable.
    """
    return Verifier(settings).verify_paths(paths)


__all__ = ["Verifier", "skip_reason", "verify_paths"]
