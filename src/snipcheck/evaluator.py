"""Isolated Evaluator — run code blocks in a fresh interpreter per session.

Manifesto:
    A snippet may loop forever, call ``sys.exit()``, monkey-patch builtins or
    leave imports behind. None of that may leak into another block, and none
    of it may stop the run. Each session (one block plus its
    ``snip-continue`` followers) therefore gets its own spawned process and a
    namespace that starts empty.

ARCHITECTURE
────────────
::

    IsolatedEvaluator(ctx)
      └── .iter_session([(block, expectations), ...])
            │
            ├── spawn sandbox.serve(conn)        ─ fresh interpreter
            ├── wait for "ready"                 ─ start-up not charged to blocks
            ├── per block: send → poll(timeout)  ─ per-block deadline
            │     ├── reply      → BlockEvaluation(captures, error)
            │     ├── timeout    → kill, SnippetTimeout, abort session
            │     └── EOF        → EvaluationError (sandbox died)
            └── shutdown                         ─ None, join, kill

    Threads cannot interrupt a runaway ``while True`` loop; a process can be
    killed, so the deadline is enforced from the parent.

Related modules:
    sandbox.py    — child-process side of the protocol
    verifier.py   — schedules sessions on a worker pool

Tags:
    snipcheck, evaluator, sandbox, multiprocessing, timeout, isolation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import multiprocessing
from collections.abc import Iterator, Sequence
from typing import Any

from snipcheck import sandbox
from snipcheck.context import RunContext
from snipcheck.core.errors import EvaluationError, SnipcheckError, SnippetTimeout
from snipcheck.models import BlockEvaluation, Capture, CodeBlock, Expectation

SessionItem = tuple[CodeBlock, Sequence[Expectation]]

CANCELLED_REASON = "run cancelled"


class IsolatedEvaluator:
    """Evaluate sessions of code blocks in spawned sandbox processes.

    Evaluation errors never propagate out of :meth:`iter_session`; every
    block always receives a :class:`BlockEvaluation`.
    """

    def __init__(self, ctx: RunContext) -> None:
        self.ctx = ctx
        self._mp = multiprocessing.get_context("spawn")

    def timeout_for(self, block: CodeBlock) -> float:
        return block.timeout_override or self.ctx.settings.timeout_seconds

    def evaluate_session(self, items: Sequence[SessionItem]) -> list[BlockEvaluation]:
        """Run *items* in order in one fresh sandbox.

        Returns:
            One :class:`BlockEvaluation` per item, in the same order.
        """
        return list(self.iter_session(items))

    def iter_session(self, items: Sequence[SessionItem]) -> Iterator[BlockEvaluation]:
        """Yield one :class:`BlockEvaluation` per item, as each block finishes.

        The cancellation flag is checked before every block, so a consumer
        that cancels the run after a result stops the rest of the session.
        """
        if not items:
            return
        log = self.ctx.log.bind(session=items[0][0].label)

        parent_conn, child_conn = self._mp.Pipe()
        process = self._mp.Process(
            target=sandbox.serve,
            args=(child_conn,),
            name=f"snipcheck-sandbox-{items[0][0].start_line}",
            daemon=False,
        )
        try:
            try:
                process.start()
                child_conn.close()
                self._await_ready(parent_conn)
            except (SnipcheckError, OSError, EOFError) as exc:
                log.error("evaluator.sandbox_start_failed", error=str(exc))
                error = f"sandbox failed to start: {exc}"
                for _ in items:
                    yield BlockEvaluation(error=error)
                return

            for position, (block, expectations) in enumerate(items):
                if self.ctx.cancelled:
                    for _ in items[position:]:
                        yield BlockEvaluation(not_run=CANCELLED_REASON)
                    return
                try:
                    evaluation = self._evaluate_block(parent_conn, process, block, expectations)
                except EvaluationError as exc:
                    # The sandbox is either stuck or gone; nothing after this block can run.
                    self._kill(process)
                    event = "evaluator.timeout" if isinstance(exc, SnippetTimeout) else "evaluator.block_aborted"
                    log.warning(event, block=block.label, error=exc.message)
                    yield BlockEvaluation(error=exc.message)
                    aborted = f"session aborted: {exc.message}"
                    for _ in items[position + 1:]:
                        yield BlockEvaluation(error=aborted)
                    return
                yield evaluation
        finally:
            self._shutdown(process, parent_conn)

    # ── Internals ────────────────────────────────────────────────────

    def _await_ready(self, conn: Any) -> None:
        budget = self.ctx.settings.startup_timeout_seconds
        if not conn.poll(budget):
            raise EvaluationError(f"no ready signal within {budget:g}s")
        conn.recv()

    def _evaluate_block(
        self,
        conn: Any,
        process: Any,
        block: CodeBlock,
        expectations: Sequence[Expectation],
    ) -> BlockEvaluation:
        timeout = self.timeout_for(block)
        request = {
            "source": block.source,
            "annotated": sorted({e.offset for e in expectations}),
            "filename": block.label,
        }
        self.ctx.log.debug("evaluator.block_started", block=block.label, timeout=timeout)
        try:
            conn.send(request)
            replied = conn.poll(timeout)
            reply = conn.recv() if replied else None
        except (EOFError, OSError) as exc:
            process.join(timeout=1.0)
            raise EvaluationError(
                f"sandbox process exited unexpectedly (exit code {process.exitcode})", cause=exc
            ).with_context(block=block.label) from exc

        # SnippetTimeout is an OSError, so it is raised outside the try above.
        if not replied:
            raise SnippetTimeout(timeout, block=block.label)
        return self._to_evaluation(block, reply)

    @staticmethod
    def _to_evaluation(block: CodeBlock, reply: dict[str, Any]) -> BlockEvaluation:
        evaluation = BlockEvaluation(
            captures={
                offset: Capture(text=text, alternate=alternate)
                for offset, text, alternate in reply.get("captures", ())
            },
            stderr=reply.get("stderr", ""),
        )
        error = reply.get("error")
        if error is not None:
            line = block.line_number(reply.get("error_line") or 0)
            evaluation.error = f"{error} (line {line})"
            evaluation.error_offset = reply.get("error_offset") or 0
        return evaluation

    def _shutdown(self, process: Any, conn: Any) -> None:
        if process.pid is None:
            conn.close()
            return
        if process.is_alive():
            try:
                conn.send(None)
            except (OSError, ValueError) as exc:
                self.ctx.log.debug("evaluator.shutdown_send_failed", pid=process.pid, error=str(exc))
            process.join(timeout=1.0)
        self._kill(process)
        conn.close()

    def _kill(self, process: Any) -> None:
        if process.is_alive():
            process.kill()
            process.join(timeout=1.0)
            self.ctx.log.debug("evaluator.sandbox_killed", pid=process.pid)


__all__ = ["CANCELLED_REASON", "IsolatedEvaluator"]
