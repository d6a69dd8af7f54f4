"""
Run-scoped context for the verifier.

Every component receives a :class:`RunContext` instead of reaching for
process-wide state. The context carries the validated settings, the run id,
a logger bound to that run id, and the cancellation signal shared by the
scheduler and the evaluator.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from snipcheck.core.config import VerifierSettings
from snipcheck.core.logging import get_logger


@dataclass
class RunContext:
    """Context passed to every verifier component.

    Attributes:
        settings: Validated settings for this run.
        run_id: Unique ID for this run (auto-generated).
        log: structlog logger bound with ``run_id``.
        cancel_event: Set once no new block evaluations may start.
        cancel_reason: Why the run was cancelled.
        interrupted: ``True`` when the operator cancelled the run (as opposed
            to fail-fast stopping it).
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    settings: VerifierSettings
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    log: Any = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    cancel_reason: str | None = None
    interrupted: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    _cancel_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.log is None:
            self.log = get_logger("snipcheck", run_id=self.run_id, **self.metadata)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self, reason: str, *, interrupted: bool = False) -> None:
        """Stop scheduling new block evaluations. The first reason wins."""
        with self._cancel_lock:
            if self.cancel_event.is_set():
                return
            self.cancel_reason = reason
            self.interrupted = interrupted
            self.cancel_event.set()
        self.log.warning("run.cancelled", reason=reason, interrupted=interrupted)
