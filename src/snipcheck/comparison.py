"""Compare captured values against expected literals.

A mismatch is not an exceptional condition: it is a normal
:attr:`~snipcheck.models.ResultStatus.FAILED` result.
"""

from __future__ import annotations

from collections.abc import Sequence

from snipcheck.models import BlockEvaluation, Capture, EvaluationResult, Expectation, ResultStatus


def normalize(text: str) -> str:
    """Ignore line-ending differences and leading/trailing whitespace."""
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()


def compare(expectation: Expectation, capture: Capture) -> EvaluationResult:
    """Compare one capture with its expectation."""
    expected = normalize(expectation.expected)
    candidates = [capture.text] if capture.alternate is None else [capture.text, capture.alternate]
    for candidate in candidates:
        if normalize(candidate) == expected:
            return EvaluationResult(expectation, ResultStatus.PASSED, actual=normalize(candidate))
    return EvaluationResult(expectation, ResultStatus.FAILED, actual=normalize(capture.text))


def compare_block(
    expectations: Sequence[Expectation],
    evaluation: BlockEvaluation,
) -> list[EvaluationResult]:
    """Produce exactly one result per expectation of a block.

    Expectations on or after a failing statement are ``ERRORED``; they are
    never compared against a partial capture.
    """
    results: list[EvaluationResult] = []
    for expectation in expectations:
        failed_here = evaluation.error is not None and (
            evaluation.error_offset is None or expectation.offset >= evaluation.error_offset
        )
        if failed_here:
            results.append(EvaluationResult(expectation, ResultStatus.ERRORED, error=evaluation.error))
            continue
        capture = evaluation.captures.get(expectation.offset)
        if capture is None:
            results.append(
                EvaluationResult(expectation, ResultStatus.ERRORED, error="line was not executed")
            )
            continue
        results.append(compare(expectation, capture))
    return results


__all__ = ["compare", "compare_block", "normalize"]
