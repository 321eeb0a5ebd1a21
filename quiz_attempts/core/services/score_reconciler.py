"""Bookkeeping for correct/incorrect answer counts."""

from __future__ import annotations

import logging
from typing import Iterable

from quiz_attempts.core.errors import InvalidScoreInputError
from quiz_attempts.core.models import Attempt, BackfillReport, ScoreCounts

logger = logging.getLogger(__name__)


def reconcile(total: int, correct: int) -> ScoreCounts:
    """Validate ``total``/``correct`` and derive the incorrect-answer count."""
    for name, value in (("total", total), ("correct", correct)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidScoreInputError(f"{name} must be an integer, got {value!r}.")
    if total < 0 or correct < 0:
        raise InvalidScoreInputError(
            f"Counts must not be negative (total={total}, correct={correct})."
        )
    if correct > total:
        raise InvalidScoreInputError(
            f"Correct answers ({correct}) exceed total questions ({total})."
        )
    if total == 0:
        return ScoreCounts(correct=correct, incorrect=0)
    return ScoreCounts(correct=correct, incorrect=total - correct)


def backfill(attempts: Iterable[Attempt]) -> BackfillReport:
    """Re-derive ``incorrect_answers`` in place for every attempt.

    Consistent records are left alone, so running this twice changes nothing
    the second time. Records with invalid counts are reported, never repaired.
    """
    report = BackfillReport()
    for attempt in attempts:
        try:
            counts = reconcile(attempt.total_questions, attempt.correct_answers)
        except InvalidScoreInputError as exc:
            logger.warning("Skipping attempt %s during backfill: %s", attempt.id, exc)
            report.rejected.append(attempt.id)
            continue
        if counts.incorrect == attempt.incorrect_answers:
            report.unchanged.append(attempt.id)
            continue
        attempt.incorrect_answers = counts.incorrect
        report.updated.append(attempt.id)
    return report
