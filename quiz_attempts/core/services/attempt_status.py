"""Derivation of attempt lifecycle state from stored facts and the current time."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from quiz_attempts.core.clock import as_utc
from quiz_attempts.core.models import Attempt, AttemptStatus


def attempt_status(attempt: Attempt, now: datetime) -> AttemptStatus:
    """Return the status of ``attempt`` as seen at ``now``.

    Submission always wins. Expiry is strict: an attempt is still in progress
    at exactly its effective end. An attempt without an effective end never
    expires.
    """
    if attempt.submitted_at is not None:
        return AttemptStatus.COMPLETED
    if attempt.effective_end is not None and as_utc(now) > as_utc(attempt.effective_end):
        return AttemptStatus.EXPIRED
    return AttemptStatus.IN_PROGRESS


def filter_by_status(
    attempts: Iterable[Attempt],
    status: AttemptStatus,
    now: datetime,
) -> list[Attempt]:
    return [attempt for attempt in attempts if attempt_status(attempt, now) is status]
