"""Scheduling mode classification and effective-window resolution."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

from quiz_attempts.constants.attempt_constants import SCHEDULING_FIELDS
from quiz_attempts.core.clock import as_utc
from quiz_attempts.core.errors import (
    InvalidDurationError,
    InvalidWindowError,
    ModeLockedError,
)
from quiz_attempts.core.models import EffectiveWindow, Quiz, SchedulingMode


def classify_mode(
    start_at: datetime | None,
    end_at: datetime | None,
    duration_minutes: int | None,
) -> SchedulingMode:
    """Infer the mode of a quiz that was configured without one.

    A full calendar window wins; a duration alone means a manual session.
    Anything else falls back to scheduled and is left for validation to reject.
    """
    if start_at is not None and end_at is not None:
        return SchedulingMode.SCHEDULED
    if duration_minutes is not None:
        return SchedulingMode.MANUAL
    return SchedulingMode.SCHEDULED


def validate_quiz(quiz: Quiz) -> None:
    """Check the scheduling invariants of a quiz for its mode."""
    if quiz.mode is SchedulingMode.SCHEDULED:
        _require_scheduled_window(quiz)
    else:
        _require_manual_duration(quiz)


def resolve_window(quiz: Quiz, attempt_start: datetime) -> EffectiveWindow:
    """Compute the effective window for an attempt beginning at ``attempt_start``."""
    attempt_start = as_utc(attempt_start)
    if quiz.mode is SchedulingMode.SCHEDULED:
        start_at, end_at = _require_scheduled_window(quiz)
        if attempt_start > end_at:
            raise InvalidWindowError(
                f"Quiz {quiz.id} closed at {end_at.isoformat()}; "
                f"cannot start an attempt at {attempt_start.isoformat()}."
            )
        return EffectiveWindow(start=max(start_at, attempt_start), end=end_at)

    duration = _require_manual_duration(quiz)
    if duration is None:
        return EffectiveWindow(start=attempt_start, end=None)
    return EffectiveWindow(start=attempt_start, end=attempt_start + timedelta(minutes=duration))


def ensure_scheduling_unlocked(quiz: Quiz, changes: Mapping[str, Any]) -> None:
    """Reject changes to scheduling parameters once the quiz is locked."""
    if not quiz.scheduling_locked:
        return
    changed = [
        name
        for name in SCHEDULING_FIELDS
        if name in changes and _normalized(changes[name]) != _normalized(getattr(quiz, name))
    ]
    if changed:
        raise ModeLockedError(
            f"Quiz {quiz.id} already has attempts; cannot change {', '.join(changed)}."
        )


def _require_scheduled_window(quiz: Quiz) -> tuple[datetime, datetime]:
    if quiz.start_at is None or quiz.end_at is None:
        raise InvalidWindowError(f"Scheduled quiz {quiz.id} needs both a start and an end.")
    start_at = as_utc(quiz.start_at)
    end_at = as_utc(quiz.end_at)
    if start_at >= end_at:
        raise InvalidWindowError(f"Scheduled quiz {quiz.id} must start before it ends.")
    return start_at, end_at


def _require_manual_duration(quiz: Quiz) -> int | None:
    duration = quiz.duration_minutes
    if duration is None:
        return None
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InvalidDurationError("Duration must be provided as an integer number of minutes.")
    if duration <= 0:
        raise InvalidDurationError(f"Manual quiz {quiz.id} needs a positive duration.")
    return duration


def _normalized(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        try:
            return SchedulingMode(value)
        except ValueError:
            return value
    return value
