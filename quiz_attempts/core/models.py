"""Domain models for the attempt engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from quiz_attempts.constants.attempt_constants import (
    DEFAULT_PASSING_SCORE,
    DEFAULT_SCORING_POINTS,
    DEFAULT_SERVO_NUMBER,
)


class SchedulingMode(str, Enum):
    """How a quiz bounds the time available to each attempt."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"


class AttemptStatus(str, Enum):
    """Derived lifecycle state of an attempt."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ScoringType(str, Enum):
    """How a quiz converts correct answers into a result."""

    STANDARD = "standard"
    IQ_SCORING = "iq_scoring"


@dataclass(slots=True)
class Quiz:
    """Quiz configuration relevant to attempt scheduling."""

    id: int
    title: str
    mode: SchedulingMode
    link: str
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_minutes: int | None = None
    passing_score: int = DEFAULT_PASSING_SCORE
    scheduling_locked: bool = False  # set once the first attempt exists


@dataclass(slots=True)
class EffectiveWindow:
    """Concrete start/end instants applicable to one attempt."""

    start: datetime
    end: datetime | None = None


@dataclass(slots=True)
class Attempt:
    """A participant's single attempt at a quiz."""

    id: int
    quiz_id: int
    email: str
    nij: str
    effective_start: datetime
    effective_end: datetime | None = None
    participant_name: str | None = None
    submitted_at: datetime | None = None
    total_questions: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    servo_number: str = DEFAULT_SERVO_NUMBER
    service_key: str | None = None


@dataclass(slots=True)
class ScoreCounts:
    """Consistent pair of correct/incorrect counts."""

    correct: int
    incorrect: int


@dataclass(slots=True)
class QuizScoring:
    """Per-quiz scoring configuration; holds no aggregate score."""

    quiz_id: int
    points: int = DEFAULT_SCORING_POINTS
    correct_answers: int = 0
    scoring_type: ScoringType = ScoringType.STANDARD
    category: str | None = None
    is_active: bool = True


@dataclass(slots=True)
class UserQuizAssignment:
    """Administrative record mapping a participant to a quiz."""

    user_email: str
    quiz_id: int
    assigned_by: str
    assigned_at: datetime
    notes: str = ""


@dataclass(slots=True)
class BackfillReport:
    """Outcome of re-deriving incorrect-answer counts over stored attempts."""

    updated: list[int] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)
    rejected: list[int] = field(default_factory=list)
