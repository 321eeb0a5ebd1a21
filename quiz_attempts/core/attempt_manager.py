"""Business logic for quiz attempts shared between the API and other callers."""

from __future__ import annotations

from dataclasses import fields, replace
from datetime import datetime
import logging
from threading import Lock
from typing import Any
from uuid import uuid4

from quiz_attempts.constants.attempt_constants import (
    DEFAULT_PASSING_SCORE,
    DEPRECATED_SCORING_FIELDS,
    LINK_TOKEN_LENGTH,
)
from quiz_attempts.core.clock import Clock, SystemClock, as_utc
from quiz_attempts.core.errors import (
    AttemptAlreadySubmittedError,
    AttemptNotFoundError,
    InvalidScoringConfigError,
    QuizNotFoundError,
)
from quiz_attempts.core.models import (
    Attempt,
    AttemptStatus,
    BackfillReport,
    EffectiveWindow,
    Quiz,
    QuizScoring,
    SchedulingMode,
    ScoringType,
    UserQuizAssignment,
)
from quiz_attempts.core.services import score_reconciler
from quiz_attempts.core.services.attempt_status import attempt_status, filter_by_status
from quiz_attempts.core.services.attempt_store import AttemptStore, email_key
from quiz_attempts.core.services.identity_guard import IdentityGuard
from quiz_attempts.core.services.scheduling_policy import (
    classify_mode,
    ensure_scheduling_unlocked,
    resolve_window,
    validate_quiz,
)

logger = logging.getLogger(__name__)

_EDITABLE_QUIZ_FIELDS = frozenset(
    {"title", "mode", "start_at", "end_at", "duration_minutes", "link", "passing_score"}
)
_REQUIRED_QUIZ_FIELDS = frozenset({"title", "link", "passing_score"})
_SCORING_FIELDS = frozenset(f.name for f in fields(QuizScoring)) - {"quiz_id"}


class AttemptManager:
    """Facade for the store, identity guard and scheduling/status/score rules."""

    def __init__(self, store: AttemptStore | None = None, clock: Clock | None = None) -> None:
        self._lock = Lock()
        self._store = store or AttemptStore()
        self._clock = clock or SystemClock()
        self._guard = IdentityGuard(self._store)

    # --- Quizzes ---

    def create_quiz(
        self,
        title: str,
        mode: SchedulingMode | str | None = None,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
        duration_minutes: int | None = None,
        link: str | None = None,
        passing_score: int = DEFAULT_PASSING_SCORE,
    ) -> Quiz:
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValueError("Quiz title must not be empty.")
        resolved_mode = (
            SchedulingMode(mode)
            if mode is not None
            else classify_mode(start_at, end_at, duration_minutes)
        )
        with self._lock:
            quiz = Quiz(
                id=self._store.next_quiz_id(),
                title=cleaned_title,
                mode=resolved_mode,
                link=link or uuid4().hex[:LINK_TOKEN_LENGTH],
                start_at=as_utc(start_at) if start_at is not None else None,
                end_at=as_utc(end_at) if end_at is not None else None,
                duration_minutes=duration_minutes,
                passing_score=passing_score,
            )
            validate_quiz(quiz)
            saved = self._store.save_quiz(quiz)
        logger.info("Created %s quiz %s (%s)", saved.mode.value, saved.id, saved.title)
        return saved

    def update_quiz(self, quiz_id: int, **changes: Any) -> Quiz:
        """Apply ``changes`` to a quiz; scheduling fields are frozen once attempts exist."""
        unknown = set(changes) - _EDITABLE_QUIZ_FIELDS
        if unknown:
            raise ValueError(f"Unknown quiz fields: {', '.join(sorted(unknown))}")
        missing = sorted(
            name for name in _REQUIRED_QUIZ_FIELDS if name in changes and changes[name] is None
        )
        if missing:
            raise ValueError(f"Quiz fields cannot be cleared: {', '.join(missing)}")
        if "title" in changes:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise ValueError("Quiz title must not be empty.")
        with self._lock:
            quiz = self._require_quiz(quiz_id)
            ensure_scheduling_unlocked(quiz, changes)
            if "mode" in changes:
                changes["mode"] = SchedulingMode(changes["mode"])
            for name in ("start_at", "end_at"):
                if changes.get(name) is not None:
                    changes[name] = as_utc(changes[name])
            updated = replace(quiz, **changes)
            validate_quiz(updated)
            return self._store.save_quiz(updated)

    def get_quiz(self, quiz_id: int) -> Quiz:
        with self._lock:
            return self._require_quiz(quiz_id)

    def resolve_scheduling_window(self, quiz_id: int, attempt_start: datetime) -> EffectiveWindow:
        with self._lock:
            quiz = self._require_quiz(quiz_id)
        return resolve_window(quiz, attempt_start)

    # --- Attempts ---

    def create_attempt(
        self,
        quiz_id: int,
        email: str,
        nij: str,
        participant_name: str | None = None,
        servo_number: str | None = None,
        service_key: str | None = None,
    ) -> Attempt:
        with self._lock:
            quiz = self._require_quiz(quiz_id)
            window = resolve_window(quiz, self._clock.now())
            attempt = self._guard.check_and_reserve(
                quiz,
                email,
                nij,
                window,
                participant_name=participant_name,
                servo_number=servo_number,
                service_key=service_key,
            )
            if not quiz.scheduling_locked:
                self._store.lock_quiz_scheduling(quiz.id)
        logger.info("Started attempt %s for quiz %s", attempt.id, quiz_id)
        return attempt

    def get_attempt(self, attempt_id: int) -> Attempt:
        with self._lock:
            return self._require_attempt(attempt_id)

    def get_status(self, attempt_id: int, now: datetime | None = None) -> AttemptStatus:
        attempt = self.get_attempt(attempt_id)
        return attempt_status(attempt, now if now is not None else self._clock.now())

    def submit_attempt(self, attempt_id: int, total: int, correct: int) -> Attempt:
        """Record the final counts of an attempt; late submissions are accepted."""
        with self._lock:
            attempt = self._require_attempt(attempt_id)
            if attempt.submitted_at is not None:
                raise AttemptAlreadySubmittedError(f"Attempt {attempt_id} was already submitted.")
            counts = score_reconciler.reconcile(total, correct)
            submitted = replace(
                attempt,
                submitted_at=self._clock.now(),
                total_questions=total,
                correct_answers=counts.correct,
                incorrect_answers=counts.incorrect,
            )
            saved = self._store.update_attempt(submitted)
        logger.info(
            "Submitted attempt %s: %s/%s correct", attempt_id, counts.correct, total
        )
        return saved

    def list_attempts(
        self,
        quiz_id: int | None = None,
        email: str | None = None,
        status: AttemptStatus | str | None = None,
        now: datetime | None = None,
    ) -> list[Attempt]:
        with self._lock:
            attempts = self._store.list_attempts(quiz_id=quiz_id)
        if email is not None:
            attempts = [a for a in attempts if email_key(a.email) == email_key(email)]
        if status is not None:
            attempts = filter_by_status(
                attempts,
                AttemptStatus(status),
                now if now is not None else self._clock.now(),
            )
        return sorted(attempts, key=lambda a: a.id)

    def find_attempts_by_nij(self, quiz_id: int, nij: str) -> list[Attempt]:
        with self._lock:
            return self._store.list_attempts(quiz_id=quiz_id, nij=nij)

    def backfill_incorrect_answers(self) -> BackfillReport:
        with self._lock:
            attempts = self._store.list_attempts()
            report = score_reconciler.backfill(attempts)
            updated_ids = set(report.updated)
            for attempt in attempts:
                if attempt.id in updated_ids:
                    self._store.update_attempt(attempt)
        logger.info(
            "Backfill finished: %d updated, %d unchanged, %d rejected",
            len(report.updated),
            len(report.unchanged),
            len(report.rejected),
        )
        return report

    # --- Scoring & Assignments ---

    def configure_scoring(self, quiz_id: int, **settings: Any) -> QuizScoring:
        deprecated = set(settings) & DEPRECATED_SCORING_FIELDS
        if deprecated:
            raise InvalidScoringConfigError(
                f"Scoring fields no longer supported: {', '.join(sorted(deprecated))}"
            )
        unknown = set(settings) - _SCORING_FIELDS
        if unknown:
            raise InvalidScoringConfigError(
                f"Unknown scoring fields: {', '.join(sorted(unknown))}"
            )
        if "scoring_type" in settings:
            try:
                settings["scoring_type"] = ScoringType(settings["scoring_type"])
            except ValueError as exc:
                raise InvalidScoringConfigError(str(exc)) from exc
        for name in ("points", "correct_answers"):
            if name not in settings:
                continue
            value = settings[name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidScoringConfigError(f"{name} must be a non-negative integer.")
        if "is_active" in settings and not isinstance(settings["is_active"], bool):
            raise InvalidScoringConfigError("is_active must be true or false.")
        with self._lock:
            self._require_quiz(quiz_id)
            current = self._store.get_scoring(quiz_id) or QuizScoring(quiz_id=quiz_id)
            return self._store.save_scoring(replace(current, **settings))

    def get_scoring(self, quiz_id: int) -> QuizScoring | None:
        with self._lock:
            self._require_quiz(quiz_id)
            return self._store.get_scoring(quiz_id)

    def assign_quiz(
        self,
        user_email: str,
        quiz_id: int,
        assigned_by: str,
        notes: str = "",
    ) -> UserQuizAssignment:
        with self._lock:
            self._require_quiz(quiz_id)
            return self._store.add_assignment(
                UserQuizAssignment(
                    user_email=user_email.strip(),
                    quiz_id=quiz_id,
                    assigned_by=assigned_by,
                    assigned_at=self._clock.now(),
                    notes=notes,
                )
            )

    def get_assignments(self, user_email: str) -> list[UserQuizAssignment]:
        with self._lock:
            return self._store.list_assignments(user_email)

    # --- Helpers ---

    def _require_quiz(self, quiz_id: int) -> Quiz:
        quiz = self._store.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(f"Quiz {quiz_id} not found.")
        return quiz

    def _require_attempt(self, attempt_id: int) -> Attempt:
        attempt = self._store.get_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(f"Attempt {attempt_id} not found.")
        return attempt
