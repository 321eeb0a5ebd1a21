"""In-process storage for quizzes, attempts and their configuration records."""

from __future__ import annotations

from dataclasses import replace
from itertools import count
from threading import Lock

from quiz_attempts.core.models import Attempt, Quiz, QuizScoring, UserQuizAssignment


class UniqueConstraintViolation(Exception):
    """Raised by the store when an insert would duplicate a unique key."""

    def __init__(self, field_name: str, value: str) -> None:
        super().__init__(f"Unique constraint violated on {field_name}={value!r}")
        self.field_name = field_name
        self.value = value


def email_key(email: str) -> str:
    """Normalized key under which attempt emails are unique."""
    return email.strip().casefold()


class AttemptStore:
    """Stores records behind a single lock and hands out copies.

    ``Attempt.email`` is unique across the whole store; inserting a second
    attempt with the same normalized email raises ``UniqueConstraintViolation``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._quizzes: dict[int, Quiz] = {}
        self._attempts: dict[int, Attempt] = {}
        self._attempt_ids_by_email: dict[str, int] = {}
        self._scoring: dict[int, QuizScoring] = {}
        self._assignments: list[UserQuizAssignment] = []
        self._quiz_ids = count(1)
        self._attempt_ids = count(1)

    # --- Quizzes ---

    def next_quiz_id(self) -> int:
        with self._lock:
            return next(self._quiz_ids)

    def save_quiz(self, quiz: Quiz) -> Quiz:
        with self._lock:
            self._quizzes[quiz.id] = replace(quiz)
            return replace(quiz)

    def get_quiz(self, quiz_id: int) -> Quiz | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            return replace(quiz) if quiz is not None else None

    def lock_quiz_scheduling(self, quiz_id: int) -> None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            if quiz is not None:
                quiz.scheduling_locked = True

    # --- Attempts ---

    def insert_attempt(self, attempt: Attempt) -> Attempt:
        """Insert ``attempt`` under a fresh id, enforcing email uniqueness atomically."""
        key = email_key(attempt.email)
        with self._lock:
            if key in self._attempt_ids_by_email:
                raise UniqueConstraintViolation("email", attempt.email)
            stored = replace(attempt, id=next(self._attempt_ids))
            self._attempts[stored.id] = stored
            self._attempt_ids_by_email[key] = stored.id
            return replace(stored)

    def update_attempt(self, attempt: Attempt) -> Attempt:
        with self._lock:
            current = self._attempts.get(attempt.id)
            if current is None:
                raise KeyError(attempt.id)
            if email_key(current.email) != email_key(attempt.email):
                raise ValueError("Attempt email cannot be changed.")
            self._attempts[attempt.id] = replace(attempt)
            return replace(attempt)

    def get_attempt(self, attempt_id: int) -> Attempt | None:
        with self._lock:
            attempt = self._attempts.get(attempt_id)
            return replace(attempt) if attempt is not None else None

    def find_attempt_by_email(self, email: str) -> Attempt | None:
        with self._lock:
            attempt_id = self._attempt_ids_by_email.get(email_key(email))
            if attempt_id is None:
                return None
            return replace(self._attempts[attempt_id])

    def list_attempts(
        self,
        quiz_id: int | None = None,
        nij: str | None = None,
    ) -> list[Attempt]:
        with self._lock:
            return [
                replace(attempt)
                for attempt in self._attempts.values()
                if (quiz_id is None or attempt.quiz_id == quiz_id)
                and (nij is None or attempt.nij == nij)
            ]

    # --- Scoring and assignments ---

    def save_scoring(self, scoring: QuizScoring) -> QuizScoring:
        with self._lock:
            self._scoring[scoring.quiz_id] = replace(scoring)
            return replace(scoring)

    def get_scoring(self, quiz_id: int) -> QuizScoring | None:
        with self._lock:
            scoring = self._scoring.get(quiz_id)
            return replace(scoring) if scoring is not None else None

    def add_assignment(self, assignment: UserQuizAssignment) -> UserQuizAssignment:
        with self._lock:
            self._assignments.append(replace(assignment))
            return replace(assignment)

    def list_assignments(self, user_email: str) -> list[UserQuizAssignment]:
        key = email_key(user_email)
        with self._lock:
            return [
                replace(assignment)
                for assignment in self._assignments
                if email_key(assignment.user_email) == key
            ]
