from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from threading import Barrier

import pytest

from quiz_attempts.core.errors import DuplicateEmailError
from quiz_attempts.core.models import EffectiveWindow, Quiz, SchedulingMode
from quiz_attempts.core.services.attempt_store import AttemptStore, UniqueConstraintViolation
from quiz_attempts.core.services.identity_guard import IdentityGuard

START = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
WINDOW = EffectiveWindow(start=START, end=START + timedelta(minutes=30))


def _quiz(quiz_id: int) -> Quiz:
    return Quiz(id=quiz_id, title=f"Quiz {quiz_id}", mode=SchedulingMode.MANUAL, link=f"q{quiz_id}", duration_minutes=30)


def test_reserve_creates_attempt_with_window():
    store = AttemptStore()
    guard = IdentityGuard(store)
    attempt = guard.check_and_reserve(_quiz(1), "ana@example.com", "N-1", WINDOW, participant_name="Ana")
    assert attempt.id == 1
    assert attempt.effective_start == WINDOW.start
    assert attempt.effective_end == WINDOW.end
    assert attempt.servo_number == "0"
    assert store.find_attempt_by_email("ANA@example.com").id == attempt.id


def test_email_is_unique_across_quizzes():
    guard = IdentityGuard(AttemptStore())
    guard.check_and_reserve(_quiz(1), "ana@example.com", "N-1", WINDOW)
    with pytest.raises(DuplicateEmailError):
        guard.check_and_reserve(_quiz(2), "ana@example.com", "N-2", WINDOW)


def test_email_comparison_ignores_case_and_whitespace():
    guard = IdentityGuard(AttemptStore())
    guard.check_and_reserve(_quiz(1), "Ana@Example.com", "N-1", WINDOW)
    with pytest.raises(DuplicateEmailError):
        guard.check_and_reserve(_quiz(1), "  ana@example.COM ", "N-1", WINDOW)


def test_duplicate_nij_is_allowed_within_a_quiz():
    guard = IdentityGuard(AttemptStore())
    first = guard.check_and_reserve(_quiz(1), "a@example.com", "SHARED", WINDOW)
    second = guard.check_and_reserve(_quiz(1), "b@example.com", "SHARED", WINDOW)
    assert first.nij == second.nij
    assert first.id != second.id


def test_blank_email_is_rejected():
    guard = IdentityGuard(AttemptStore())
    with pytest.raises(ValueError):
        guard.check_and_reserve(_quiz(1), "   ", "N-1", WINDOW)


class _BlindStore(AttemptStore):
    """Store whose lookup misses, so only the unique constraint can catch duplicates."""

    def find_attempt_by_email(self, email):
        return None


def test_store_constraint_violation_surfaces_as_duplicate_email():
    store = _BlindStore()
    guard = IdentityGuard(store)
    guard.check_and_reserve(_quiz(1), "ana@example.com", "N-1", WINDOW)
    with pytest.raises(DuplicateEmailError) as excinfo:
        guard.check_and_reserve(_quiz(1), "ana@example.com", "N-1", WINDOW)
    assert isinstance(excinfo.value.__cause__, UniqueConstraintViolation)


def test_concurrent_reservations_for_same_email_yield_one_attempt():
    store = AttemptStore()
    guard = IdentityGuard(store)
    workers = 8
    barrier = Barrier(workers)

    def reserve(index: int):
        barrier.wait()
        try:
            return guard.check_and_reserve(_quiz(index % 2 + 1), "race@example.com", f"N-{index}", WINDOW)
        except DuplicateEmailError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(reserve, range(workers)))

    successes = [r for r in results if not isinstance(r, DuplicateEmailError)]
    failures = [r for r in results if isinstance(r, DuplicateEmailError)]
    assert len(successes) == 1
    assert len(failures) == workers - 1
    assert len(store.list_attempts()) == 1
