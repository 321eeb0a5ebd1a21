"""Enforcement of the one-attempt-per-email participation policy."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from threading import Lock
from typing import Iterator

from quiz_attempts.constants.attempt_constants import DEFAULT_SERVO_NUMBER
from quiz_attempts.core.errors import DuplicateEmailError
from quiz_attempts.core.models import Attempt, EffectiveWindow, Quiz
from quiz_attempts.core.services.attempt_store import (
    AttemptStore,
    UniqueConstraintViolation,
    email_key,
)

logger = logging.getLogger(__name__)


class IdentityGuard:
    """Reserves participant identities against the shared attempt store.

    Email is unique across every quiz. The nij token is stored but never
    checked. A per-email lock rejects concurrent duplicates before they reach
    the store; the store's unique constraint remains the final arbiter.
    """

    def __init__(self, store: AttemptStore) -> None:
        self._store = store
        self._table_lock = Lock()
        self._identity_locks: dict[str, tuple[Lock, int]] = {}

    def check_and_reserve(
        self,
        quiz: Quiz,
        email: str,
        nij: str,
        window: EffectiveWindow,
        participant_name: str | None = None,
        servo_number: str | None = None,
        service_key: str | None = None,
    ) -> Attempt:
        cleaned_email = email.strip()
        if not cleaned_email:
            raise ValueError("Email must not be empty.")

        with self._identity_lock(email_key(cleaned_email)):
            if self._store.find_attempt_by_email(cleaned_email) is not None:
                logger.info("Rejected attempt for quiz %s: email already used", quiz.id)
                raise DuplicateEmailError(f"An attempt already exists for {cleaned_email}.")

            draft = Attempt(
                id=0,
                quiz_id=quiz.id,
                email=cleaned_email,
                nij=nij,
                effective_start=window.start,
                effective_end=window.end,
                participant_name=participant_name,
                servo_number=servo_number or DEFAULT_SERVO_NUMBER,
                service_key=service_key,
            )
            try:
                return self._store.insert_attempt(draft)
            except UniqueConstraintViolation as exc:
                raise DuplicateEmailError(
                    f"An attempt already exists for {cleaned_email}."
                ) from exc

    @contextmanager
    def _identity_lock(self, key: str) -> Iterator[None]:
        with self._table_lock:
            lock, users = self._identity_locks.get(key, (Lock(), 0))
            self._identity_locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._table_lock:
                lock, users = self._identity_locks[key]
                if users <= 1:
                    del self._identity_locks[key]
                else:
                    self._identity_locks[key] = (lock, users - 1)
