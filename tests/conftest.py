from __future__ import annotations

from datetime import datetime, timezone

import pytest

from quiz_attempts.core.attempt_manager import AttemptManager
from quiz_attempts.core.clock import FixedClock
from quiz_attempts.core.services.attempt_store import AttemptStore

T0 = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def store() -> AttemptStore:
    return AttemptStore()


@pytest.fixture
def manager(store: AttemptStore, clock: FixedClock) -> AttemptManager:
    return AttemptManager(store=store, clock=clock)
