"""Injectable time sources."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Manually driven clock for deterministic evaluation."""

    def __init__(self, instant: datetime) -> None:
        self._instant = as_utc(instant)
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._instant

    def set(self, instant: datetime) -> None:
        with self._lock:
            self._instant = as_utc(instant)

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward by ``timedelta(**delta)`` and return the new instant."""
        with self._lock:
            self._instant += timedelta(**delta)
            return self._instant


def as_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)
