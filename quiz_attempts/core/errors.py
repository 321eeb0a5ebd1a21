"""Typed failures raised by the attempt engine.

Every error is scoped to the single operation that raised it and leaves stored
state untouched. ``code`` is a stable identifier that callers (and the HTTP
adapter) can surface verbatim.
"""

from __future__ import annotations


class AttemptEngineError(Exception):
    """Base class for all engine failures."""

    code: str = "AttemptEngineError"


class DuplicateEmailError(AttemptEngineError):
    """Raised when an attempt already exists for the given email."""

    code = "DuplicateEmail"


class InvalidWindowError(AttemptEngineError):
    """Raised when a scheduled window is malformed or already closed."""

    code = "InvalidWindow"


class InvalidDurationError(AttemptEngineError):
    """Raised when a manual quiz has a non-positive duration."""

    code = "InvalidDuration"


class ModeLockedError(AttemptEngineError):
    """Raised when scheduling parameters change after attempts exist."""

    code = "ModeLocked"


class InvalidScoreInputError(AttemptEngineError):
    """Raised when total/correct counts are negative or inconsistent."""

    code = "InvalidScoreInput"


class AttemptAlreadySubmittedError(AttemptEngineError):
    """Raised when an attempt that already has a submission is submitted again."""

    code = "AttemptAlreadySubmitted"


class InvalidScoringConfigError(AttemptEngineError):
    """Raised when scoring configuration names retired, unknown or malformed fields."""

    code = "InvalidScoringConfig"


class QuizNotFoundError(AttemptEngineError, LookupError):
    """Raised when no quiz exists with the requested id."""

    code = "QuizNotFound"


class AttemptNotFoundError(AttemptEngineError, LookupError):
    """Raised when no attempt exists with the requested id."""

    code = "AttemptNotFound"
