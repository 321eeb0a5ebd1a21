"""Attempt and scoring defaults shared across core and server layers."""

DEFAULT_PASSING_SCORE: int = 70
DEFAULT_SCORING_POINTS: int = 1
DEFAULT_SERVO_NUMBER: str = "0"
LINK_TOKEN_LENGTH: int = 12

# Scoring fields that were dropped from the data model and must stay dropped.
DEPRECATED_SCORING_FIELDS: frozenset[str] = frozenset(
    {"score", "time_bonus_per_second", "time_bonus_enabled"}
)

# Fields whose change would invalidate already-computed effective windows.
SCHEDULING_FIELDS: tuple[str, ...] = ("mode", "start_at", "end_at", "duration_minutes")

CONFLICT_STATUS_CODE: int = 409
VALIDATION_STATUS_CODE: int = 422
NOT_FOUND_STATUS_CODE: int = 404
