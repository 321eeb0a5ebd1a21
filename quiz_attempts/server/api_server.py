"""FastAPI server that exposes quiz and attempt endpoints."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from quiz_attempts.constants.attempt_constants import (
    CONFLICT_STATUS_CODE,
    DEFAULT_PASSING_SCORE,
    NOT_FOUND_STATUS_CODE,
    VALIDATION_STATUS_CODE,
)
from quiz_attempts.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, LOG_LEVEL
from quiz_attempts.core.attempt_manager import AttemptManager
from quiz_attempts.core.errors import (
    AttemptAlreadySubmittedError,
    AttemptEngineError,
    AttemptNotFoundError,
    DuplicateEmailError,
    ModeLockedError,
    QuizNotFoundError,
)
from quiz_attempts.core.models import AttemptStatus, SchedulingMode

_ERROR_STATUS: dict[type[AttemptEngineError], int] = {
    DuplicateEmailError: CONFLICT_STATUS_CODE,
    ModeLockedError: CONFLICT_STATUS_CODE,
    AttemptAlreadySubmittedError: CONFLICT_STATUS_CODE,
    QuizNotFoundError: NOT_FOUND_STATUS_CODE,
    AttemptNotFoundError: NOT_FOUND_STATUS_CODE,
}


class QuizPayload(BaseModel):
    """Payload schema for quiz creation."""

    title: str
    mode: SchedulingMode | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_minutes: int | None = None
    link: str | None = None
    passing_score: int = DEFAULT_PASSING_SCORE


class QuizUpdatePayload(BaseModel):
    """Partial quiz update; only the fields that are sent get applied."""

    title: str | None = None
    mode: SchedulingMode | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_minutes: int | None = None
    link: str | None = None
    passing_score: int | None = None


class AttemptPayload(BaseModel):
    """Payload schema for starting an attempt."""

    email: str
    nij: str
    participant_name: str | None = None
    servo_number: str | None = None
    service_key: str | None = None


class SubmissionPayload(BaseModel):
    total_questions: int
    correct_answers: int


class ScoringPayload(BaseModel):
    # Unknown keys (including retired scoring fields) pass through so the
    # manager can reject them with a typed error.
    model_config = ConfigDict(extra="allow")

    points: int | None = None
    correct_answers: int | None = None
    scoring_type: str | None = None
    category: str | None = None
    is_active: bool | None = None


class AssignmentPayload(BaseModel):
    user_email: str
    quiz_id: int
    assigned_by: str
    notes: str = Field(default="")


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.astimezone(timezone.utc).isoformat()


def _serialize(record: Any) -> dict[str, object]:
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = _isoformat(value)
    return data


def _get_attempt_manager_dependency(attempt_manager: AttemptManager):
    def dependency() -> AttemptManager:
        return attempt_manager

    return dependency


def create_api_app(attempt_manager: AttemptManager) -> FastAPI:
    """Create a FastAPI application wired to the provided attempt manager."""
    app = FastAPI(title="Quiz Attempts API", version="0.1.0")
    manager_dep = _get_attempt_manager_dependency(attempt_manager)

    @app.exception_handler(AttemptEngineError)
    async def handle_engine_error(request: Request, exc: AttemptEngineError) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), VALIDATION_STATUS_CODE)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: QuizPayload,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            quiz = manager.create_quiz(**payload.model_dump())
        except ValueError as exc:
            raise HTTPException(status_code=VALIDATION_STATUS_CODE, detail=str(exc)) from exc
        return _serialize(quiz)

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: int, manager: AttemptManager = Depends(manager_dep)) -> dict[str, object]:
        return _serialize(manager.get_quiz(quiz_id))

    @app.patch("/quizzes/{quiz_id}")
    def update_quiz(
        quiz_id: int,
        payload: QuizUpdatePayload,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            quiz = manager.update_quiz(quiz_id, **payload.model_dump(exclude_unset=True))
        except ValueError as exc:
            raise HTTPException(status_code=VALIDATION_STATUS_CODE, detail=str(exc)) from exc
        return _serialize(quiz)

    @app.get("/quizzes/{quiz_id}/window")
    def resolve_window(
        quiz_id: int,
        attempt_start: datetime,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        window = manager.resolve_scheduling_window(quiz_id, attempt_start)
        return {"start": _isoformat(window.start), "end": _isoformat(window.end)}

    @app.put("/quizzes/{quiz_id}/scoring")
    def configure_scoring(
        quiz_id: int,
        payload: ScoringPayload,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        settings = payload.model_dump(exclude_unset=True)
        settings.update(payload.model_extra or {})
        return _serialize(manager.configure_scoring(quiz_id, **settings))

    @app.post("/quizzes/{quiz_id}/attempts", status_code=201)
    def create_attempt(
        quiz_id: int,
        payload: AttemptPayload,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            attempt = manager.create_attempt(quiz_id, **payload.model_dump())
        except ValueError as exc:
            raise HTTPException(status_code=VALIDATION_STATUS_CODE, detail=str(exc)) from exc
        return _serialize(attempt)

    @app.get("/attempts")
    def list_attempts(
        quiz_id: int | None = None,
        email: str | None = None,
        status: AttemptStatus | None = None,
        manager: AttemptManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        attempts = manager.list_attempts(quiz_id=quiz_id, email=email, status=status)
        return [_serialize(attempt) for attempt in attempts]

    @app.post("/attempts/backfill")
    def backfill(manager: AttemptManager = Depends(manager_dep)) -> dict[str, object]:
        return _serialize(manager.backfill_incorrect_answers())

    @app.get("/attempts/{attempt_id}")
    def get_attempt(
        attempt_id: int,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.get_attempt(attempt_id)
        data = _serialize(attempt)
        data["status"] = manager.get_status(attempt_id).value
        return data

    @app.get("/attempts/{attempt_id}/status")
    def get_status(
        attempt_id: int,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return {"attempt_id": attempt_id, "status": manager.get_status(attempt_id).value}

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: int,
        payload: SubmissionPayload,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.submit_attempt(
            attempt_id,
            total=payload.total_questions,
            correct=payload.correct_answers,
        )
        return _serialize(attempt)

    @app.post("/assignments", status_code=201)
    def assign_quiz(
        payload: AssignmentPayload,
        manager: AttemptManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _serialize(manager.assign_quiz(**payload.model_dump()))

    return app


def run_api_server(
    attempt_manager: AttemptManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(attempt_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=LOG_LEVEL)
    server = uvicorn.Server(config)
    server.run()
