"""Exam API — timed practice exams.

Endpoints:
- ``GET  /api/exam/config/{level}``               — exam parameters
- ``POST /api/exam/sessions``                     — start or resume a session
- ``GET  /api/exam/sessions/{id}``                — current state
- ``POST /api/exam/sessions/{id}/answer``         — select an answer
- ``POST /api/exam/sessions/{id}/navigate``       — next / prev / goto
- ``POST /api/exam/sessions/{id}/flag``           — toggle flag on current question
- ``POST /api/exam/sessions/{id}/submit``         — score and archive
- ``GET  /api/exam/history/{level}``              — archived attempts
- ``GET  /api/exam/stats/{level}``                — history statistics

A session is persisted under ``<exam_session_key>:<X-Client-ID>``, so one
client resumes its unfinished exam after a restart.  Live controllers are
pruned once idle past ``session_ttl`` or finished past ``completed_session_ttl``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Header, HTTPException

from config.settings import get_settings
from errors import SessionNotFoundError
from models.errors import ErrorCode, format_error
from models.exam import ExamAttempt, ExamConfig, ExamStats
from models.question import ExamLevel
from models.request import ExamAnswerRequest, NavigateRequest, StartExamRequest
from models.session import ExamSessionState
from services.exam_generator import get_exam_config
from services.exam_session import ExamSession
from services.exam_storage import get_exam_attempt_store, get_exam_stats
from services.question_pool import get_question_pool_provider
from services.question_scheduler import get_question_scheduler
from services.session_registry import SessionRegistry
from services.session_store import get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exam", tags=["exam"])

# Live controllers in this worker, by session ID and by client storage key.
_sessions: SessionRegistry[ExamSession] = SessionRegistry(
    get_settings().session_ttl, get_settings().completed_session_ttl
)
_client_sessions: dict[str, str] = {}


def _storage_key(client_id: str) -> str:
    return f"{get_settings().exam_session_key}:{client_id or 'default'}"


def _get_session(session_id: str) -> ExamSession:
    session = _sessions.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id, "exam session")
    return session


def _forget(session: ExamSession) -> None:
    session.stop_timer()
    _sessions.pop(session.session_id)


def prune_sessions() -> int:
    """Drop expired controllers and the client bindings that point at them."""
    removed = _sessions.cleanup_expired()
    for session in removed:
        session.stop_timer()
    for key, session_id in list(_client_sessions.items()):
        if session_id not in _sessions:
            del _client_sessions[key]
    return len(removed)


def shutdown_sessions() -> None:
    """Stop every running exam timer and release the controllers."""
    for session in _sessions.values():
        session.stop_timer()
    _sessions.clear()
    _client_sessions.clear()


@router.get("/config/{level}", response_model=ExamConfig)
async def exam_config(level: ExamLevel):
    return get_exam_config(level, get_question_pool_provider())


@router.post("/sessions", response_model=ExamSessionState)
async def start_exam_session(
    req: StartExamRequest,
    x_client_id: str = Header(default="default"),
):
    """Start an exam, resuming this client's unfinished one for the same level."""
    prune_sessions()
    key = _storage_key(x_client_id)

    existing_id = _client_sessions.get(key)
    existing = _sessions.get(existing_id) if existing_id else None
    if existing is not None:
        if existing.exam_level is req.exam_level and not existing.is_complete and existing.exam:
            return existing.state()
        _forget(existing)

    session = ExamSession(
        req.exam_level,
        pool=get_question_pool_provider(),
        session_store=get_session_store(),
        attempt_store=get_exam_attempt_store(),
        scheduler=get_question_scheduler(),
        storage_key=key,
    )
    await session.start()

    _sessions.add(session)
    _client_sessions[key] = session.session_id

    interval = get_settings().timer_interval_seconds
    if session.exam is not None and interval > 0:
        session.start_timer(interval)

    logger.info(
        "Exam session %s started for %s (restored=%s)",
        session.session_id,
        req.exam_level.value,
        session.restored,
    )
    return session.state()


@router.get("/sessions/{session_id}", response_model=ExamSessionState)
async def get_exam_session(session_id: str):
    return _get_session(session_id).state()


@router.post("/sessions/{session_id}/answer", response_model=ExamSessionState)
async def select_answer(session_id: str, req: ExamAnswerRequest):
    session = _get_session(session_id)
    await session.select_answer(req.answer_index)
    return session.state()


@router.post("/sessions/{session_id}/navigate", response_model=ExamSessionState)
async def navigate(session_id: str, req: NavigateRequest):
    session = _get_session(session_id)
    if req.action == "next":
        await session.next_question()
    elif req.action == "prev":
        await session.prev_question()
    else:
        if req.index is None:
            raise HTTPException(
                status_code=400,
                detail=format_error(ErrorCode.INVALID_REQUEST, "index is required for goto"),
            )
        await session.go_to_question(req.index)
    return session.state()


@router.post("/sessions/{session_id}/flag", response_model=ExamSessionState)
async def toggle_flag(session_id: str):
    session = _get_session(session_id)
    await session.toggle_flag()
    return session.state()


@router.post("/sessions/{session_id}/submit", response_model=ExamSessionState)
async def submit_exam(session_id: str):
    session = _get_session(session_id)
    await session.submit_exam()
    session.stop_timer()
    return session.state()


@router.get("/history/{level}", response_model=list[ExamAttempt])
async def exam_history(level: ExamLevel, limit: int | None = None):
    return await get_exam_attempt_store().get_exam_history(level, limit)


@router.get("/stats/{level}", response_model=ExamStats)
async def exam_stats(level: ExamLevel):
    return await get_exam_stats(get_exam_attempt_store(), level)
