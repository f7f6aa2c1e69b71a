"""Practice API — untimed drills over filtered questions.

Sessions live in this worker only and are pruned once idle past
``session_ttl`` or finished past ``completed_session_ttl``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from config.settings import get_settings
from errors import SessionNotFoundError
from models.request import PracticeAnswerRequest
from models.session import PracticeSessionState, SessionConfig
from services.practice_session import PracticeSession
from services.progress_store import get_progress_store
from services.question_scheduler import get_question_scheduler
from services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/practice", tags=["practice"])

_sessions: SessionRegistry[PracticeSession] = SessionRegistry(
    get_settings().session_ttl, get_settings().completed_session_ttl
)


def _get_session(session_id: str) -> PracticeSession:
    session = _sessions.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id, "practice session")
    return session


def prune_sessions() -> int:
    return len(_sessions.cleanup_expired())


@router.post("/sessions", response_model=PracticeSessionState)
async def start_practice_session(config: SessionConfig):
    prune_sessions()
    session = PracticeSession(
        config,
        scheduler=get_question_scheduler(),
        progress_store=get_progress_store(),
    )
    await session.load()
    _sessions.add(session)
    return session.state()


@router.get("/sessions/{session_id}", response_model=PracticeSessionState)
async def get_practice_session(session_id: str):
    return _get_session(session_id).state()


@router.post("/sessions/{session_id}/answer", response_model=PracticeSessionState)
async def submit_answer(session_id: str, req: PracticeAnswerRequest):
    session = _get_session(session_id)
    await session.submit_answer(req.selected_index, req.correct, req.confidence)
    return session.state()


@router.post("/sessions/{session_id}/next", response_model=PracticeSessionState)
async def next_question(session_id: str):
    session = _get_session(session_id)
    session.next_question()
    if session.is_complete:
        logger.info("Practice session %s complete: %s", session_id, session.stats.model_dump())
    return session.state()
