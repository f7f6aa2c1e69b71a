"""Live session controllers held by this worker.

Each entry remembers when it was last touched.  An unfinished session is
dropped after ``ttl_seconds`` of inactivity, a finished one after the
shorter ``completed_ttl_seconds`` so its final state can still be read.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)


class LiveSession(Protocol):
    session_id: str
    is_complete: bool


S = TypeVar("S", bound=LiveSession)


class SessionRegistry(Generic[S]):
    def __init__(self, ttl_seconds: int, completed_ttl_seconds: int):
        self._entries: dict[str, tuple[float, S]] = {}
        self._ttl = ttl_seconds
        self._completed_ttl = completed_ttl_seconds

    def _is_expired(self, touched_at: float, session: S) -> bool:
        ttl = self._completed_ttl if session.is_complete else self._ttl
        return (time.time() - touched_at) > ttl

    def add(self, session: S) -> None:
        self._entries[session.session_id] = (time.time(), session)

    def get(self, session_id: str) -> S | None:
        """Return the session and mark it as used."""
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        session = entry[1]
        self._entries[session_id] = (time.time(), session)
        return session

    def pop(self, session_id: str) -> S | None:
        entry = self._entries.pop(session_id, None)
        return entry[1] if entry else None

    def values(self) -> list[S]:
        return [session for _, session in self._entries.values()]

    def clear(self) -> None:
        self._entries.clear()

    def cleanup_expired(self) -> list[S]:
        """Remove idle and long-finished sessions.  Returns the removed ones."""
        expired = [
            sid for sid, (touched_at, session) in self._entries.items()
            if self._is_expired(touched_at, session)
        ]
        return [self._entries.pop(sid)[1] for sid in expired]

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# ── Background Sweep Task ────────────────────────────────────


async def periodic_prune(*prune: Callable[[], int], interval_seconds: int = 300) -> None:
    """Background task that runs each *prune* callable on an interval.

    Started as an ``asyncio.Task`` in the FastAPI lifespan.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        for fn in prune:
            try:
                removed = fn()
            except Exception:
                logger.exception("Live session sweep failed")
                continue
            if removed:
                logger.info("Dropped %d idle live sessions", removed)
