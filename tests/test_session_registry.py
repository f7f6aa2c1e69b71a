"""Tests for the live session registry."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from unittest.mock import patch

import pytest

from services.session_registry import SessionRegistry, periodic_prune


@dataclass
class _Session:
    session_id: str
    is_complete: bool = False


def _age(registry: SessionRegistry, session_id: str, seconds: int) -> None:
    touched_at, session = registry._entries[session_id]
    registry._entries[session_id] = (touched_at - seconds, session)


class TestSessionRegistry:
    def test_add_and_get(self):
        registry = SessionRegistry(ttl_seconds=600, completed_ttl_seconds=60)
        session = _Session("a")
        registry.add(session)
        assert registry.get("a") is session
        assert registry.get("b") is None
        assert "a" in registry
        assert len(registry) == 1

    def test_idle_session_expires(self):
        registry = SessionRegistry(ttl_seconds=600, completed_ttl_seconds=60)
        registry.add(_Session("idle"))
        registry.add(_Session("busy"))
        _age(registry, "idle", 900)

        removed = registry.cleanup_expired()
        assert [s.session_id for s in removed] == ["idle"]
        assert "busy" in registry

    def test_finished_session_uses_shorter_ttl(self):
        registry = SessionRegistry(ttl_seconds=600, completed_ttl_seconds=60)
        registry.add(_Session("done", is_complete=True))
        registry.add(_Session("open"))
        _age(registry, "done", 120)
        _age(registry, "open", 120)

        assert [s.session_id for s in registry.cleanup_expired()] == ["done"]
        assert len(registry) == 1

    def test_get_refreshes_activity(self):
        registry = SessionRegistry(ttl_seconds=600, completed_ttl_seconds=60)
        registry.add(_Session("a"))
        _age(registry, "a", 900)
        registry.get("a")
        assert registry.cleanup_expired() == []

    def test_pop_and_clear(self):
        registry = SessionRegistry(ttl_seconds=600, completed_ttl_seconds=60)
        registry.add(_Session("a"))
        registry.add(_Session("b"))
        assert registry.pop("a").session_id == "a"
        assert registry.pop("a") is None
        registry.clear()
        assert registry.values() == []


class TestPeriodicPrune:
    @pytest.mark.asyncio
    async def test_runs_each_prune_and_survives_failures(self):
        calls = []

        def broken() -> int:
            calls.append("broken")
            raise RuntimeError("boom")

        def working() -> int:
            calls.append("working")
            return 2

        sleeps = 0

        async def fake_sleep(_seconds):
            nonlocal sleeps
            sleeps += 1
            if sleeps > 2:
                raise asyncio.CancelledError

        with patch("services.session_registry.asyncio.sleep", fake_sleep):
            with pytest.raises(asyncio.CancelledError):
                await periodic_prune(broken, working, interval_seconds=1)

        assert calls == ["broken", "working", "broken", "working"]
