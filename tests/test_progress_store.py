"""Tests for the study streak / counters store."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock

import pytest

from models.progress import ProgressSnapshot
from services.progress_store import (
    PROGRESS_STORAGE_KEY,
    InMemoryProgressStateBackend,
    ProgressStore,
    RedisProgressStateBackend,
)


class TestStreaks:
    @pytest.mark.asyncio
    async def test_first_day(self):
        store = ProgressStore()
        await store.record_study_day(date(2024, 5, 1))
        assert store.current_streak == 1
        assert store.longest_streak == 1
        assert store.last_study_date == "2024-05-01"

    @pytest.mark.asyncio
    async def test_same_day_is_noop(self):
        store = ProgressStore()
        await store.record_study_day(date(2024, 5, 1))
        await store.record_study_day(date(2024, 5, 1))
        assert store.current_streak == 1

    @pytest.mark.asyncio
    async def test_consecutive_days_extend(self):
        store = ProgressStore()
        for day in (1, 2, 3):
            await store.record_study_day(date(2024, 5, day))
        assert store.current_streak == 3
        assert store.longest_streak == 3

    @pytest.mark.asyncio
    async def test_gap_resets_but_keeps_longest(self):
        store = ProgressStore()
        for day in (1, 2, 3):
            await store.record_study_day(date(2024, 5, day))
        await store.record_study_day(date(2024, 5, 5))
        assert store.current_streak == 1
        assert store.longest_streak == 3

    @pytest.mark.asyncio
    async def test_month_boundary(self):
        store = ProgressStore()
        await store.record_study_day(date(2024, 2, 29))
        await store.record_study_day(date(2024, 3, 1))
        assert store.current_streak == 2


class TestCounters:
    @pytest.mark.asyncio
    async def test_increment(self):
        store = ProgressStore()
        await store.increment_answered(True)
        await store.increment_answered(False)
        await store.increment_answered(True)
        assert store.total_questions_answered == 3
        assert store.total_correct == 2

    @pytest.mark.asyncio
    async def test_flags(self):
        store = ProgressStore()
        assert await store.toggle_flag_question("T1A01") is True
        assert store.is_flagged("T1A01")
        assert await store.toggle_flag_question("T1A01") is False
        assert not store.is_flagged("T1A01")

    @pytest.mark.asyncio
    async def test_reset(self):
        store = ProgressStore()
        await store.record_study_day(date(2024, 5, 1))
        await store.increment_answered(True)
        await store.toggle_flag_question("T1A01")
        await store.reset_progress()
        assert store.current_streak == 0
        assert store.longest_streak == 0
        assert store.last_study_date is None
        assert store.total_questions_answered == 0
        assert store.is_flagged("T1A01")


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_restore(self):
        store = ProgressStore()
        await store.record_study_day(date(2024, 5, 1))
        await store.increment_answered(True)
        await store.toggle_flag_question("T2B03")
        await store.toggle_flag_question("T1A01")

        snapshot = store.snapshot()
        assert snapshot.flagged_questions == ["T1A01", "T2B03"]

        restored = ProgressStore()
        await restored.restore(snapshot)
        assert restored.snapshot() == snapshot

    def test_snapshot_payload_is_camel_case(self):
        payload = ProgressSnapshot(current_streak=2).to_payload()
        assert payload["currentStreak"] == 2
        assert payload["lastStudyDate"] is None


class TestPersistence:
    @pytest.mark.asyncio
    async def test_counters_survive_restart(self):
        backend = InMemoryProgressStateBackend()
        store = ProgressStore(backend)
        await store.record_study_day(date(2024, 5, 1))
        await store.increment_answered(True)
        await store.increment_answered(False)
        await store.toggle_flag_question("T3A02")

        reopened = ProgressStore(backend)
        assert await reopened.load() is True
        assert reopened.snapshot() == store.snapshot()
        assert reopened.is_flagged("T3A02")

    @pytest.mark.asyncio
    async def test_reset_is_saved(self):
        backend = InMemoryProgressStateBackend()
        store = ProgressStore(backend)
        await store.increment_answered(True)
        await store.toggle_flag_question("T1A01")
        await store.reset_progress()

        saved = await backend.load()
        assert saved.total_questions_answered == 0
        assert saved.flagged_questions == ["T1A01"]

    @pytest.mark.asyncio
    async def test_first_change_builds_on_saved_state(self):
        backend = InMemoryProgressStateBackend()
        await backend.save(ProgressSnapshot(total_questions_answered=7, total_correct=5))

        store = ProgressStore(backend)
        await store.increment_answered(True)
        assert store.total_questions_answered == 8
        assert (await backend.load()).total_correct == 6

    @pytest.mark.asyncio
    async def test_empty_backend_loads_nothing(self):
        store = ProgressStore()
        assert await store.load() is False
        assert store.snapshot() == ProgressSnapshot()

    @pytest.mark.asyncio
    async def test_save_failure_keeps_counters(self):
        backend = InMemoryProgressStateBackend()
        backend.save = AsyncMock(side_effect=RuntimeError("redis down"))
        store = ProgressStore(backend)

        await store.increment_answered(True)
        assert store.total_questions_answered == 1
        backend.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreadable_state_is_not_overwritten(self):
        backend = InMemoryProgressStateBackend()
        backend.load = AsyncMock(side_effect=RuntimeError("redis down"))
        backend.save = AsyncMock()
        store = ProgressStore(backend)

        await store.toggle_flag_question("T1A01")
        assert store.is_flagged("T1A01")
        backend.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_restore_failure_raises(self):
        backend = InMemoryProgressStateBackend()
        backend.save = AsyncMock(side_effect=RuntimeError("redis down"))
        store = ProgressStore(backend)
        with pytest.raises(RuntimeError):
            await store.restore(ProgressSnapshot(current_streak=3))


class TestRedisBackend:
    @pytest.fixture
    def backend(self):
        backend = RedisProgressStateBackend("redis://localhost:6379/0")
        backend._redis = AsyncMock()
        return backend

    @pytest.mark.asyncio
    async def test_save_writes_single_key(self, backend):
        await backend.save(ProgressSnapshot(current_streak=4, flagged_questions=["T1A01"]))

        args, _ = backend._redis.set.call_args
        assert args[0] == PROGRESS_STORAGE_KEY == "hamforge-progress"
        data = json.loads(args[1])
        assert data["currentStreak"] == 4
        assert data["flaggedQuestions"] == ["T1A01"]

    @pytest.mark.asyncio
    async def test_load_round_trip(self, backend):
        snapshot = ProgressSnapshot(longest_streak=9, last_study_date="2024-05-01")
        backend._redis.get.return_value = snapshot.model_dump_json(by_alias=True)
        assert await backend.load() == snapshot

    @pytest.mark.asyncio
    async def test_unreadable_value_is_ignored(self, backend):
        backend._redis.get.return_value = '{"currentStreak": "many"}'
        assert await backend.load() is None
        backend._redis.get.return_value = None
        assert await backend.load() is None
