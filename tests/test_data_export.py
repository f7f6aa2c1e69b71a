"""Tests for study data export and import."""

from __future__ import annotations

import json
from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest

from models.exam import ExamAttempt
from models.progress import MasteryStatus, QuestionProgress
from models.question import ExamLevel
from services.data_export import export_all_data, import_data, validate_import_data
from services.exam_storage import InMemoryExamAttemptStore
from services.progress_repository import InMemoryProgressRepository
from services.progress_store import ProgressStore


async def _seed(repository, attempt_store, progress_store):
    await repository.put(
        QuestionProgress(
            question_id="T1A01",
            attempts=2,
            correct_count=1,
            interval=6,
            status=MasteryStatus.LEARNING,
            next_review=datetime(2024, 3, 7),
            last_attempt=datetime(2024, 3, 1),
            confidence_history=[3, 4],
        )
    )
    await attempt_store.add_attempt(
        ExamAttempt(
            id="exam-1",
            exam_level=ExamLevel.TECHNICIAN,
            date=datetime(2024, 3, 1, 10, 30),
            score=80,
            passed=True,
            time_spent=1500,
        )
    )
    await progress_store.record_study_day(date(2024, 3, 1))
    await progress_store.increment_answered(True)
    await progress_store.toggle_flag_question("T5C02")


def _valid_document() -> dict:
    return {
        "version": "1.0",
        "exportedAt": "2024-03-01T12:00:00",
        "progress": {"questionProgress": [], "examAttempts": []},
        "settings": {
            "currentStreak": 0,
            "longestStreak": 0,
            "lastStudyDate": None,
            "totalQuestionsAnswered": 0,
            "totalCorrect": 0,
            "flaggedQuestions": [],
        },
    }


class TestExport:
    @pytest.mark.asyncio
    async def test_export_contents(self, repository, attempt_store, progress_store):
        await _seed(repository, attempt_store, progress_store)
        export = await export_all_data(repository, attempt_store, progress_store)
        payload = export.to_payload()

        assert payload["version"] == "1.0"
        assert payload["progress"]["questionProgress"][0]["questionId"] == "T1A01"
        assert payload["progress"]["examAttempts"][0]["timeSpent"] == 1500
        assert payload["settings"]["lastStudyDate"] == "2024-03-01"
        assert payload["settings"]["flaggedQuestions"] == ["T5C02"]

    @pytest.mark.asyncio
    async def test_export_then_import_restores_state(self, repository, attempt_store, progress_store):
        await _seed(repository, attempt_store, progress_store)
        document = json.loads(
            (await export_all_data(repository, attempt_store, progress_store)).model_dump_json(by_alias=True)
        )

        target_repo = InMemoryProgressRepository()
        target_attempts = InMemoryExamAttemptStore()
        target_store = ProgressStore()
        await target_repo.put(
            QuestionProgress(
                question_id="G2B01",
                next_review=datetime(2024, 1, 1),
                last_attempt=datetime(2024, 1, 1),
            )
        )

        result = await import_data(document, target_repo, target_attempts, target_store)
        assert result.success
        assert result.message == "Successfully imported 2 records and settings."

        assert await target_repo.get("G2B01") is None
        assert await target_repo.get("T1A01") == await repository.get("T1A01")
        assert await target_attempts.all_attempts() == await attempt_store.all_attempts()
        assert target_store.snapshot() == progress_store.snapshot()


class TestValidation:
    def test_valid_document(self):
        assert validate_import_data(_valid_document())

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda d: d.pop("version"),
            lambda d: d.update(exportedAt=12345),
            lambda d: d.update(progress=[]),
            lambda d: d["progress"].update(questionProgress={}),
            lambda d: d["progress"].pop("examAttempts"),
            lambda d: d.pop("settings"),
            lambda d: d["settings"].update(currentStreak="3"),
            lambda d: d["settings"].update(totalCorrect=True),
            lambda d: d["settings"].update(lastStudyDate=20240301),
            lambda d: d["settings"].update(flaggedQuestions="T1A01"),
        ],
    )
    def test_rejects_malformed(self, mutate):
        document = _valid_document()
        mutate(document)
        assert not validate_import_data(document)

    def test_rejects_non_object(self):
        assert not validate_import_data([])
        assert not validate_import_data(None)


class TestImport:
    @pytest.mark.asyncio
    async def test_invalid_format_leaves_data(self, repository, attempt_store, progress_store):
        await _seed(repository, attempt_store, progress_store)
        result = await import_data({"version": "1.0"}, repository, attempt_store, progress_store)
        assert not result.success
        assert result.message == "Invalid export file format."
        assert await repository.get("T1A01") is not None

    @pytest.mark.asyncio
    async def test_bad_record_rejected(self, repository, attempt_store, progress_store):
        document = _valid_document()
        document["progress"]["questionProgress"].append({"questionId": "T1A01"})
        result = await import_data(document, repository, attempt_store, progress_store)
        assert not result.success
        assert result.message.startswith("Invalid export data")

    @pytest.mark.asyncio
    async def test_storage_failure_reported(self, repository, attempt_store, progress_store):
        repository.clear = AsyncMock(side_effect=RuntimeError("redis down"))
        result = await import_data(_valid_document(), repository, attempt_store, progress_store)
        assert not result.success
        assert result.message == "redis down"
