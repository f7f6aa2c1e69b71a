"""Tests for question models and the pool providers."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from errors import PoolLoadError
from models.question import ExamLevel, Question, QuestionPool, is_group_key
from services.question_pool import JsonQuestionPoolProvider, StaticQuestionPoolProvider
from tests.conftest import make_pool, make_question


def _write_pool(path, level: str, questions) -> None:
    pool = QuestionPool(
        exam_level=level,
        effective_from="2022-07-01",
        effective_to="2026-06-30",
        questions=questions,
    )
    path.write_text(json.dumps(pool.to_payload()), encoding="utf-8")


class TestQuestionModel:
    def test_group_key(self):
        assert make_question("T5", "C", 12).group_key == "T5C"

    def test_camel_case_payload(self):
        payload = make_question("T1", "A", 1, correct=2).to_payload()
        assert payload["correctAnswer"] == 2
        assert "correct_answer" not in payload

    def test_id_must_match_group(self):
        with pytest.raises(ValidationError):
            Question(
                id="T1A01",
                subelement="T2",
                group="A",
                question="?",
                answers=["a", "b", "c", "d"],
                correct_answer=0,
            )

    def test_exactly_four_answers(self):
        with pytest.raises(ValidationError):
            Question(
                id="T1A01",
                subelement="T1",
                group="A",
                question="?",
                answers=["a", "b", "c"],
                correct_answer=0,
            )

    def test_correct_answer_range(self):
        with pytest.raises(ValidationError):
            Question(
                id="T1A01",
                subelement="T1",
                group="A",
                question="?",
                answers=["a", "b", "c", "d"],
                correct_answer=4,
            )

    def test_is_group_key(self):
        assert is_group_key("G0B")
        assert not is_group_key("G0")
        assert not is_group_key("")


class TestJsonQuestionPoolProvider:
    def test_loads_and_caches(self, tmp_path):
        _write_pool(tmp_path / "technician.json", "technician", make_pool("T"))
        provider = JsonQuestionPoolProvider(tmp_path)

        questions = provider.get_question_pool(ExamLevel.TECHNICIAN)
        assert len(questions) == 105

        (tmp_path / "technician.json").unlink()
        assert len(provider.get_question_pool("technician")) == 105

    def test_clear_cache_reloads(self, tmp_path):
        _write_pool(tmp_path / "general.json", "general", make_pool("G"))
        provider = JsonQuestionPoolProvider(tmp_path)
        provider.get_question_pool(ExamLevel.GENERAL)

        _write_pool(tmp_path / "general.json", "general", make_pool("G")[:3])
        provider.clear_cache()
        assert len(provider.get_question_pool(ExamLevel.GENERAL)) == 3

    def test_missing_file(self, tmp_path):
        provider = JsonQuestionPoolProvider(tmp_path)
        with pytest.raises(PoolLoadError, match="technician"):
            provider.get_question_pool(ExamLevel.TECHNICIAN)

    def test_invalid_json(self, tmp_path):
        (tmp_path / "technician.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(PoolLoadError):
            JsonQuestionPoolProvider(tmp_path).get_question_pool(ExamLevel.TECHNICIAN)

    def test_invalid_content(self, tmp_path):
        (tmp_path / "technician.json").write_text(
            json.dumps({"examLevel": "technician", "questions": [{"id": "bogus"}]}),
            encoding="utf-8",
        )
        with pytest.raises(PoolLoadError):
            JsonQuestionPoolProvider(tmp_path).get_question_pool(ExamLevel.TECHNICIAN)

    def test_level_mismatch(self, tmp_path):
        _write_pool(tmp_path / "technician.json", "general", make_pool("G"))
        with pytest.raises(PoolLoadError, match="declares level"):
            JsonQuestionPoolProvider(tmp_path).get_question_pool(ExamLevel.TECHNICIAN)

    def test_extra_is_empty_without_file(self, tmp_path):
        assert JsonQuestionPoolProvider(tmp_path).get_question_pool(ExamLevel.EXTRA) == []

    def test_unknown_level(self, tmp_path):
        with pytest.raises(ValueError):
            JsonQuestionPoolProvider(tmp_path).get_question_pool("novice")


class TestStaticQuestionPoolProvider:
    def test_subelements(self, pool):
        assert pool.get_subelements(ExamLevel.TECHNICIAN) == [f"T{i}" for i in range(1, 8)]

    def test_get_question(self, pool):
        assert pool.get_question(ExamLevel.GENERAL, "G2C03").id == "G2C03"
        assert pool.get_question(ExamLevel.GENERAL, "T2C03") is None

    def test_returns_copy(self, pool):
        pool.get_question_pool(ExamLevel.TECHNICIAN).clear()
        assert len(pool.get_question_pool(ExamLevel.TECHNICIAN)) == 105

    def test_missing_level_is_empty(self):
        assert StaticQuestionPoolProvider().get_question_pool(ExamLevel.TECHNICIAN) == []
