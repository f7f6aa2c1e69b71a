"""Tests for the Pydantic models — camelCase serialization, validation."""

import pytest
from pydantic import ValidationError

from models.exam import ExamAttempt
from models.progress import QuestionProgress
from models.question import ExamLevel, Question, QuestionPool, is_group_key
from models.session import SessionConfig
from tests.conftest import make_question


def test_question_group_key():
    question = make_question("T0", "C", 11)
    assert question.group_key == "T0C"


def test_question_payload_is_camel_case():
    payload = make_question("T1", "A", 1, correct=2).to_payload()
    assert payload["correctAnswer"] == 2
    assert "correct_answer" not in payload
    assert payload["figure"] is None


def test_question_accepts_camel_case_input():
    question = Question.model_validate(
        {
            "id": "G2B07",
            "subelement": "G2",
            "group": "B",
            "question": "Which?",
            "answers": ["a", "b", "c", "d"],
            "correctAnswer": 3,
            "refs": "[97.301(d)]",
        }
    )
    assert question.correct_answer == 3


def test_question_is_immutable():
    question = make_question("T1", "A", 1)
    with pytest.raises(ValidationError):
        question.correct_answer = 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"id": "T1A1"},
        {"id": "T1B01"},
        {"subelement": "T2"},
        {"answers": ["a", "b", "c"]},
        {"correct_answer": 4},
    ],
)
def test_question_validation(overrides):
    fields = make_question("T1", "A", 1).model_dump()
    fields.update(overrides)
    with pytest.raises(ValidationError):
        Question(**fields)


def test_question_pool_from_file_format():
    pool = QuestionPool.model_validate(
        {
            "examLevel": "technician",
            "effectiveFrom": "2022-07-01",
            "effectiveTo": "2026-06-30",
            "questions": [make_question("T1", "A", 1).to_payload()],
        }
    )
    assert pool.exam_level is ExamLevel.TECHNICIAN
    assert pool.questions[0].id == "T1A01"


@pytest.mark.parametrize(
    "value, expected",
    [("T1A", True), ("G0E", True), ("T1", False), ("t1a", False), ("T1A01", False), ("", False)],
)
def test_is_group_key(value, expected):
    assert is_group_key(value) is expected


def test_progress_accuracy():
    progress = QuestionProgress(
        question_id="T1A01",
        attempts=4,
        correct_count=3,
        next_review="2024-03-02T00:00:00",
        last_attempt="2024-03-01T12:00:00",
    )
    assert progress.accuracy == 0.75
    assert progress.to_payload()["nextReview"] == "2024-03-02T00:00:00"


def test_attempt_round_trips_through_json():
    attempt = ExamAttempt(
        id="exam-1",
        exam_level=ExamLevel.GENERAL,
        date="2024-03-01T10:00:00",
        score=74,
        passed=True,
        time_spent=1800,
    )
    assert ExamAttempt.model_validate_json(attempt.model_dump_json(by_alias=True)) == attempt


def test_session_config_defaults():
    config = SessionConfig.model_validate({"examLevel": "general"})
    assert config.question_count == 10
    assert config.subelements == []
    assert config.flagged_only is False
    assert config.show_explanations is True

    with pytest.raises(ValidationError):
        SessionConfig(exam_level="general", question_count=-1)
