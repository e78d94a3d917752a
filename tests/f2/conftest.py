"""Fixtures for service tests: temporary database and mocked LLM client."""

import json
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from gradeflow.db import classroom_repository as repo
from gradeflow.db.classroom_repository import AnswerKeyRecord
from gradeflow.db.database import init_db
from gradeflow.llm.client import LLMResponse


@pytest.fixture
def temp_db(tmp_path):
    """Fresh SQLite database for one test."""
    db_path = tmp_path / "test.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def make_response() -> Callable[[Any], LLMResponse]:
    """Build an LLMResponse from a string or a JSON-serializable object."""

    def _make(content: Any) -> LLMResponse:
        text = content if isinstance(content, str) else json.dumps(content)
        return LLMResponse(
            content=text,
            model="gpt-4o-mini",
            provider="openai",
            usage={"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
        )

    return _make


@pytest.fixture
def mock_llm_client(make_response):
    """Mock LLM client; set client.chat.return_value per test."""
    client = MagicMock()
    client.config = MagicMock()
    client.config.provider = "openai"
    client.config.model = "gpt-4o-mini"
    client.chat = AsyncMock(return_value=make_response("{}"))
    client.simple_chat = AsyncMock(return_value="")
    client.simple_json = AsyncMock(return_value={})
    client.is_available = AsyncMock(return_value=True)
    return client


@pytest.fixture
def practice_test_payload() -> dict[str, Any]:
    """Typical model output for a practice test."""
    return {
        "title": "Fractions Practice",
        "description": "Practice adding fractions",
        "questions": [
            {
                "id": "Q1",
                "type": "multiple-choice",
                "question": "What is 1/2 + 1/4?",
                "options": ["1/4", "3/4", "1/6", "2/6"],
                "correctAnswer": "3/4",
                "points": 2,
            },
            {
                "type": "short-answer",
                "question": "Explain a common denominator.",
                "correctAnswer": "A shared multiple of the denominators",
            },
        ],
    }


@pytest.fixture
def seeded_classroom(temp_db) -> dict[str, str]:
    """A class with linked skills, a subject skill, an exam and its answer key."""
    class_id = repo.insert_class("Math 5A", "Math", "5th Grade", teacher="Ms. Rivera")

    fractions = repo.insert_content_skill(
        "Adding Fractions", "Math", "5th Grade", "Add fractions with unlike denominators", "Fractions"
    )
    decimals = repo.insert_content_skill("Decimal Place Value", "Math", "5th Grade")
    repo.insert_content_skill("Unlinked Skill", "Math", "5th Grade")
    repo.link_content_skill(class_id, fractions)
    repo.link_content_skill(class_id, decimals)

    repo.insert_subject_skill("Problem Solving", "Math", "5th Grade", "Plan and carry out solutions")

    repo.insert_exam("MATH101", "Unit 1 Test", class_id=class_id, total_points=4)
    repo.insert_answer_key(
        AnswerKeyRecord(
            exam_id="MATH101",
            question_number=2,
            question_text="Round 3.456 to the nearest tenth.",
            question_type="short-answer",
            correct_answer="3.5",
            points=2,
        )
    )
    repo.insert_answer_key(
        AnswerKeyRecord(
            exam_id="MATH101",
            question_number=1,
            question_text="What is 1/3 + 1/3?",
            question_type="multiple-choice",
            correct_answer="2/3",
            points=2,
            options=["1/3", "2/3", "2/6", "1"],
        )
    )

    return {"class_id": class_id, "exam_id": "MATH101"}
