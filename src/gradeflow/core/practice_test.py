"""Practice test generation.

Responsibilities:
- Build a skill-focused practice test prompt for a student
- Add up to three historical answer-key questions from the class as style examples
- Spread questions over several skills using the rebalanced skill distribution
- Call the LLM (with retry), extract JSON and validate the questions
- Generate tests for several weak skills one after another

Output structure (JSON, camelCase as consumed by clients):
    {title, description, questions[{id, type, question, options?,
     correctAnswer, points}], totalPoints, estimatedTime, skillName}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from gradeflow.core.json_extraction import (
    JSONExtractionError,
    coerce_int,
    extract_json_object,
)
from gradeflow.core.skill_distribution import (
    DistributionResult,
    SkillRequest,
    rebalance_distribution,
)
from gradeflow.db import classroom_repository as repo
from gradeflow.db.classroom_repository import HistoricalQuestion
from gradeflow.llm.client import LLMClient, Message

logger = structlog.get_logger(__name__)

# =============================================================================
# TYPES
# =============================================================================

QuestionType = Literal["multiple-choice", "true-false", "short-answer", "essay"]
TestStatus = Literal["pending", "generating", "completed", "error", "recovered"]

QUESTION_TYPES = ("multiple-choice", "true-false", "short-answer", "essay")

HISTORICAL_LOOKUP_LIMIT = 10
HISTORICAL_PROMPT_EXAMPLES = 3
MINUTES_PER_QUESTION = 3
MIN_ESTIMATED_MINUTES = 10

# =============================================================================
# PROMPTS
# =============================================================================

SYSTEM_PROMPT_PRACTICE_TEST = (
    "You are an expert educational content creator. Generate high-quality practice "
    "tests that are engaging, educational, and appropriately challenging for the "
    "student's level."
)

USER_PROMPT_PRACTICE_TEST = """Create a targeted practice test for a {grade} {subject} student named {student_name}.

SKILL FOCUS: {skill_name}
CLASS: {class_name}
NUMBER OF QUESTIONS: {question_count}
{historical_context}{distribution_context}
REQUIREMENTS:
1. All questions must directly test the skill: "{skill_name}"
2. Questions should be appropriate for {grade} level
3. Include a mix of question types (multiple-choice, short-answer, true-false)
4. Each question should have clear, educational value
5. Provide detailed but concise correct answers
6. Points should reflect question difficulty (1-3 points each)

RESPONSE FORMAT - Return valid JSON only:
{{
  "title": "Practice Test Title",
  "description": "Brief description focusing on {skill_name}",
  "questions": [
    {{
      "id": "Q1",
      "type": "multiple-choice" | "short-answer" | "true-false",
      "question": "Question text here",
      "options": ["A", "B", "C", "D"] (only for multiple-choice),
      "correctAnswer": "Correct answer",
      "acceptableAnswers": ["Alternative correct answers"],
      "keywords": ["key", "concepts"],
      "targetSkill": "Skill this question tests",
      "points": 1-3
    }}
  ],
  "totalPoints": sum of all question points,
  "estimatedTime": estimated completion time in minutes
}}

Generate exactly {question_count} questions focused on "{skill_name}"."""


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class PracticeTestRequest:
    """Parameters for one practice test."""

    student_name: str
    class_name: str
    skill_name: str
    grade: str
    subject: str
    question_count: int = 5
    class_id: str | None = None
    skill_distribution: list[SkillRequest] | None = None


@dataclass
class PracticeQuestion:
    """A single practice question."""

    id: str
    type: str
    question: str
    correct_answer: str
    points: int = 1
    options: list[str] | None = None
    acceptable_answers: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    target_skill: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "question": self.question,
            "correctAnswer": self.correct_answer,
            "points": self.points,
        }
        if self.options is not None:
            result["options"] = self.options
        if self.acceptable_answers:
            result["acceptableAnswers"] = self.acceptable_answers
        if self.keywords:
            result["keywords"] = self.keywords
        if self.target_skill:
            result["targetSkill"] = self.target_skill
        return result


@dataclass
class PracticeTest:
    """A generated (or fallback) practice test."""

    title: str
    description: str
    questions: list[PracticeQuestion]
    total_points: int
    estimated_time: int
    skill_name: str
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "description": self.description,
            "questions": [q.to_dict() for q in self.questions],
            "totalPoints": self.total_points,
            "estimatedTime": self.estimated_time,
            "skillName": self.skill_name,
            "isFallback": self.is_fallback,
        }


@dataclass
class MultiPracticeTestResult:
    """Per-skill outcome when generating several practice tests."""

    skill_name: str
    skill_score: float
    status: TestStatus = "pending"
    test: PracticeTest | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "skillName": self.skill_name,
            "skillScore": self.skill_score,
            "status": self.status,
            "testData": self.test.to_dict() if self.test else None,
            "error": self.error,
        }


class PracticeTestError(Exception):
    """Error during practice test generation."""

    pass


# =============================================================================
# HELPERS
# =============================================================================


def build_historical_context(questions: list[HistoricalQuestion]) -> str:
    """Prompt block listing earlier exam questions as style examples."""
    if not questions:
        return ""

    examples = "\n".join(
        f"Example {i}: {q.question_text} ({q.question_type}, {q.points:g} points)"
        for i, q in enumerate(questions[:HISTORICAL_PROMPT_EXAMPLES], 1)
    )
    return (
        "\nHere are some example questions from previous exams in this class for context:\n"
        f"{examples}\n\n"
        "Use these examples to understand the style and difficulty level expected, "
        "but create completely new questions.\n"
    )


def build_distribution_context(distribution: DistributionResult | None) -> str:
    """Prompt block telling the model how many questions each skill gets."""
    if distribution is None:
        return ""

    lines = "\n".join(
        f"- {a.skill_name}: {a.questions} question{'s' if a.questions != 1 else ''} "
        f"(current score {a.score:g}%)"
        for a in distribution.allocations
    )
    return (
        "\nSKILL DISTRIBUTION (follow exactly, set targetSkill on every question):\n"
        f"{lines}\n"
    )


def build_practice_test_prompt(
    request: PracticeTestRequest,
    historical: list[HistoricalQuestion] | None = None,
    distribution: DistributionResult | None = None,
) -> str:
    """Render the user prompt for a practice test."""
    return USER_PROMPT_PRACTICE_TEST.format(
        grade=request.grade,
        subject=request.subject,
        student_name=request.student_name,
        skill_name=request.skill_name,
        class_name=request.class_name,
        question_count=request.question_count,
        historical_context=build_historical_context(historical or []),
        distribution_context=build_distribution_context(distribution),
    )


def _as_int_points(value: Any) -> int:
    points = coerce_int(value, 1)
    return points if points > 0 else 1


def parse_practice_test(raw: dict[str, Any], skill_name: str) -> PracticeTest:
    """Validate model output and fill defaults.

    Args:
        raw: Parsed JSON object from the model
        skill_name: Skill the test was requested for

    Returns:
        PracticeTest with ids, points, totals and time filled in

    Raises:
        PracticeTestError: If the questions array is missing, empty or
            a question lacks question/correctAnswer/type
    """
    raw_questions = raw.get("questions")
    if not isinstance(raw_questions, list):
        raise PracticeTestError("Invalid practice test format: missing questions array")
    if not raw_questions:
        raise PracticeTestError("No questions generated in practice test")

    questions = []
    for i, q in enumerate(raw_questions, 1):
        if not isinstance(q, dict) or not q.get("question") or not q.get("correctAnswer") or not q.get("type"):
            raise PracticeTestError(f"Question {i} is missing required fields")

        options = q.get("options")
        questions.append(
            PracticeQuestion(
                id=str(q.get("id") or f"Q{i}"),
                type=str(q["type"]),
                question=str(q["question"]),
                correct_answer=str(q["correctAnswer"]),
                points=_as_int_points(q.get("points")),
                options=[str(o) for o in options] if isinstance(options, list) else None,
                acceptable_answers=[str(a) for a in q.get("acceptableAnswers") or []],
                keywords=[str(k) for k in q.get("keywords") or []],
                target_skill=q.get("targetSkill"),
            )
        )

    # "15 minutes" reads as 15; unreadable or non-positive values use the computed default
    total_points = coerce_int(raw.get("totalPoints"))
    if total_points <= 0:
        total_points = sum(q.points for q in questions)
    estimated_time = coerce_int(raw.get("estimatedTime"))
    if estimated_time <= 0:
        estimated_time = max(MIN_ESTIMATED_MINUTES, len(questions) * MINUTES_PER_QUESTION)

    return PracticeTest(
        title=str(raw.get("title") or f"Practice Test - {skill_name}"),
        description=str(raw.get("description") or ""),
        questions=questions,
        total_points=total_points,
        estimated_time=estimated_time,
        skill_name=skill_name,
    )


def resolve_distribution(request: PracticeTestRequest) -> DistributionResult | None:
    """Rebalance the requested distribution against the class's known skills."""
    if not request.skill_distribution:
        return None

    known = repo.list_known_skill_names(request.class_id) if request.class_id else None
    return rebalance_distribution(
        request.skill_distribution,
        request.question_count,
        known_skills=known or None,
    )


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


async def generate_practice_test(
    request: PracticeTestRequest,
    client: LLMClient,
) -> PracticeTest:
    """Generate a practice test for one skill (or a skill distribution).

    Args:
        request: Student, class and skill parameters
        client: LLM client

    Returns:
        Validated PracticeTest

    Raises:
        LLMError: If the LLM call fails after retries
        PracticeTestError: If the output has no valid JSON or invalid questions
    """
    logger.info(
        "practice_test_requested",
        skill=request.skill_name,
        grade=request.grade,
        subject=request.subject,
        question_count=request.question_count,
        class_id=request.class_id,
    )

    historical: list[HistoricalQuestion] = []
    if request.class_id:
        historical = repo.get_historical_questions(
            request.class_id, limit=HISTORICAL_LOOKUP_LIMIT
        )

    distribution = resolve_distribution(request)
    prompt = build_practice_test_prompt(request, historical, distribution)

    response = await client.chat(
        [
            Message(role="system", content=SYSTEM_PROMPT_PRACTICE_TEST),
            Message(role="user", content=prompt),
        ],
        temperature=0.7,
        max_tokens=2000,
    )

    try:
        raw = extract_json_object(response.content)
    except JSONExtractionError as e:
        raise PracticeTestError(f"Could not extract valid JSON from OpenAI response: {e}") from e

    test = parse_practice_test(raw, request.skill_name)

    logger.info(
        "practice_test_generated",
        skill=request.skill_name,
        questions=len(test.questions),
        total_points=test.total_points,
        historical_examples=min(len(historical), HISTORICAL_PROMPT_EXAMPLES),
    )
    return test


async def generate_multiple_practice_tests(
    skills: list[tuple[str, float]],
    base_request: PracticeTestRequest,
    client: LLMClient,
    recover: bool = True,
) -> list[MultiPracticeTestResult]:
    """Generate one practice test per skill, sequentially.

    A failure for one skill is recorded on its result and does not stop the
    others.

    Args:
        skills: (skill_name, score) pairs
        base_request: Shared request fields; skill_name is replaced per skill
        client: LLM client
        recover: Replace failed tests with fallback content (status "recovered")

    Returns:
        One MultiPracticeTestResult per skill, in input order
    """
    from gradeflow.core.errors import FallbackContext, build_fallback_practice_test

    results = [MultiPracticeTestResult(skill_name=name, skill_score=score) for name, score in skills]

    for result in results:
        result.status = "generating"
        request = PracticeTestRequest(
            student_name=base_request.student_name,
            class_name=base_request.class_name,
            skill_name=result.skill_name,
            grade=base_request.grade,
            subject=base_request.subject,
            question_count=base_request.question_count,
            class_id=base_request.class_id,
        )
        try:
            result.test = await generate_practice_test(request, client)
            result.status = "completed"
        except Exception as e:
            logger.error("practice_test_failed", skill=result.skill_name, error=str(e))
            result.status = "error"
            result.error = str(e)

            if recover:
                context = FallbackContext(
                    skill_name=result.skill_name,
                    student_name=request.student_name,
                    class_name=request.class_name,
                )
                result.test = build_fallback_practice_test(e, context)
                result.status = "recovered"

    logger.info(
        "practice_tests_batch_finished",
        total=len(results),
        completed=sum(1 for r in results if r.status == "completed"),
        recovered=sum(1 for r in results if r.status == "recovered"),
        failed=sum(1 for r in results if r.status == "error"),
    )
    return results
