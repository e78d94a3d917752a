"""LLM grading of open-ended questions the answer-key matcher cannot score.

Single questions go through simple_json with a plain-text fallback. Batches
are sent in one request with each question fenced by QUESTION_DELIMITER so
answers do not leak between questions; when the reply is not JSON the
blocks are read back one by one.

Model values are never trusted as-is: points are clamped to the question's
points, confidences and complexity to [0, 1], reasoning depth to a known
level.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import structlog

from gradeflow.core.json_extraction import (
    JSONExtractionError,
    coerce_int,
    coerce_number,
    extract_json,
    extract_json_object,
)
from gradeflow.llm.client import LLMClient, LLMError, LLMResponseError, Message

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

QUESTION_DELIMITER = "---END QUESTION---"

REASONING_DEPTHS = ("shallow", "medium", "deep")

SYSTEM_PROMPT_GRADE = (
    "You are an expert educational grading assistant. "
    "Always respond with valid JSON matching the requested format."
)

SYSTEM_PROMPT_GRADE_TEXT = (
    "You are an expert educational grading assistant. "
    "Reply with a single JSON object and nothing else."
)

SYSTEM_PROMPT_BATCH = (
    "You are an expert educational grading assistant. Process each question independently "
    "and avoid cross-question contamination. Always respond with valid JSON matching the "
    "requested format."
)

_POINTS_IN_TEXT = re.compile(r"points?[:\s]*(\d+(?:\.\d+)?)", re.IGNORECASE)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class ComplexQuestion:
    """Open-ended question with the student's answer."""

    question_text: str
    student_answer: str
    correct_answer: str
    points_possible: float = 1
    question_number: int | None = None
    student_name: str = ""
    skill_context: str = ""


@dataclass
class ComplexGrade:
    """Sanitized grade for one question."""

    question_number: int | None
    is_correct: bool
    points_earned: float
    confidence: float
    reasoning: str
    complexity_score: float = 0.5
    reasoning_depth: str = "medium"
    matched_skills: list[str] | None = None
    skill_confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "questionNumber": self.question_number,
            "isCorrect": self.is_correct,
            "pointsEarned": self.points_earned,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "complexityScore": self.complexity_score,
            "reasoningDepth": self.reasoning_depth,
        }
        if self.matched_skills is not None:
            data["matchedSkills"] = self.matched_skills
        if self.skill_confidence is not None:
            data["skillConfidence"] = self.skill_confidence
        return data


@dataclass
class BatchGradeResult:
    """Outcome of grading several questions in one request."""

    success: bool
    results: list[ComplexGrade]
    fallback_used: bool = False
    error: str | None = None
    usage: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
            "batchSize": len(self.results),
            "fallbackUsed": self.fallback_used,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.usage:
            data["usage"] = self.usage
        return data


# =============================================================================
# SANITIZING
# =============================================================================


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    return max(low, min(high, coerce_number(value, default)))


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "correct", "1")
    return bool(value)


def sanitize_grade(
    data: dict[str, Any],
    points_possible: float,
    question_number: int | None = None,
    with_skills: bool = False,
) -> ComplexGrade:
    """Turn a model grade into a ComplexGrade within valid ranges."""
    depth = data.get("reasoningDepth")
    grade = ComplexGrade(
        question_number=coerce_int(data.get("questionNumber")) or question_number,
        is_correct=_as_bool(data.get("isCorrect")),
        points_earned=_clamp(data.get("pointsEarned"), 0, points_possible, 0),
        confidence=_clamp(data.get("confidence"), 0, 1, 0.5),
        reasoning=str(data.get("reasoning") or "Grading completed"),
        complexity_score=_clamp(data.get("complexityScore"), 0, 1, 0.5),
        reasoning_depth=depth if depth in REASONING_DEPTHS else "medium",
    )
    if with_skills:
        skills = data.get("matchedSkills")
        grade.matched_skills = [str(s) for s in skills] if isinstance(skills, list) else []
        grade.skill_confidence = _clamp(data.get("skillConfidence"), 0, 1, 0.7)
    return grade


def fallback_grade(question_number: int | None, reason: str) -> ComplexGrade:
    """Zero-point grade flagged for manual review."""
    return ComplexGrade(
        question_number=question_number,
        is_correct=False,
        points_earned=0,
        confidence=0.3,
        reasoning=f"{reason}. Manual review required.",
        matched_skills=[],
        skill_confidence=0.3,
    )


# =============================================================================
# PROMPTS
# =============================================================================


def build_single_prompt(question: ComplexQuestion) -> str:
    skills = f"\nSkills Assessed: {question.skill_context}" if question.skill_context else ""
    return f"""Grade this student's answer to an open-ended question.

Question: {question.question_text}
Student Answer: "{question.student_answer}"
Correct Answer: "{question.correct_answer}"
Points Possible: {question.points_possible:g}{skills}

Award partial credit for partially correct reasoning. Judge the depth of the
student's reasoning as shallow, medium or deep.

Respond with JSON:
{{
  "isCorrect": true,
  "pointsEarned": {question.points_possible:g},
  "confidence": 0.9,
  "reasoning": "why the answer earns these points",
  "complexityScore": 0.6,
  "reasoningDepth": "medium"
}}"""


def build_batch_prompt(questions: list[ComplexQuestion], rubric: str | None = None) -> str:
    blocks = []
    for index, q in enumerate(questions, start=1):
        skills = f"\nAvailable Skills: {q.skill_context}" if q.skill_context else ""
        blocks.append(
            f"Question {index} (Q{q.question_number or index}):\n"
            f"Question Text: {q.question_text or 'Question text not available'}\n"
            f'Student Answer: "{q.student_answer or "No answer detected"}"\n'
            f'Correct Answer: "{q.correct_answer or "Not specified"}"\n'
            f"Points Possible: {q.points_possible:g}{skills}\n"
            "Instructions: Match the answer strictly to the provided skills. "
            "Do not infer additional skills."
        )
    rubric_text = f"GRADING RUBRIC:\n{rubric}\n\n" if rubric else ""
    questions_text = f"\n{QUESTION_DELIMITER}\n".join(blocks)
    return f"""Grade {len(questions)} test questions. Process each question INDEPENDENTLY.

RULES:
1. Each question is separated by "{QUESTION_DELIMITER}"
2. Do NOT let answers from one question influence another
3. Match skills ONLY from the list given for that question

{rubric_text}QUESTIONS TO GRADE:
{questions_text}

Respond with a JSON object:
{{
  "results": [
    {{
      "questionNumber": 1,
      "isCorrect": true,
      "pointsEarned": 2,
      "confidence": 0.95,
      "reasoning": "explanation for this question only",
      "complexityScore": 0.6,
      "reasoningDepth": "medium",
      "matchedSkills": ["skill1"],
      "skillConfidence": 0.9
    }}
  ]
}}

Return exactly {len(questions)} results."""


# =============================================================================
# BATCH PARSING
# =============================================================================


def parse_with_delimiters(content: str, expected_count: int) -> list[dict[str, Any]]:
    """Read per-question verdicts from a non-JSON reply split on QUESTION_DELIMITER."""
    results = []
    for index, block in enumerate(content.split(QUESTION_DELIMITER)[:expected_count]):
        block = block.strip()
        lowered = block.lower()
        points = _POINTS_IN_TEXT.search(block)
        results.append(
            {
                "questionNumber": index + 1,
                "isCorrect": "correct" in lowered and "incorrect" not in lowered,
                "pointsEarned": float(points.group(1)) if points else 0,
                "confidence": 0.7,
                "reasoning": f"Delimiter-based parsing: {block[:100]}...",
                "matchedSkills": [],
                "skillConfidence": 0.5,
            }
        )
    return results


def parse_batch_results(content: str, expected_count: int) -> list[dict[str, Any]]:
    """Per-question result dicts from a batch reply.

    Raises:
        ValueError: If the reply is JSON of an unexpected shape
    """
    try:
        parsed = extract_json(content)
    except JSONExtractionError:
        logger.warning("batch_grading_not_json", chars=len(content or ""))
        return parse_with_delimiters(content or "", expected_count)

    if isinstance(parsed, dict):
        parsed = parsed.get("results")
    if not isinstance(parsed, list):
        raise ValueError("Invalid batch results format from LLM")
    return [r for r in parsed if isinstance(r, dict)]


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


async def grade_complex_question(question: ComplexQuestion, client: LLMClient) -> ComplexGrade:
    """Grade one open-ended answer.

    Raises:
        JSONExtractionError: If neither JSON nor plain-text reply can be read
        LLMError: If the LLM call fails after retries
    """
    prompt = build_single_prompt(question)

    try:
        data = await client.simple_json(
            system_prompt=SYSTEM_PROMPT_GRADE,
            user_message=prompt,
            temperature=0.3,
            max_tokens=1000,
        )
    except LLMResponseError as e:
        logger.warning("complex_grading_json_failed", error=str(e))
        text = await client.simple_chat(
            system_prompt=SYSTEM_PROMPT_GRADE_TEXT,
            user_message=prompt,
            temperature=0.3,
            max_tokens=1000,
        )
        data = extract_json_object(text)

    grade = sanitize_grade(data, question.points_possible, question.question_number)
    logger.info(
        "complex_question_graded",
        question_number=grade.question_number,
        points_earned=grade.points_earned,
        points_possible=question.points_possible,
    )
    return grade


async def grade_complex_batch(
    questions: list[ComplexQuestion],
    client: LLMClient,
    rubric: str | None = None,
) -> BatchGradeResult:
    """Grade several questions in one request.

    Never raises for LLM trouble: every question then gets a manual-review
    fallback grade and the result is marked unsuccessful.
    """

    def fallback(reason: str) -> BatchGradeResult:
        return BatchGradeResult(
            success=False,
            results=[
                fallback_grade(q.question_number or i + 1, reason) for i, q in enumerate(questions)
            ],
            fallback_used=True,
            error=reason,
        )

    if not await client.is_available():
        logger.error("batch_grading_llm_unavailable", provider=client.config.provider)
        return fallback(f"Could not connect to the LLM ({client.config.provider})")

    logger.info("batch_grading_started", questions=len(questions))

    try:
        response = await client.chat(
            [
                Message(role="system", content=SYSTEM_PROMPT_BATCH),
                Message(role="user", content=build_batch_prompt(questions, rubric)),
            ],
            temperature=0.2,
            max_tokens=3000,
            json_mode=True,
        )
        raw_results = parse_batch_results(response.content, len(questions))
    except (LLMError, ValueError) as e:
        logger.error("batch_grading_failed", error=str(e))
        return fallback(f"Batch grading failed: {e}")

    grades = []
    for index, question in enumerate(questions):
        number = question.question_number or index + 1
        if index < len(raw_results):
            grades.append(
                sanitize_grade(raw_results[index], question.points_possible, number, with_skills=True)
            )
        else:
            grades.append(fallback_grade(number, "No result returned for this question"))

    logger.info(
        "batch_grading_completed",
        questions=len(questions),
        returned=len(raw_results),
    )
    return BatchGradeResult(success=True, results=grades, usage=response.usage)
