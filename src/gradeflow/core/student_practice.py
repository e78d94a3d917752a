"""Adaptive practice exercises for a single student and skill.

Difficulty follows the student's current score unless an explicit level is
requested. The skill must exist in the curriculum (content skills first,
then subject skills). Each generation records a practice session and bumps
the student's practice analytics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import structlog

from gradeflow.core.json_extraction import (
    JSONExtractionError,
    coerce_int,
    extract_json_object,
)
from gradeflow.db import classroom_repository as repo
from gradeflow.llm.client import LLMClient, Message

logger = structlog.get_logger(__name__)

DifficultyLevel = Literal["review", "mixed", "challenge"]
PreferredDifficulty = Literal["adaptive", "review", "challenge"]
SkillType = Literal["content", "subject"]

DEFAULT_QUESTION_COUNT = 4
IMPROVEMENT_STEP = 15
IMPROVEMENT_CEILING = 95

DIFFICULTY_GUIDANCE: dict[str, str] = {
    "review": "Focus on fundamental concepts with step-by-step explanations. Include hints and scaffolding.",
    "mixed": "Mix of review and application questions. Include some challenge while reinforcing basics.",
    "challenge": "Advanced application questions that push understanding. Include real-world scenarios.",
}

SKILL_TYPE_GUIDANCE: dict[str, str] = {
    "content": "Focus on specific academic content knowledge and concepts as defined in the curriculum.",
    "subject": "Emphasize transferable thinking skills and analytical processes as defined in the curriculum.",
}

SYSTEM_PROMPT_STUDENT_PRACTICE = (
    "You are an expert tutor creating personalized practice exercises based on official "
    "curriculum skills. Generate adaptive questions that help students improve specific "
    "skills according to their curriculum definitions. Focus on encouraging learning and "
    "building confidence. Always respond with valid JSON only."
)


class SkillNotFoundError(Exception):
    """Skill is not part of the curriculum for the subject and grade."""

    pass


class StudentPracticeError(Exception):
    """Practice exercise could not be generated."""

    pass


@dataclass
class StudentPracticeRequest:
    """Parameters for one adaptive practice exercise."""

    student_id: str
    student_name: str
    skill_name: str
    current_skill_score: float
    class_id: str
    class_name: str
    subject: str
    grade: str
    preferred_difficulty: PreferredDifficulty | None = None
    question_count: int = DEFAULT_QUESTION_COUNT


@dataclass
class SkillMetadata:
    """Where a skill was found in the curriculum."""

    skill_type: SkillType
    skill_description: str | None = None
    topic: str | None = None

    @property
    def classification(self) -> str:
        return f"{self.skill_type}_skill_from_database"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "isContentSkill": self.skill_type == "content",
            "isSubjectSkill": self.skill_type == "subject",
            "classification": self.classification,
        }
        if self.skill_description:
            result["skillDescription"] = self.skill_description
        if self.topic:
            result["topic"] = self.topic
        return result


@dataclass
class StudentPracticeExercise:
    """Generated exercise plus generation metadata."""

    title: str
    description: str
    questions: list[dict[str, Any]]
    total_points: int
    estimated_time: int
    adaptive_difficulty: str
    student_guidance: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "description": self.description,
            "questions": self.questions,
            "totalPoints": self.total_points,
            "estimatedTime": self.estimated_time,
            "adaptiveDifficulty": self.adaptive_difficulty,
            "studentGuidance": self.student_guidance,
            "metadata": self.metadata,
        }


def determine_difficulty_level(
    current_score: float, preferred: str | None = None
) -> str:
    """Pick the exercise difficulty.

    Args:
        current_score: Skill score as a percentage (0-100)
        preferred: Explicit level; "adaptive" or None means score-based

    Returns:
        "review" below 60, "mixed" below 80, otherwise "challenge"
    """
    if preferred and preferred != "adaptive":
        return preferred
    if current_score < 60:
        return "review"
    if current_score < 80:
        return "mixed"
    return "challenge"


def target_improvement(current_score: float) -> float:
    return min(current_score + IMPROVEMENT_STEP, IMPROVEMENT_CEILING)


def find_skill(skill_name: str, subject: str, grade: str) -> SkillMetadata:
    """Find a skill in the curriculum.

    Raises:
        SkillNotFoundError: If neither content nor subject skills match
    """
    content = repo.find_content_skill(skill_name, subject, grade)
    if content is not None:
        return SkillMetadata(
            skill_type="content",
            skill_description=content.skill_description,
            topic=content.topic,
        )

    subject_skill = repo.find_subject_skill(skill_name, subject, grade)
    if subject_skill is not None:
        return SkillMetadata(
            skill_type="subject",
            skill_description=subject_skill.skill_description,
        )

    logger.warning("skill_not_found", skill=skill_name, subject=subject, grade=grade)
    raise SkillNotFoundError(
        f'Skill "{skill_name}" not found in the curriculum for {subject} {grade}. '
        "Please select a skill from the available curriculum."
    )


def build_student_practice_prompt(
    request: StudentPracticeRequest, difficulty: str, skill: SkillMetadata
) -> str:
    """Render the personalized exercise prompt."""
    n = request.question_count
    skill_context = f'Focus on the curriculum skill: "{request.skill_name}"'
    if skill.skill_description:
        skill_context += f"\nSkill Description: {skill.skill_description}"
    if skill.topic:
        skill_context += f"\nTopic: {skill.topic}"

    topic_line = f'- Incorporate concepts from the topic: "{skill.topic}"\n' if skill.topic else ""

    return f"""Create a personalized practice exercise for {request.student_name} in {request.class_name} ({request.subject}, {request.grade}).

STUDENT CONTEXT:
- Current skill level in "{request.skill_name}": {request.current_skill_score:g}%
- Target improvement: {target_improvement(request.current_skill_score):g}%
- Difficulty level: {difficulty}
- Skill type: {skill.skill_type} ({SKILL_TYPE_GUIDANCE[skill.skill_type]})

CURRICULUM SKILL INFORMATION:
{skill_context}

EXERCISE REQUIREMENTS:
- Generate exactly {n} questions targeting "{request.skill_name}"
- Questions must align with the official curriculum skill description
- Difficulty: {DIFFICULTY_GUIDANCE.get(difficulty, DIFFICULTY_GUIDANCE["mixed"])}
- Include explanations and hints for each question
- Focus on areas where students typically struggle at this skill level
- Make questions engaging and relatable to {request.grade} students
{topic_line}
FORMAT AS JSON:
{{
  "title": "Personalized Practice: {request.skill_name}",
  "description": "Adaptive practice designed to improve your {request.skill_name} skills",
  "studentGuidance": "Encouraging message about practice goals and what they'll learn",
  "questions": [
    {{
      "id": "q1",
      "type": "multiple-choice" | "short-answer" | "essay",
      "question": "Question text",
      "options": ["A", "B", "C", "D"] (for multiple choice),
      "correctAnswer": "Correct answer",
      "points": 1,
      "explanation": "Clear explanation of why this is correct",
      "targetSkill": "{request.skill_name}",
      "difficultyLevel": "{difficulty}",
      "hint": "Helpful hint if student gets stuck"
    }}
  ],
  "totalPoints": {n},
  "estimatedTime": {n * 3},
  "adaptiveDifficulty": "{difficulty}"
}}"""


def _validate_request(request: StudentPracticeRequest) -> None:
    missing = [
        name
        for name, value in (
            ("studentId", request.student_id),
            ("skillName", request.skill_name),
            ("className", request.class_name),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")


async def generate_student_practice_exercise(
    request: StudentPracticeRequest,
    client: LLMClient,
) -> StudentPracticeExercise:
    """Generate an adaptive practice exercise.

    Args:
        request: Student, skill and class parameters
        client: LLM client

    Returns:
        StudentPracticeExercise with metadata attached

    Raises:
        ValueError: If required fields are missing
        SkillNotFoundError: If the skill is not in the curriculum
        StudentPracticeError: If the model output is not a valid exercise
        LLMError: If the LLM call fails after retries
    """
    _validate_request(request)

    skill = find_skill(request.skill_name, request.subject, request.grade)
    difficulty = determine_difficulty_level(
        request.current_skill_score, request.preferred_difficulty
    )

    session_id = repo.create_practice_session(
        student_id=request.student_id,
        skill_name=request.skill_name,
        difficulty_level=difficulty,
        question_count=request.question_count,
        student_name=request.student_name,
        current_skill_score=request.current_skill_score,
        class_id=request.class_id,
        class_name=request.class_name,
        subject=request.subject,
        grade=request.grade,
    )

    try:
        repo.record_practice(request.student_id, request.skill_name)
    except Exception as e:
        logger.error("practice_analytics_update_failed", error=str(e), skill=request.skill_name)

    logger.info(
        "student_practice_requested",
        session_id=session_id,
        skill=request.skill_name,
        skill_type=skill.skill_type,
        difficulty=difficulty,
    )

    response = await client.chat(
        [
            Message(role="system", content=SYSTEM_PROMPT_STUDENT_PRACTICE),
            Message(role="user", content=build_student_practice_prompt(request, difficulty, skill)),
        ],
        temperature=0.8,
        max_tokens=2500,
    )

    try:
        raw = extract_json_object(response.content)
    except JSONExtractionError as e:
        raise StudentPracticeError(f"Invalid JSON response from OpenAI: {e}") from e

    questions = raw.get("questions")
    if not isinstance(questions, list) or not questions:
        raise StudentPracticeError("Invalid practice exercise format: missing questions array")

    exercise = StudentPracticeExercise(
        title=str(raw.get("title") or f"Personalized Practice: {request.skill_name}"),
        description=str(raw.get("description") or ""),
        questions=questions,
        total_points=coerce_int(raw.get("totalPoints")) or len(questions),
        estimated_time=coerce_int(raw.get("estimatedTime")) or len(questions) * 3,
        adaptive_difficulty=str(raw.get("adaptiveDifficulty") or difficulty),
        student_guidance=str(raw.get("studentGuidance") or ""),
        metadata={
            "skillName": request.skill_name,
            "currentSkillScore": request.current_skill_score,
            "targetImprovement": target_improvement(request.current_skill_score),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "studentName": request.student_name,
            "className": request.class_name,
            "sessionId": session_id,
            "skillType": skill.skill_type,
            "skillMetadata": skill.to_dict(),
        },
    )

    repo.mark_exercise_generated(session_id)

    logger.info(
        "student_practice_generated",
        session_id=session_id,
        questions=len(questions),
    )
    return exercise
