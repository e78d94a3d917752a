"""One-time mapping of an exam's questions to curriculum skills.

Flow:
1. Return the stored analysis if the exam was already mapped
2. Load the exam, its answer keys and every content and subject skill
3. Mark the analysis in progress and ask the LLM for question-to-skill links
4. Store the links and the completed analysis together

Any failure after step 3 starts marks the analysis failed before the error
propagates, so a later call can retry the exam.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from gradeflow.core.json_extraction import (
    JSONExtractionError,
    coerce_int,
    coerce_number,
    extract_json_object,
)
from gradeflow.core.test_analyzer import ExamNotFoundError
from gradeflow.db import classroom_repository as repo
from gradeflow.db.classroom_repository import (
    AnswerKeyRecord,
    ContentSkillRecord,
    ExamRecord,
    ExamSkillAnalysisRecord,
    ExamSkillMapping,
    SubjectSkillRecord,
)
from gradeflow.llm.client import LLMClient, Message

logger = structlog.get_logger(__name__)

MAX_SKILL_WEIGHT = 2.0


class SkillMappingFormatError(ValueError):
    """The model's reply is not a usable skill mapping."""

    pass


@dataclass
class ExamSkillAnalysisOutcome:
    """Result of a mapping request."""

    status: str
    exam_id: str
    analysis: ExamSkillAnalysisRecord | None = None
    total_questions: int = 0
    mapped_questions: int = 0
    content_skills_found: int = 0
    subject_skills_found: int = 0
    skill_mappings: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        if self.status == "already_completed":
            return {
                "status": self.status,
                "message": "Skill analysis already exists for this exam",
                "analysis": asdict(self.analysis) if self.analysis else None,
            }
        return {
            "status": self.status,
            "exam_id": self.exam_id,
            "total_questions": self.total_questions,
            "mapped_questions": self.mapped_questions,
            "content_skills_found": self.content_skills_found,
            "subject_skills_found": self.subject_skills_found,
            "skill_mappings": self.skill_mappings,
        }


# =============================================================================
# PROMPTS
# =============================================================================


def build_mapping_system_prompt(
    content_skills: list[ContentSkillRecord], subject_skills: list[SubjectSkillRecord]
) -> str:
    content_text = "\n".join(
        f"ID:{s.id} | {s.skill_name} | {s.topic or 'General'} | {s.skill_description or ''}"
        for s in content_skills
    )
    subject_text = "\n".join(
        f"ID:{s.id} | {s.skill_name} | {s.skill_description or ''}" for s in subject_skills
    )
    return f"""You are an educational skill mapping expert. Analyze each question and map it to relevant content and subject skills.

AVAILABLE CONTENT SKILLS:
{content_text}

AVAILABLE SUBJECT SKILLS:
{subject_text}

For each question, identify:
1. Which content skills it tests (1-3 most relevant)
2. Which subject skills it tests (1-2 most relevant)
3. Weight for each skill (0.1-1.0 based on how central the skill is to the question)
4. Confidence in the mapping (0.1-1.0)

Return JSON format:
{{
  "mappings": [
    {{
      "question_number": 1,
      "content_skills": [
        {{"skill_id": "uuid", "skill_name": "name", "weight": 0.8, "confidence": 0.9}}
      ],
      "subject_skills": [
        {{"skill_id": "uuid", "skill_name": "name", "weight": 1.0, "confidence": 0.95}}
      ]
    }}
  ],
  "summary": {{
    "total_questions_mapped": 10,
    "content_skills_used": 5,
    "subject_skills_used": 3
  }}
}}"""


def build_mapping_user_prompt(exam: ExamRecord, answer_keys: list[AnswerKeyRecord]) -> str:
    questions_text = "\n".join(
        f"Q{ak.question_number}: {ak.question_text} (Type: {ak.question_type})" for ak in answer_keys
    )
    return f"""Map these questions to skills for exam: {exam.title}

QUESTIONS:
{questions_text}

Provide complete skill mapping for all questions."""


# =============================================================================
# VALIDATION
# =============================================================================


def _bounded(value: Any, high: float) -> float:
    # missing or zero means full weight/confidence
    raw = coerce_number(value, 1.0) or 1.0
    return min(max(raw, 0.0), high)


def parse_skill_mappings(data: dict[str, Any], exam_id: str) -> list[ExamSkillMapping]:
    """Validated mapping rows from the model's JSON.

    Weights are clamped to [0, 2] and confidences to [0, 1]; entries without
    a question number or skill name are dropped.
    """
    rows: list[ExamSkillMapping] = []
    mappings = data.get("mappings")
    if not isinstance(mappings, list):
        return rows

    for mapping in mappings:
        if not isinstance(mapping, dict):
            continue
        question_number = coerce_int(mapping.get("question_number"))
        if question_number <= 0:
            continue

        for skill_type in ("content", "subject"):
            entries = mapping.get(f"{skill_type}_skills")
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if not isinstance(entry, dict) or not entry.get("skill_name"):
                    continue
                weight = _bounded(entry.get("weight"), MAX_SKILL_WEIGHT)
                if weight != (coerce_number(entry.get("weight"), 1.0) or 1.0):
                    logger.warning(
                        "skill_weight_adjusted",
                        exam_id=exam_id,
                        question_number=question_number,
                        skill_type=skill_type,
                        original=entry.get("weight"),
                        adjusted=weight,
                    )
                skill_id = entry.get("skill_id")
                rows.append(
                    ExamSkillMapping(
                        question_number=question_number,
                        skill_type=skill_type,
                        skill_name=str(entry["skill_name"]),
                        skill_id=str(skill_id) if skill_id else None,
                        skill_weight=weight,
                        confidence=_bounded(entry.get("confidence"), 1.0),
                    )
                )
    return rows


# =============================================================================
# MAIN FUNCTION
# =============================================================================


async def analyze_exam_skills(exam_id: str, client: LLMClient) -> ExamSkillAnalysisOutcome:
    """Map an exam's questions to skills once and store the result.

    Raises:
        ExamNotFoundError: If the exam does not exist
        SkillMappingFormatError: If the model reply is not a JSON object
        LLMError: If the LLM call fails after retries
    """
    existing = repo.get_exam_skill_analysis(exam_id)
    if existing is not None and existing.analysis_status == "completed":
        logger.info("exam_skill_analysis_exists", exam_id=exam_id)
        return ExamSkillAnalysisOutcome(status="already_completed", exam_id=exam_id, analysis=existing)

    exam = repo.get_exam(exam_id)
    if exam is None:
        raise ExamNotFoundError(f"Exam not found: {exam_id}")

    answer_keys = repo.list_answer_keys(exam_id)
    content_skills = repo.list_content_skills()
    subject_skills = repo.list_subject_skills()

    logger.info(
        "exam_skill_analysis_started",
        exam_id=exam_id,
        questions=len(answer_keys),
        content_skills=len(content_skills),
        subject_skills=len(subject_skills),
    )
    repo.start_exam_skill_analysis(exam_id, len(answer_keys))

    try:
        response = await client.chat(
            [
                Message(
                    role="system",
                    content=build_mapping_system_prompt(content_skills, subject_skills),
                ),
                Message(role="user", content=build_mapping_user_prompt(exam, answer_keys)),
            ],
            temperature=0.1,
            max_tokens=3000,
        )
        try:
            data = extract_json_object(response.content or "{}")
        except JSONExtractionError as e:
            raise SkillMappingFormatError("AI returned invalid skill mapping format") from e

        rows = parse_skill_mappings(data, exam_id)
        mappings = data.get("mappings")
        mapped_questions = len(mappings) if isinstance(mappings, list) else 0
        repo.complete_exam_skill_analysis(exam_id, rows, mapped_questions, data)
    except Exception as e:
        logger.error("exam_skill_analysis_failed", exam_id=exam_id, error=str(e))
        repo.fail_exam_skill_analysis(exam_id, str(e))
        raise

    content_found = sum(1 for r in rows if r.skill_type == "content")
    logger.info(
        "exam_skill_analysis_completed",
        exam_id=exam_id,
        mapped_questions=mapped_questions,
        mappings=len(rows),
    )
    return ExamSkillAnalysisOutcome(
        status="completed",
        exam_id=exam_id,
        total_questions=len(answer_keys),
        mapped_questions=mapped_questions,
        content_skills_found=content_found,
        subject_skills_found=len(rows) - content_found,
        skill_mappings=data,
    )
