"""Pydantic schemas for the Web API.

Request and response bodies use camelCase on the wire; Python code uses
snake_case field names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# SKILL DISTRIBUTION SCHEMAS
# =============================================================================


class SkillDistributionItem(CamelModel):
    """Requested question count for one skill."""

    skill_name: str = Field(..., min_length=1)
    score: float = 0
    questions: int = 1


class SkillDistributionRequest(CamelModel):
    """Rebalance a distribution to a target total."""

    skills: list[SkillDistributionItem] = Field(..., min_length=1)
    target_total: int = Field(..., ge=1)
    class_id: str | None = None


class SkillAllocationResponse(CamelModel):
    skill_name: str
    score: float
    questions: int
    requested_questions: int
    is_known_skill: bool | None = None


class SkillDistributionResponse(CamelModel):
    allocations: list[SkillAllocationResponse]
    target_total: int
    achieved_total: int
    adjusted: bool
    unknown_skills: list[str] = Field(default_factory=list)


# =============================================================================
# PRACTICE TEST SCHEMAS
# =============================================================================


class PracticeTestRequestBody(CamelModel):
    """Request to generate one practice test."""

    student_name: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    skill_name: str = Field(..., min_length=1)
    grade: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    question_count: int = Field(default=5, ge=1, le=50)
    class_id: str | None = None
    skill_distribution: list[SkillDistributionItem] | None = None


class SkillScoreItem(CamelModel):
    skill_name: str = Field(..., min_length=1)
    score: float = 0


class MultiPracticeTestRequestBody(CamelModel):
    """Request to generate one practice test per weak skill."""

    student_name: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    grade: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    skills: list[SkillScoreItem] = Field(..., min_length=1)
    question_count: int = Field(default=5, ge=1, le=50)
    class_id: str | None = None
    recover: bool = True


class RecommendationRequestBody(CamelModel):
    student_name: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    weakest_skill: str = Field(..., min_length=1)
    skill_score: float
    grade: str
    subject: str


class RecommendationResponse(CamelModel):
    recommendation: str


class StudentPracticeRequestBody(CamelModel):
    """Request for an adaptive practice exercise."""

    student_id: str = Field(..., min_length=1)
    student_name: str = ""
    skill_name: str = Field(..., min_length=1)
    current_skill_score: float = 0
    class_id: str = ""
    class_name: str = Field(..., min_length=1)
    subject: str = ""
    grade: str = ""
    preferred_difficulty: Literal["adaptive", "review", "challenge"] | None = None
    question_count: int = Field(default=4, ge=1, le=20)


# =============================================================================
# GRADING AND OCR SCHEMAS
# =============================================================================


class SubmissionFileItem(CamelModel):
    file_name: str
    extracted_text: str


class AnalyzeTestRequestBody(CamelModel):
    """Grade OCR-extracted pages against an exam's answer key."""

    files: list[SubmissionFileItem] = Field(..., min_length=1)
    exam_id: str = Field(..., min_length=1)
    student_name: str = Field(..., min_length=1)
    student_email: str | None = None


class ComplexQuestionBody(CamelModel):
    """One open-ended answer to grade."""

    question_text: str = Field(..., min_length=1)
    student_answer: str = Field(..., min_length=1)
    correct_answer: str = Field(..., min_length=1)
    points_possible: float = Field(default=1, gt=0)
    question_number: int | None = None
    student_name: str = ""
    skill_context: str = ""


class ComplexBatchQuestionItem(CamelModel):
    question_text: str = ""
    student_answer: str = ""
    correct_answer: str = ""
    points_possible: float = Field(default=1, gt=0)
    question_number: int | None = None
    skill_context: str = ""


class ComplexBatchRequestBody(CamelModel):
    """Several open-ended answers graded in one request."""

    questions: list[ComplexBatchQuestionItem] = Field(..., min_length=1)
    rubric: str | None = None


class AnalyzeExamSkillsRequestBody(CamelModel):
    exam_id: str = Field(..., min_length=1)


class ExtractTextRequestBody(CamelModel):
    """Base64 image to run OCR on."""

    file_name: str = ""
    file_content: str = Field(..., min_length=1)


# =============================================================================
# CHAT SCHEMAS
# =============================================================================


class StudentContextBody(CamelModel):
    student_name: str
    class_name: str
    class_subject: str
    class_grade: str
    teacher: str = ""
    content_skill_scores: list[dict[str, Any]] = Field(default_factory=list)
    subject_skill_scores: list[dict[str, Any]] = Field(default_factory=list)
    test_results: list[dict[str, Any]] = Field(default_factory=list)


class ChatRequestBody(CamelModel):
    message: str = Field(..., min_length=1, max_length=2000)
    student_context: StudentContextBody


class ChatResponse(CamelModel):
    response: str


# =============================================================================
# CONCEPT SCHEMAS
# =============================================================================


class ExplainConceptRequestBody(CamelModel):
    """Question to explain in more depth."""

    question: str = Field(..., min_length=1)
    correct_answer: str = Field(..., min_length=1)
    explanation: str = ""
    subject: str = ""
    grade: str = ""
    skill_name: str = ""


class ExplainConceptResponse(CamelModel):
    detailed_explanation: str


class MissedConceptRequestBody(CamelModel):
    """Wrong answer to diagnose."""

    question_context: str = Field(..., min_length=1)
    student_answer: str = ""
    correct_answer: str = Field(..., min_length=1)
    skill_targeted: str = Field(..., min_length=1)
    subject: str = "Unknown"
    grade: str = "Unknown"


# =============================================================================
# HEALTH AND ERROR SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ErrorResponse(BaseModel):
    """Error envelope returned on failures."""

    error: str
    details: str | None = None
    retryable: bool = False
