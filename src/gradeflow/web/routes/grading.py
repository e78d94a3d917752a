"""Answer-key grading, open-ended grading and exam skill mapping endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from gradeflow.core.complex_grading import (
    ComplexQuestion,
    grade_complex_batch,
    grade_complex_question,
)
from gradeflow.core.exam_skill_mapping import analyze_exam_skills
from gradeflow.core.test_analyzer import ExamNotFoundError, SubmissionFile, analyze_test
from gradeflow.llm.client import LLMClient
from gradeflow.web.dependencies import error_response, get_llm_client
from gradeflow.web.schemas import (
    AnalyzeExamSkillsRequestBody,
    AnalyzeTestRequestBody,
    ComplexBatchRequestBody,
    ComplexQuestionBody,
)

router = APIRouter(prefix="/api", tags=["grading"])

GRADING_ERROR_MESSAGE = "Failed to analyze test. Please try again."
COMPLEX_GRADING_ERROR_MESSAGE = "Failed to grade question. Please try again."
SKILL_MAPPING_ERROR_MESSAGE = "Failed to analyze exam skills. Please try again."


@router.post("/analyze-test", response_model=None)
async def analyze_submission(
    body: AnalyzeTestRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Grade OCR-extracted pages against the exam's answer key."""
    files = [SubmissionFile(file_name=f.file_name, extracted_text=f.extracted_text) for f in body.files]

    try:
        analysis = await analyze_test(
            body.exam_id,
            body.student_name,
            files,
            client,
            student_email=body.student_email,
        )
    except ExamNotFoundError as e:
        return error_response(
            e,
            status.HTTP_404_NOT_FOUND,
            operation="analyze_test",
            default_message="Exam not found.",
        )
    except Exception as e:
        return error_response(e, operation="analyze_test", default_message=GRADING_ERROR_MESSAGE)

    return analysis.to_dict()


@router.post("/grade-complex-question", response_model=None)
async def grade_open_ended(
    body: ComplexQuestionBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Grade one open-ended answer with partial credit."""
    question = ComplexQuestion(
        question_text=body.question_text,
        student_answer=body.student_answer,
        correct_answer=body.correct_answer,
        points_possible=body.points_possible,
        question_number=body.question_number,
        student_name=body.student_name,
        skill_context=body.skill_context,
    )

    try:
        grade = await grade_complex_question(question, client)
    except Exception as e:
        return error_response(
            e,
            operation="grade_complex_question",
            default_message=COMPLEX_GRADING_ERROR_MESSAGE,
        )

    return grade.to_dict()


@router.post("/grade-complex-question/batch", response_model=None)
async def grade_open_ended_batch(
    body: ComplexBatchRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Grade several open-ended answers; failures still return review placeholders."""
    questions = [
        ComplexQuestion(
            question_text=q.question_text,
            student_answer=q.student_answer,
            correct_answer=q.correct_answer,
            points_possible=q.points_possible,
            question_number=q.question_number,
            skill_context=q.skill_context,
        )
        for q in body.questions
    ]

    result = await grade_complex_batch(questions, client, rubric=body.rubric)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.to_dict(),
        )
    return result.to_dict()


@router.post("/analyze-exam-skills", response_model=None)
async def map_exam_skills(
    body: AnalyzeExamSkillsRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Map an exam's questions to content and subject skills once."""
    try:
        outcome = await analyze_exam_skills(body.exam_id, client)
    except ExamNotFoundError as e:
        return error_response(
            e,
            status.HTTP_404_NOT_FOUND,
            operation="analyze_exam_skills",
            default_message="Exam not found.",
        )
    except Exception as e:
        return error_response(
            e,
            operation="analyze_exam_skills",
            default_message=SKILL_MAPPING_ERROR_MESSAGE,
        )

    return outcome.to_dict()
