"""Practice test, exercise and recommendation endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from gradeflow.core.practice_test import (
    PracticeTestRequest,
    generate_multiple_practice_tests,
    generate_practice_test,
)
from gradeflow.core.recommendation import (
    RecommendationRequest,
    generate_practice_recommendation,
)
from gradeflow.core.skill_distribution import SkillRequest
from gradeflow.core.student_practice import (
    StudentPracticeRequest,
    generate_student_practice_exercise,
)
from gradeflow.llm.client import LLMClient
from gradeflow.web.dependencies import error_response, get_llm_client
from gradeflow.web.schemas import (
    MultiPracticeTestRequestBody,
    PracticeTestRequestBody,
    RecommendationRequestBody,
    RecommendationResponse,
    StudentPracticeRequestBody,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["practice"])


@router.post("/practice-test", response_model=None)
async def create_practice_test(
    body: PracticeTestRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Generate one practice test for a skill or a skill distribution."""
    request = PracticeTestRequest(
        student_name=body.student_name,
        class_name=body.class_name,
        skill_name=body.skill_name,
        grade=body.grade,
        subject=body.subject,
        question_count=body.question_count,
        class_id=body.class_id,
        skill_distribution=(
            [
                SkillRequest(skill_name=s.skill_name, score=s.score, requested_questions=s.questions)
                for s in body.skill_distribution
            ]
            if body.skill_distribution
            else None
        ),
    )

    try:
        test = await generate_practice_test(request, client)
    except Exception as e:
        return error_response(e, operation="practice_test")

    return test.to_dict()


@router.post("/practice-tests", response_model=None)
async def create_practice_tests(
    body: MultiPracticeTestRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Generate one practice test per skill; failures are reported per skill."""
    base = PracticeTestRequest(
        student_name=body.student_name,
        class_name=body.class_name,
        skill_name="",
        grade=body.grade,
        subject=body.subject,
        question_count=body.question_count,
        class_id=body.class_id,
    )

    try:
        results = await generate_multiple_practice_tests(
            [(s.skill_name, s.score) for s in body.skills],
            base,
            client,
            recover=body.recover,
        )
    except Exception as e:
        return error_response(e, operation="practice_tests")

    return {
        "results": [r.to_dict() for r in results],
        "completed": sum(1 for r in results if r.status == "completed"),
        "recovered": sum(1 for r in results if r.status == "recovered"),
        "failed": sum(1 for r in results if r.status == "error"),
    }


@router.post("/practice-recommendation", response_model=None)
async def create_practice_recommendation(
    body: RecommendationRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> RecommendationResponse | JSONResponse:
    """Short recommendation for the student's weakest skill."""
    request = RecommendationRequest(
        student_name=body.student_name,
        class_name=body.class_name,
        weakest_skill=body.weakest_skill,
        skill_score=body.skill_score,
        grade=body.grade,
        subject=body.subject,
    )

    try:
        recommendation = await generate_practice_recommendation(request, client)
    except Exception as e:
        return error_response(
            e,
            operation="practice_recommendation",
            default_message="Failed to generate recommendation. Please try again.",
        )

    return RecommendationResponse(recommendation=recommendation)


@router.post("/student-practice-exercise", response_model=None)
async def create_student_practice_exercise(
    body: StudentPracticeRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Adaptive practice exercise for one student and skill."""
    request = StudentPracticeRequest(
        student_id=body.student_id,
        student_name=body.student_name,
        skill_name=body.skill_name,
        current_skill_score=body.current_skill_score,
        class_id=body.class_id,
        class_name=body.class_name,
        subject=body.subject,
        grade=body.grade,
        preferred_difficulty=body.preferred_difficulty,
        question_count=body.question_count,
    )

    try:
        exercise = await generate_student_practice_exercise(request, client)
    except ValueError as e:
        return error_response(
            e,
            status.HTTP_400_BAD_REQUEST,
            operation="student_practice_exercise",
            default_message="Invalid practice exercise request.",
        )
    except Exception as e:
        return error_response(
            e,
            operation="student_practice_exercise",
            default_message="Failed to generate student practice exercise",
        )

    return exercise.to_dict()
