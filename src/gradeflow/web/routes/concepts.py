"""Concept explanation and missed-concept detection endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gradeflow.core.concept_explainer import ConceptQuestion, explain_concept
from gradeflow.core.missed_concepts import MistakeContext, detect_missed_concept
from gradeflow.llm.client import LLMClient
from gradeflow.web.dependencies import error_response, get_llm_client
from gradeflow.web.schemas import (
    ExplainConceptRequestBody,
    ExplainConceptResponse,
    MissedConceptRequestBody,
)

router = APIRouter(prefix="/api", tags=["concepts"])


@router.post("/explain-concept", response_model=None)
async def explain(
    body: ExplainConceptRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> ExplainConceptResponse | JSONResponse:
    """Explain a question's concept the way a patient teacher would."""
    item = ConceptQuestion(
        question=body.question,
        correct_answer=body.correct_answer,
        explanation=body.explanation,
        subject=body.subject,
        grade=body.grade,
        skill_name=body.skill_name,
    )

    try:
        text = await explain_concept(item, client)
    except Exception as e:
        return error_response(
            e,
            operation="explain_concept",
            default_message="Failed to generate detailed explanation. Please try again.",
        )

    return ExplainConceptResponse(detailed_explanation=text)


@router.post("/detect-missed-concept", response_model=None)
async def detect(
    body: MissedConceptRequestBody,
    client: LLMClient = Depends(get_llm_client),
) -> dict[str, Any] | JSONResponse:
    """Name the concept behind a wrong answer and index it."""
    context = MistakeContext(
        question_context=body.question_context,
        student_answer=body.student_answer,
        correct_answer=body.correct_answer,
        skill_targeted=body.skill_targeted,
        subject=body.subject,
        grade=body.grade,
    )

    try:
        match = await detect_missed_concept(context, client)
    except Exception as e:
        return error_response(
            e,
            operation="detect_missed_concept",
            default_message="Failed to detect missed concept. Please try again.",
        )

    return match.to_dict()
