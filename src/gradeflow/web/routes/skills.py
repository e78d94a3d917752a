"""Skill distribution endpoint."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from gradeflow.core.skill_distribution import SkillRequest, rebalance_distribution
from gradeflow.db import classroom_repository as repo
from gradeflow.web.dependencies import error_response
from gradeflow.web.schemas import SkillDistributionRequest, SkillDistributionResponse

router = APIRouter(prefix="/api", tags=["skills"])


@router.post("/skill-distribution", response_model=None)
async def skill_distribution(
    request: SkillDistributionRequest,
) -> SkillDistributionResponse | JSONResponse:
    """Rebalance per-skill question counts to the target total."""
    skills = [
        SkillRequest(skill_name=s.skill_name, score=s.score, requested_questions=s.questions)
        for s in request.skills
    ]

    try:
        known = repo.list_known_skill_names(request.class_id) if request.class_id else None
        result = rebalance_distribution(skills, request.target_total, known_skills=known or None)
    except ValueError as e:
        return error_response(
            e,
            status.HTTP_400_BAD_REQUEST,
            operation="skill_distribution",
            default_message="Invalid skill distribution request.",
        )
    except Exception as e:
        return error_response(
            e, operation="skill_distribution", default_message="Failed to rebalance skill distribution."
        )

    return SkillDistributionResponse.model_validate(result.to_dict())
