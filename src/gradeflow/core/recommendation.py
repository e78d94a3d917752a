"""Short practice recommendation for a student's weakest skill."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from gradeflow.llm.client import LLMClient, Message

logger = structlog.get_logger(__name__)

FALLBACK_RECOMMENDATION = "Unable to generate recommendation"

SYSTEM_PROMPT_RECOMMENDATION = (
    "You are an expert educator who creates personalized practice recommendations for "
    "students based on their learning needs. Provide specific, actionable advice that "
    "helps students improve their weakest skills."
)


@dataclass
class RecommendationRequest:
    student_name: str
    class_name: str
    weakest_skill: str
    skill_score: float  # fraction 0-1
    grade: str
    subject: str


def build_recommendation_prompt(request: RecommendationRequest) -> str:
    return f"""Generate a specific, actionable practice exercise recommendation for a {request.grade} {request.subject} student named {request.student_name} in {request.class_name}.

Student's weakest content skill: {request.weakest_skill}
Current skill score: {request.skill_score * 100:.1f}%

Please provide:
1. A specific practice exercise or activity to improve this skill
2. Clear instructions on how to complete it
3. Expected time commitment
4. How this will help improve their understanding

Keep the recommendation concise (2-3 sentences), practical, and age-appropriate for {request.grade} level. Focus on actionable steps the student can take."""


async def generate_practice_recommendation(
    request: RecommendationRequest, client: LLMClient
) -> str:
    """Ask the model for a 2-3 sentence recommendation.

    Returns:
        Recommendation text, or FALLBACK_RECOMMENDATION when the reply is empty

    Raises:
        LLMError: If the LLM call fails after retries
    """
    response = await client.chat(
        [
            Message(role="system", content=SYSTEM_PROMPT_RECOMMENDATION),
            Message(role="user", content=build_recommendation_prompt(request)),
        ],
        temperature=0.7,
        max_tokens=200,
    )

    recommendation = response.content.strip() or FALLBACK_RECOMMENDATION
    logger.info(
        "recommendation_generated",
        skill=request.weakest_skill,
        fallback=recommendation == FALLBACK_RECOMMENDATION,
    )
    return recommendation
