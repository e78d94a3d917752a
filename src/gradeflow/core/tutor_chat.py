"""AI learning assistant chat grounded in the student's own results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import structlog

from gradeflow.llm.client import LLMClient, Message

logger = structlog.get_logger(__name__)


@dataclass
class StudentContext:
    """What the tutor knows about the student."""

    student_name: str
    class_name: str
    class_subject: str
    class_grade: str
    teacher: str = ""
    content_skill_scores: list[dict[str, Any]] = field(default_factory=list)
    subject_skill_scores: list[dict[str, Any]] = field(default_factory=list)
    test_results: list[dict[str, Any]] = field(default_factory=list)


def _rounded_average(values: list[float]) -> int:
    # half-up, matching how percentages are shown elsewhere
    return math.floor(sum(values) / len(values) + 0.5)


def build_tutor_system_prompt(context: StudentContext) -> str:
    """System prompt with class info and performance averages."""
    if context.test_results:
        avg = _rounded_average([float(t.get("overall_score") or 0) for t in context.test_results])
        test_line = f"- Average test score: {avg}%"
    else:
        test_line = "- No test results yet"

    if context.content_skill_scores:
        avg = _rounded_average([float(s.get("score") or 0) for s in context.content_skill_scores])
        skill_line = f"- Content skills average: {avg}%"
    else:
        skill_line = "- No content skill data yet"

    return f"""You are an AI learning assistant helping {context.student_name} in their {context.class_subject} class ({context.class_grade}).

Student Context:
- Class: {context.class_name} ({context.class_subject} - {context.class_grade})
- Teacher: {context.teacher}
- Content Skills: {len(context.content_skill_scores)} skills tracked
- Subject Skills: {len(context.subject_skill_scores)} skills tracked
- Test Results: {len(context.test_results)} tests completed

Performance Summary:
{test_line}
{skill_line}

Your role:
- Be encouraging, supportive, and motivational
- Provide specific, actionable study advice
- Help analyze their progress and identify improvement areas
- Answer questions about their performance data
- Suggest learning strategies appropriate for {context.class_grade} {context.class_subject}
- Keep responses conversational but educational
- Always relate advice back to their actual performance when possible

Keep responses concise (2-3 sentences usually) unless they ask for detailed explanations."""


async def tutor_reply(message: str, context: StudentContext, client: LLMClient) -> str:
    """Answer one student message.

    Raises:
        LLMError: If the LLM call fails after retries
    """
    response = await client.chat(
        [
            Message(role="system", content=build_tutor_system_prompt(context)),
            Message(role="user", content=message),
        ],
        temperature=0.7,
        max_tokens=300,
    )
    logger.info("tutor_reply", student=context.student_name, tokens=response.total_tokens)
    return response.content
