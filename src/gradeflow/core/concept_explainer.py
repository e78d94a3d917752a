"""Longer, kid-friendly explanations of a practice question's concept."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from gradeflow.llm.client import LLMClient, LLMResponseError

logger = structlog.get_logger(__name__)


@dataclass
class ConceptQuestion:
    """Question the student reviewed and its short explanation."""

    question: str
    correct_answer: str
    explanation: str = ""
    subject: str = ""
    grade: str = ""
    skill_name: str = ""


def build_explainer_system_prompt(item: ConceptQuestion) -> str:
    return f"""You are an expert teacher who explains concepts to 12-year-old students. Your goal is to make complex ideas simple, engaging, and easy to understand.

Instructions:
- Explain the concept as if talking to a 12-year-old student
- Use simple words, analogies, and examples from everyday life
- Write approximately 500 words
- Break down complex ideas into smaller, digestible parts
- Use encouraging and supportive language
- Avoid jargon, or explain technical terms simply if you need them

The student is learning {item.subject} in {item.grade} and working on the skill: {item.skill_name}"""


def build_explainer_user_prompt(item: ConceptQuestion) -> str:
    return f"""The student answered this question: "{item.question}"
The correct answer was: "{item.correct_answer}"
The basic explanation given was: "{item.explanation}"

Please provide a detailed, engaging explanation of this concept that a 12-year-old would understand. Help them grasp why this answer is correct and how the concept works in general."""


async def explain_concept(item: ConceptQuestion, client: LLMClient) -> str:
    """Generate a detailed explanation (about 500 words).

    Raises:
        LLMResponseError: If the model returns nothing
        LLMError: If the LLM call fails after retries
    """
    logger.info("concept_explanation_started", skill_name=item.skill_name, subject=item.subject)

    text = await client.simple_chat(
        build_explainer_system_prompt(item),
        build_explainer_user_prompt(item),
        temperature=0.7,
        max_tokens=800,
    )
    if not text or not text.strip():
        raise LLMResponseError("Empty explanation from LLM")

    return text.strip()
