"""Name the concept behind a wrong answer and file it in the concept index.

The model names the misunderstood concept in a few words, optionally
pointing at an existing index entry. The name is then matched against the
index (by id, then by word overlap) or added as a new concept, so the
taxonomy grows with every unmatched mistake.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from gradeflow.core.json_extraction import JSONExtractionError, extract_json_object
from gradeflow.db import classroom_repository as repo
from gradeflow.db.classroom_repository import ConceptRecord
from gradeflow.llm.client import LLMClient, LLMError, Message

logger = structlog.get_logger(__name__)

SIMILARITY_THRESHOLD = 0.8
KNOWN_CONCEPTS_IN_PROMPT = 20

UNKNOWN_CONCEPT = "Unable to determine missed concept"


@dataclass
class MistakeContext:
    """A wrong answer and what the question tested."""

    question_context: str
    student_answer: str
    correct_answer: str
    skill_targeted: str
    subject: str = "Unknown"
    grade: str = "Unknown"


@dataclass
class ConceptMatch:
    """Where the missed concept landed in the index."""

    concept_missed_id: str | None
    concept_missed_description: str
    matching_confidence: float
    is_new_concept: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept_missed_id": self.concept_missed_id,
            "concept_missed_description": self.concept_missed_description,
            "matching_confidence": self.matching_confidence,
            "is_new_concept": self.is_new_concept,
        }


def word_similarity(first: str, second: str) -> float:
    """Shared words over all distinct words, ignoring words of 1-2 letters."""
    words1 = [w for w in first.lower().split() if len(w) > 2]
    words2 = [w for w in second.lower().split() if len(w) > 2]
    if not words1 or not words2:
        return 0.0
    common = sum(1 for w in words1 if w in words2)
    return common / len(set(words1) | set(words2))


def build_concept_prompt(context: MistakeContext, known: list[ConceptRecord]) -> str:
    if known:
        index_text = "\n".join(f'- "{c.concept_name}" (concept_id: "{c.id}")' for c in known)
    else:
        index_text = "(no concepts indexed yet)"
    return f"""Analyze a student's incorrect answer and identify the specific concept they misunderstand.

1. Name the concept as a teachable idea in 5 words or less, in precise subject language.
   Avoid broad phrases like "math error" or "writing skills".
2. If it matches a concept from the index below, return that concept_id; otherwise return null.

CONCEPT INDEX:
{index_text}

Question: {context.question_context}
Skill Being Tested: {context.skill_targeted}
Student Answer: "{context.student_answer}"
Correct Answer: "{context.correct_answer}"

Output format (JSON only):
{{
  "concept_missed": "Specific concept in 5 words or less",
  "concept_id": null
}}"""


async def analyze_missed_concept(
    context: MistakeContext, client: LLMClient
) -> tuple[str, str | None] | None:
    """Ask the model for (concept name, concept id); None when it cannot say."""
    known = repo.search_concepts("", limit=KNOWN_CONCEPTS_IN_PROMPT)
    try:
        response = await client.chat(
            [
                Message(
                    role="system",
                    content="You are an expert educational diagnostician. "
                    "Always respond with valid JSON matching the requested format.",
                ),
                Message(role="user", content=build_concept_prompt(context, known)),
            ],
            temperature=0.3,
            max_tokens=200,
            json_mode=True,
        )
        data = extract_json_object(response.content)
    except (LLMError, JSONExtractionError) as e:
        logger.warning("missed_concept_analysis_failed", error=str(e))
        return None

    name = data.get("concept_missed")
    if not isinstance(name, str) or not name.strip():
        return None
    concept_id = data.get("concept_id")
    return name.strip(), concept_id if isinstance(concept_id, str) and concept_id else None


def match_or_create_concept(
    concept_name: str,
    concept_id: str | None,
    subject: str,
    grade: str,
    skill_targeted: str,
) -> ConceptMatch:
    """Resolve a concept name to an index entry, creating one when nothing matches."""
    try:
        if concept_id and repo.get_concept(concept_id) is not None:
            repo.increment_concept_usage(concept_id)
            return ConceptMatch(concept_id, concept_name, 1.0)

        for candidate in repo.search_concepts(concept_name, limit=5):
            similarity = word_similarity(concept_name, candidate.concept_name)
            if similarity > SIMILARITY_THRESHOLD:
                repo.increment_concept_usage(candidate.id)
                return ConceptMatch(candidate.id, concept_name, similarity)

        new_id = repo.insert_concept(
            concept_name,
            subject=subject,
            grade=grade,
            description="Auto-generated concept from student mistake analysis",
            keywords=[concept_name.lower(), skill_targeted.lower()],
            related_skills=[skill_targeted],
        )
    except sqlite3.Error as e:
        logger.error("concept_index_failed", concept_name=concept_name, error=str(e))
        return ConceptMatch(None, concept_name, 0.0)

    return ConceptMatch(new_id, concept_name, 1.0, is_new_concept=True)


async def detect_missed_concept(context: MistakeContext, client: LLMClient) -> ConceptMatch:
    """Identify and index the concept a student missed."""
    logger.info("missed_concept_detection_started", skill=context.skill_targeted)

    analysis = await analyze_missed_concept(context, client)
    if analysis is None:
        return ConceptMatch(None, UNKNOWN_CONCEPT, 0.0)

    name, concept_id = analysis
    match = match_or_create_concept(
        name, concept_id, context.subject, context.grade, context.skill_targeted
    )
    logger.info(
        "missed_concept_detected",
        concept=name,
        concept_id=match.concept_missed_id,
        is_new=match.is_new_concept,
    )
    return match
