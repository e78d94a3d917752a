"""Skill distribution rebalancing for multi-skill practice tests.

A teacher (or the UI) asks for N questions spread across several weak
skills. Requested counts rarely add up exactly, so the distribution is
adjusted to hit the target total:

- shortfall: added entirely to the lowest-scoring skill
- surplus: removed from the highest-scoring skill first, then the next
- no skill ever drops below one question
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog

logger = structlog.get_logger(__name__)

MIN_QUESTIONS_PER_SKILL = 1


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class SkillRequest:
    """A skill with its score and the number of questions requested for it."""

    skill_name: str
    score: float
    requested_questions: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkillRequest:
        """Build from {skill_name, score, questions} as sent by clients."""
        requested = data.get("requested_questions", data.get("questions", MIN_QUESTIONS_PER_SKILL))
        return cls(
            skill_name=str(data.get("skill_name", "")).strip(),
            score=float(data.get("score", 0) or 0),
            requested_questions=int(requested or 0),
        )


@dataclass
class SkillAllocation:
    """Final number of questions assigned to a skill."""

    skill_name: str
    score: float
    questions: int
    requested_questions: int
    is_known_skill: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "skill_name": self.skill_name,
            "score": self.score,
            "questions": self.questions,
            "requested_questions": self.requested_questions,
            "is_known_skill": self.is_known_skill,
        }


@dataclass
class DistributionResult:
    """Outcome of a rebalancing pass."""

    allocations: list[SkillAllocation]
    target_total: int
    achieved_total: int
    adjusted: bool
    unknown_skills: list[str] = field(default_factory=list)

    def as_mapping(self) -> dict[str, int]:
        """Skill name -> question count."""
        return {a.skill_name: a.questions for a in self.allocations}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "allocations": [a.to_dict() for a in self.allocations],
            "target_total": self.target_total,
            "achieved_total": self.achieved_total,
            "adjusted": self.adjusted,
            "unknown_skills": self.unknown_skills,
        }


# =============================================================================
# HELPERS
# =============================================================================


def _normalize_skill_name(name: str) -> str:
    return " ".join(name.split()).casefold()


def _match_known(name: str, known: set[str] | None) -> bool | None:
    if known is None:
        return None
    return _normalize_skill_name(name) in known


def _lowest_score_index(allocations: list[SkillAllocation]) -> int:
    # min() keeps the first of equal scores
    return min(range(len(allocations)), key=lambda i: allocations[i].score)


def _by_score_descending(allocations: list[SkillAllocation]) -> list[int]:
    # sorted() is stable, so ties keep input order
    return sorted(range(len(allocations)), key=lambda i: -allocations[i].score)


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def rebalance_distribution(
    skills: Iterable[SkillRequest],
    target_total: int,
    known_skills: Iterable[str] | None = None,
) -> DistributionResult:
    """Adjust requested question counts so they sum to target_total.

    Args:
        skills: Skills with scores and requested question counts
        target_total: Total number of questions wanted
        known_skills: Valid skill names for the class, if available

    Returns:
        DistributionResult with allocations in input order

    Raises:
        ValueError: If no skills are given or target_total < 1
    """
    skill_list = list(skills)
    if not skill_list:
        raise ValueError("At least one skill is required for a distribution")
    if target_total < 1:
        raise ValueError(f"Target question count must be positive, got {target_total}")

    known: set[str] | None = None
    if known_skills is not None:
        known = {_normalize_skill_name(s) for s in known_skills}

    allocations = [
        SkillAllocation(
            skill_name=s.skill_name,
            score=s.score,
            questions=max(MIN_QUESTIONS_PER_SKILL, s.requested_questions),
            requested_questions=s.requested_questions,
            is_known_skill=_match_known(s.skill_name, known),
        )
        for s in skill_list
    ]
    unknown = [a.skill_name for a in allocations if a.is_known_skill is False]
    if unknown:
        logger.warning("distribution_unknown_skills", skills=unknown)

    current = sum(a.questions for a in allocations)
    requested_total = sum(s.requested_questions for s in skill_list)

    if current < target_total:
        weakest = _lowest_score_index(allocations)
        allocations[weakest].questions += target_total - current

    elif current > target_total:
        surplus = current - target_total
        for i in _by_score_descending(allocations):
            if surplus == 0:
                break
            removable = allocations[i].questions - MIN_QUESTIONS_PER_SKILL
            taken = min(removable, surplus)
            allocations[i].questions -= taken
            surplus -= taken

        if surplus > 0:
            logger.warning(
                "distribution_target_below_minimum",
                target_total=target_total,
                skills=len(allocations),
            )

    achieved = sum(a.questions for a in allocations)

    logger.debug(
        "distribution_rebalanced",
        requested_total=requested_total,
        target_total=target_total,
        achieved_total=achieved,
    )

    return DistributionResult(
        allocations=allocations,
        target_total=target_total,
        achieved_total=achieved,
        adjusted=any(a.questions != a.requested_questions for a in allocations),
        unknown_skills=unknown,
    )


def distribution_from_scores(
    skills: Iterable[tuple[str, float]],
    target_total: int,
    known_skills: Iterable[str] | None = None,
) -> DistributionResult:
    """Spread target_total evenly over skills, weakest skills get the remainder.

    Args:
        skills: (skill_name, score) pairs
        target_total: Total number of questions wanted
        known_skills: Valid skill names for the class, if available

    Returns:
        Rebalanced DistributionResult
    """
    pairs = list(skills)
    if not pairs:
        raise ValueError("At least one skill is required for a distribution")

    base, remainder = divmod(target_total, len(pairs))
    weakest_first = sorted(range(len(pairs)), key=lambda i: pairs[i][1])
    extra = set(weakest_first[:remainder])

    requests = [
        SkillRequest(
            skill_name=name,
            score=score,
            requested_questions=base + (1 if i in extra else 0),
        )
        for i, (name, score) in enumerate(pairs)
    ]
    return rebalance_distribution(requests, target_total, known_skills)
