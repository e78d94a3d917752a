"""Error classification and fallback practice content.

classify_error turns any exception into the user-facing error envelope.
build_fallback_practice_test picks the first matching recovery strategy
and returns a simplified PracticeTest so a batch of tests never comes back
empty-handed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import structlog

from gradeflow.core.practice_test import PracticeQuestion, PracticeTest

logger = structlog.get_logger(__name__)

# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

DEFAULT_ERROR_MESSAGE = "Failed to generate practice test. Please try again."

# (substring, user-facing message), first match wins
ERROR_MESSAGES: list[tuple[str, str]] = [
    ("API key", "API configuration error. Please contact support."),
    ("OpenAI API", "OpenAI service is temporarily unavailable. Please try again in a moment."),
    ("JSON", "Generated content format error. Please try again."),
    ("Content Skills", "Unable to load skill information for this class. Please check the class setup."),
    ("curriculum", "Unable to load skill information for this class. Please check the class setup."),
    ("rate limit", "Rate limit reached. Please wait a moment and try again."),
]

RETRYABLE_HINTS = ("server had an error", "temporarily unavailable", "rate limit", "timeout")


@dataclass
class ErrorInfo:
    """User-facing description of a failure."""

    message: str
    details: str
    retryable: bool

    def to_envelope(self) -> dict[str, Any]:
        """JSON body returned with HTTP 500."""
        return {
            "error": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


def classify_error(error: BaseException, default_message: str = DEFAULT_ERROR_MESSAGE) -> ErrorInfo:
    """Map an exception to a friendly message and a retryable flag."""
    details = str(error) or type(error).__name__

    message = default_message
    for needle, friendly in ERROR_MESSAGES:
        if needle in details:
            message = friendly
            break

    lowered = details.lower()
    retryable = any(hint in lowered for hint in RETRYABLE_HINTS)

    return ErrorInfo(message=message, details=details, retryable=retryable)


# =============================================================================
# FALLBACK PRACTICE TESTS
# =============================================================================


@dataclass
class FallbackContext:
    """What a recovery strategy knows about the failed request."""

    skill_name: str
    student_name: str = "the student"
    class_name: str = "this class"


@dataclass
class RecoveryStrategy:
    """A named recovery: matcher plus builder, lower priority runs first."""

    name: str
    priority: int
    can_handle: Callable[[str], bool]
    build: Callable[[FallbackContext], PracticeTest]


def _skill_distribution_test(ctx: FallbackContext) -> PracticeTest:
    return PracticeTest(
        title=f"{ctx.class_name} - {ctx.skill_name}",
        description=f"Practice test for {ctx.student_name} (simplified due to generation issues)",
        questions=[
            PracticeQuestion(
                id="Q1",
                type="short-answer",
                question=f'Please describe what you know about "{ctx.skill_name}" and provide an example.',
                correct_answer="Student should demonstrate understanding of the skill concept",
                points=3,
            ),
            PracticeQuestion(
                id="Q2",
                type="multiple-choice",
                question=f'Which of the following best relates to "{ctx.skill_name}"?',
                options=[
                    "Apply the concept in practice",
                    "Memorize the definition only",
                    "Skip this topic entirely",
                    "Ask for help when needed",
                ],
                correct_answer="Apply the concept in practice",
                points=2,
            ),
        ],
        total_points=5,
        estimated_time=15,
        skill_name=ctx.skill_name,
        is_fallback=True,
    )


def _network_test(ctx: FallbackContext) -> PracticeTest:
    return PracticeTest(
        title=f"Quick Practice - {ctx.skill_name}",
        description=f"Offline practice for {ctx.student_name} while service recovers",
        questions=[
            PracticeQuestion(
                id="Q1",
                type="short-answer",
                question=f'What is one important thing you remember about "{ctx.skill_name}"?',
                correct_answer="Any relevant concept or example",
                points=2,
            )
        ],
        total_points=2,
        estimated_time=10,
        skill_name=ctx.skill_name,
        is_fallback=True,
    )


def _format_test(ctx: FallbackContext) -> PracticeTest:
    return PracticeTest(
        title=f"Study Guide - {ctx.skill_name}",
        description=f"Study guide for {ctx.student_name} (format recovery mode)",
        questions=[
            PracticeQuestion(
                id="Q1",
                type="true-false",
                question=f"{ctx.skill_name} is an important skill to master in {ctx.class_name}.",
                correct_answer="True",
                points=1,
            ),
            PracticeQuestion(
                id="Q2",
                type="short-answer",
                question=f'Explain how you would use "{ctx.skill_name}" in a real situation.',
                correct_answer="Student should provide practical application example",
                points=2,
            ),
        ],
        total_points=3,
        estimated_time=12,
        skill_name=ctx.skill_name,
        is_fallback=True,
    )


def _general_test(ctx: FallbackContext) -> PracticeTest:
    return PracticeTest(
        title=f"Practice Session - {ctx.skill_name}",
        description=f"Basic practice for {ctx.student_name}. Please discuss with instructor.",
        questions=[
            PracticeQuestion(
                id="Q1",
                type="short-answer",
                question=f'Please write down everything you know about "{ctx.skill_name}".',
                correct_answer="Any relevant information about the skill",
                points=1,
            )
        ],
        total_points=1,
        estimated_time=5,
        skill_name=ctx.skill_name,
        is_fallback=True,
    )


STRATEGIES: list[RecoveryStrategy] = sorted(
    [
        RecoveryStrategy(
            name="skill_distribution_fixer",
            priority=1,
            can_handle=lambda msg: "skill distribution" in msg or ("Question" in msg and "missing" in msg),
            build=_skill_distribution_test,
        ),
        RecoveryStrategy(
            name="network_error_recovery",
            priority=2,
            can_handle=lambda msg: any(
                s in msg for s in ("temporarily unavailable", "rate limit", "timeout", "network")
            ),
            build=_network_test,
        ),
        RecoveryStrategy(
            name="response_format_recovery",
            priority=3,
            can_handle=lambda msg: any(s in msg for s in ("JSON", "format", "parse")),
            build=_format_test,
        ),
        RecoveryStrategy(
            name="general_fallback",
            priority=99,
            can_handle=lambda msg: True,
            build=_general_test,
        ),
    ],
    key=lambda s: s.priority,
)


def select_strategy(error: BaseException) -> RecoveryStrategy:
    """First strategy (by priority) that accepts the error message."""
    message = str(error)
    for strategy in STRATEGIES:
        if strategy.can_handle(message):
            return strategy
    return STRATEGIES[-1]


def build_fallback_practice_test(error: BaseException, context: FallbackContext) -> PracticeTest:
    """Build placeholder practice content for a failed generation.

    Args:
        error: The exception that stopped generation
        context: Skill, student and class names for the placeholder text

    Returns:
        PracticeTest with is_fallback set
    """
    strategy = select_strategy(error)
    logger.warning(
        "practice_test_fallback_applied",
        strategy=strategy.name,
        skill=context.skill_name,
        error=str(error),
    )
    return strategy.build(context)
