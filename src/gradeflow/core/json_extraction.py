"""JSON extraction from free-form LLM output.

Models often wrap JSON in prose, markdown fences or emit trailing commas.
Strategies are tried in order and the first successful parse wins:

1. direct: parse the whole text
2. fenced: parse the first ``` / ```json code block
3. braces: parse from the first "{" to the last "}"
4. cleaned: strip fences, normalise whitespace, drop trailing commas
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

# Some models emit <think>...</think> blocks that break JSON parsing
SANITIZE_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<analysis>.*?</analysis>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
_BRACE_SPAN = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


class JSONExtractionError(ValueError):
    """No strategy produced valid JSON."""

    pass


def sanitize_llm_output(text: str) -> str:
    """Remove thinking/reasoning tags before parsing."""
    result = text
    for pattern in SANITIZE_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


def _parse_direct(text: str) -> Any:
    return json.loads(text)


def _parse_fenced(text: str) -> Any:
    match = _FENCED_BLOCK.search(text)
    if not match:
        raise ValueError("no fenced block")
    return json.loads(match.group(1).strip())


def _parse_braces(text: str) -> Any:
    match = _BRACE_SPAN.search(text)
    if not match:
        raise ValueError("no brace span")
    return json.loads(match.group(0))


def clean_json_text(text: str) -> str:
    """Apply the usual repairs to a near-JSON string."""
    cleaned = text.strip()
    cleaned = re.sub(r"^```(?:json|JSON)?\s*", "", cleaned)
    cleaned = re.sub(r"\s*```$", "", cleaned)
    cleaned = re.sub(r"[\r\n\t]", " ", cleaned)

    match = _BRACE_SPAN.search(cleaned)
    if match:
        cleaned = match.group(0)

    return _TRAILING_COMMA.sub(r"\1", cleaned).strip()


def _parse_cleaned(text: str) -> Any:
    return json.loads(clean_json_text(text))


STRATEGIES: list[tuple[str, Callable[[str], Any]]] = [
    ("direct", _parse_direct),
    ("fenced", _parse_fenced),
    ("braces", _parse_braces),
    ("cleaned", _parse_cleaned),
]


def extract_json_with_strategy(text: str) -> tuple[Any, str]:
    """Parse JSON from text and report which strategy succeeded.

    Args:
        text: Raw model output

    Returns:
        Tuple of (parsed value, strategy name)

    Raises:
        JSONExtractionError: If every strategy fails
    """
    content = sanitize_llm_output(text or "")

    for name, strategy in STRATEGIES:
        try:
            parsed = strategy(content)
        except ValueError:
            # json.JSONDecodeError is a ValueError
            continue
        logger.debug("json_extracted", strategy=name, chars=len(content))
        return parsed, name

    raise JSONExtractionError(f"No valid JSON found in response: {content[:200]}")


def extract_json(text: str) -> Any:
    """Parse JSON from text using the multi-strategy fallback chain."""
    parsed, _ = extract_json_with_strategy(text)
    return parsed


def extract_json_object(text: str) -> dict[str, Any]:
    """Like extract_json, but the result must be a JSON object."""
    parsed = extract_json(text)
    if not isinstance(parsed, dict):
        raise JSONExtractionError(
            f"No valid JSON found in response: expected object, got {type(parsed).__name__}"
        )
    return parsed


# =============================================================================
# VALUE COERCION
# =============================================================================

# First number in a string: "15 minutes" -> 15, "85.5%" -> 85.5
_LEADING_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def coerce_number(value: Any, default: float = 0) -> float:
    """Read a number from a model-provided field.

    Models return numbers as strings with units or percent signs. The first
    number found is used; anything without one yields ``default``.

    Args:
        value: Raw JSON value
        default: Returned when no number can be read

    Returns:
        Parsed float or default
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else default
    if isinstance(value, str):
        match = _LEADING_NUMBER.search(value.replace(",", ""))
        if match:
            return float(match.group(0))
    return default


def coerce_int(value: Any, default: int = 0) -> int:
    """Like coerce_number, truncated to an int."""
    return int(coerce_number(value, default))
