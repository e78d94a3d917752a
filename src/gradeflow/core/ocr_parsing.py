"""Parsing helpers for OCR-extracted submission text.

- detect_exam_id: link a scanned submission to its stored answer key
- detect_student_id: find the student ID printed or written on the sheet
- extract_questions_from_text: numbered questions and selected options
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Literal

DetectionMethod = Literal["header", "form_field", "filename", "none"]

EXAM_ID_PATTERNS = [
    re.compile(r"(?:Exam|Test|Quiz)\s*(?:ID|#)?\s*:?\s*([A-Z0-9\-_]+)", re.IGNORECASE),
    re.compile(r"ID:\s*([A-Z0-9\-_]+)", re.IGNORECASE),
    re.compile(r"^([A-Z]{2,4}\d{2,4})", re.MULTILINE),
]

STUDENT_ID_PATTERNS = [
    re.compile(r"(?:student\s*id|id|student\s*#|id\s*#)\s*:?\s*([A-Z0-9]{4,12})", re.IGNORECASE),
    re.compile(r"(?:^|\s)([A-Z]{2,4}\d{4,8})(?:\s|$)", re.MULTILINE),
    re.compile(r"(?:^|\s)(\d{6,10})(?:\s|$)", re.MULTILINE),
    re.compile(r"(?:^|\s)([A-Z]\d{6,9})(?:\s|$)", re.MULTILINE),
    re.compile(r"(?:^|\s)(\d{2}[A-Z]{2,3}\d{4,6})(?:\s|$)", re.MULTILINE),
    re.compile(r"Student\s+ID:\s*([A-Z0-9]{4,12})", re.IGNORECASE),
    re.compile(r"ID:\s*([A-Z0-9]{4,12})", re.IGNORECASE),
]

FORM_FIELD_PATTERNS = [
    re.compile(r"(?:Student\s*ID|Student\s*#|ID)\s*:?\s*([A-Z0-9]{4,12})", re.IGNORECASE),
    re.compile(r"Student:\s*([A-Z0-9]{4,12})", re.IGNORECASE),
    re.compile(r"ID:\s*([A-Z0-9]{4,12})", re.IGNORECASE),
]

RESERVED_WORDS = re.compile(
    r"^(test|exam|quiz|name|student|answer|key|page|question|true|false|yes|no|none|null)$",
    re.IGNORECASE,
)

_VALID_ID_CHARS = re.compile(r"^[A-Za-z0-9\-_]+$")
_QUESTION_LINE = re.compile(r"^(\d+)[.)\s]")
_ANSWER_LINE = re.compile(r"(?:Answer|Selected):\s*([A-E])", re.IGNORECASE)

ANSWER_LOOKAHEAD_LINES = 9


@dataclass
class StudentIdDetection:
    """Result of student ID detection."""

    detected_id: str | None
    confidence: float
    method: DetectionMethod

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "detectedId": self.detected_id,
            "confidence": self.confidence,
            "detectionMethod": self.method,
        }


@dataclass
class DetectedQuestion:
    """A numbered question found in OCR text."""

    question_number: int
    question_text: str
    selected_option: str | None
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "questionNumber": self.question_number,
            "questionText": self.question_text,
            "selectedAnswer": (
                {"optionLetter": self.selected_option, "confidence": self.confidence}
                if self.selected_option
                else None
            ),
            "confidence": self.confidence,
        }


def detect_exam_id(text: str, file_name: str = "") -> str:
    """Find the exam ID in text, then in the file name, else generate one."""
    for pattern in EXAM_ID_PATTERNS:
        match = pattern.search(text)
        if match and len(match.group(1)) >= 3:
            return match.group(1)

    file_match = re.search(r"([A-Z0-9\-_]{3,})", file_name, re.IGNORECASE)
    if file_match:
        return file_match.group(1)

    return f"EXAM_{str(int(time.time() * 1000))[-6:]}"


def is_valid_student_id(value: str) -> bool:
    """4-12 alphanumeric (plus - and _) characters, not a common word."""
    candidate = value.strip()
    if not 4 <= len(candidate) <= 12:
        return False
    if not _VALID_ID_CHARS.match(candidate):
        return False
    return not RESERVED_WORDS.match(candidate)


def _first_valid(patterns: list[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match and is_valid_student_id(match.group(1)):
            return match.group(1).strip()
    return None


def _clean_file_name(file_name: str) -> str:
    name = re.sub(r"\.(pdf|jpg|jpeg|png|tiff?)$", "", file_name, flags=re.IGNORECASE)
    name = re.sub(r"^(test|exam|quiz|assignment)_?", "", name, flags=re.IGNORECASE)
    return name.replace("_", " ").strip()


def detect_student_id(text: str, file_name: str | None = None) -> StudentIdDetection:
    """Detect a student ID: header lines first, then form fields, then file name.

    Args:
        text: OCR-extracted text
        file_name: Original upload name, if known

    Returns:
        StudentIdDetection with method "none" when nothing matched
    """
    header = "\n".join(text.split("\n")[:5])
    found = _first_valid(STUDENT_ID_PATTERNS, header)
    if found:
        return StudentIdDetection(found, 0.98, "header")

    found = _first_valid(FORM_FIELD_PATTERNS, text)
    if found:
        return StudentIdDetection(found, 0.95, "form_field")

    if file_name:
        found = _first_valid(STUDENT_ID_PATTERNS, _clean_file_name(file_name))
        if found:
            return StudentIdDetection(found, 0.85, "filename")

    return StudentIdDetection(None, 0.0, "none")


def extract_questions_from_text(text: str) -> list[DetectedQuestion]:
    """Find numbered questions and any "Answer: X" line that follows them."""
    questions: list[DetectedQuestion] = []
    lines = text.split("\n")

    for i, raw in enumerate(lines):
        line = raw.strip()
        match = _QUESTION_LINE.match(line)
        if not match:
            continue

        number = int(match.group(1))
        question_text = line[len(match.group(0)):].strip()

        selected = None
        for follow in lines[i + 1 : i + 1 + ANSWER_LOOKAHEAD_LINES]:
            answer = _ANSWER_LINE.search(follow)
            if answer:
                selected = answer.group(1).upper()
                break

        questions.append(
            DetectedQuestion(
                question_number=number,
                question_text=question_text or f"Question {number}",
                selected_option=selected,
                confidence=0.7 if selected else 0.0,
            )
        )

    return questions
