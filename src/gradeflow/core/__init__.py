"""Core business logic.

Modules:
- retry: async retry with exponential backoff
- json_extraction: JSON recovery from LLM output
- skill_distribution: per-skill question allocation
- ocr_parsing: exam/student ID and question detection in OCR text
- errors: error classification and fallback practice content
- practice_test: practice test generation
- student_practice: adaptive per-student exercises
- recommendation: weakest-skill practice recommendation
- test_analyzer: answer-key based grading
- tutor_chat: learning assistant chat
"""

__all__ = [
    "retry",
    "json_extraction",
    "skill_distribution",
    "ocr_parsing",
    "errors",
    "practice_test",
    "student_practice",
    "recommendation",
    "test_analyzer",
    "tutor_chat",
]
