"""Shared FastAPI dependencies and error responses."""

from __future__ import annotations

from functools import lru_cache

import structlog
from fastapi import status
from fastapi.responses import JSONResponse

from gradeflow.core.errors import DEFAULT_ERROR_MESSAGE, classify_error
from gradeflow.llm.client import LLMClient
from gradeflow.ocr.vision_client import VisionClient

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    """LLM client built from the app config, shared across requests."""
    return LLMClient()


@lru_cache(maxsize=1)
def get_vision_client() -> VisionClient:
    """Vision OCR client built from the app config, shared across requests."""
    return VisionClient()


def error_response(
    error: Exception,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    operation: str = "request",
    default_message: str = DEFAULT_ERROR_MESSAGE,
) -> JSONResponse:
    """Log the failure and return the classified error envelope."""
    info = classify_error(error, default_message)
    logger.error(
        "request_failed",
        operation=operation,
        error=info.details,
        retryable=info.retryable,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=info.to_envelope())
