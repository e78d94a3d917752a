"""Google Cloud Vision OCR client.

Sends base64 image content to images:annotate with TEXT_DETECTION and
DOCUMENT_TEXT_DETECTION and returns the full detected text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from gradeflow.config.app_config import AppConfig, load_app_config
from gradeflow.core.retry import RetryConfig, with_retry

logger = structlog.get_logger(__name__)

DEFAULT_CONFIDENCE = 0.8


@dataclass
class VisionConfig:
    """Configuration for the Vision client."""

    api_key: str | None = None
    endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    timeout: float = 45.0
    language_hints: list[str] = field(default_factory=lambda: ["en"])
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_app_config(cls, app_config: AppConfig | None = None) -> VisionConfig:
        """Build from the application config."""
        if app_config is None:
            app_config = load_app_config()
        v = app_config.vision
        r = app_config.retry
        return cls(
            api_key=v.get_api_key(),
            endpoint=v.endpoint,
            timeout=v.timeout,
            language_hints=list(v.language_hints),
            retry=RetryConfig(
                max_attempts=r.max_attempts,
                base_delay=r.base_delay,
                max_delay=r.max_delay,
                backoff_multiplier=r.backoff_multiplier,
                jitter=r.jitter,
            ),
        )


@dataclass
class OcrResult:
    """Text detected in one image."""

    text: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"extractedText": self.text, "confidence": self.confidence}


class OcrError(Exception):
    """Error calling the OCR service."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class VisionClient:
    """Async client for the Vision images:annotate endpoint."""

    def __init__(
        self,
        config: VisionConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or VisionConfig.from_app_config()
        self._transport = transport

    def build_request(self, image_b64: str) -> dict[str, Any]:
        """Request body for a single image."""
        return {
            "requests": [
                {
                    "image": {"content": image_b64},
                    "features": [
                        {"type": "TEXT_DETECTION", "maxResults": 1},
                        {"type": "DOCUMENT_TEXT_DETECTION", "maxResults": 1},
                    ],
                    "imageContext": {"languageHints": self.config.language_hints},
                }
            ]
        }

    @staticmethod
    def parse_response(payload: dict[str, Any]) -> OcrResult:
        """Pull the full-text annotation out of a Vision response."""
        responses = payload.get("responses") or [{}]
        first = responses[0] or {}

        if "error" in first:
            message = first["error"].get("message", "unknown error")
            raise OcrError(f"Vision API error: {message}")

        annotations = first.get("textAnnotations") or []
        if not annotations:
            return OcrResult(text="", confidence=0.0)

        top = annotations[0]
        return OcrResult(
            text=top.get("description", "") or "",
            confidence=float(top.get("confidence") or DEFAULT_CONFIDENCE),
        )

    async def _annotate(self, body: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=self.config.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self.config.endpoint,
                    params={"key": self.config.api_key},
                    json=body,
                )
            except httpx.TimeoutException as e:
                raise OcrError(f"Vision API timeout: {e}") from e
            except httpx.HTTPError as e:
                raise OcrError(f"Vision API request failed: {e}") from e

        if response.status_code >= 400:
            raise OcrError(
                f"Vision API error: {response.status_code}",
                status=response.status_code,
            )
        return response.json()

    async def extract_text(self, image_b64: str) -> OcrResult:
        """Run OCR on base64 image content.

        Args:
            image_b64: Base64-encoded image bytes

        Returns:
            OcrResult (empty text and zero confidence if nothing was detected)

        Raises:
            OcrError: If the API key is missing or the call fails
        """
        if not self.config.api_key:
            raise OcrError("Google Cloud Vision API key not configured")

        body = self.build_request(image_b64)
        payload = await with_retry(
            lambda: self._annotate(body),
            self.config.retry,
            operation_name="vision_annotate",
        )
        result = self.parse_response(payload)

        logger.info(
            "ocr_text_extracted",
            chars=len(result.text),
            confidence=result.confidence,
        )
        return result
