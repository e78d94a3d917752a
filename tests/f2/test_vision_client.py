"""Tests for the Vision OCR client (HTTP mocked with httpx.MockTransport)."""

import json

import httpx
import pytest

from gradeflow.config.app_config import _parse_config
from gradeflow.core.retry import RetryConfig
from gradeflow.ocr.vision_client import OcrError, VisionClient, VisionConfig

NO_WAIT = RetryConfig(max_attempts=2, base_delay=0, max_delay=0, jitter=0)


def _config(**overrides) -> VisionConfig:
    fields = {"api_key": "k", "retry": NO_WAIT}
    fields.update(overrides)
    return VisionConfig(**fields)


def _client(handler, **overrides) -> VisionClient:
    return VisionClient(config=_config(**overrides), transport=httpx.MockTransport(handler))


def _annotation(text: str, confidence: float | None = None) -> dict:
    entry = {"description": text}
    if confidence is not None:
        entry["confidence"] = confidence
    return {"responses": [{"textAnnotations": [entry, {"description": "word"}]}]}


class TestExtractText:
    """Tests for images:annotate calls."""

    @pytest.mark.asyncio
    async def test_extracts_full_text(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["key"] = request.url.params["key"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_annotation("Exam ID: MATH101\n1. B"))

        result = await _client(handler).extract_text("aW1hZ2U=")

        assert result.text == "Exam ID: MATH101\n1. B"
        assert result.confidence == 0.8
        assert captured["key"] == "k"
        request = captured["body"]["requests"][0]
        assert request["image"] == {"content": "aW1hZ2U="}
        assert [f["type"] for f in request["features"]] == ["TEXT_DETECTION", "DOCUMENT_TEXT_DETECTION"]
        assert request["imageContext"] == {"languageHints": ["en"]}

    @pytest.mark.asyncio
    async def test_uses_reported_confidence(self):
        result = await _client(lambda r: httpx.Response(200, json=_annotation("x", 0.97))).extract_text("x")
        assert result.confidence == 0.97

    @pytest.mark.asyncio
    async def test_no_text_detected(self):
        result = await _client(lambda r: httpx.Response(200, json={"responses": [{}]})).extract_text("x")

        assert result.text == ""
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        with pytest.raises(OcrError, match="not configured"):
            await _client(handler, api_key=None).extract_text("x")

        assert calls == []

    @pytest.mark.asyncio
    async def test_api_error_in_body(self):
        payload = {"responses": [{"error": {"message": "Bad image data"}}]}

        with pytest.raises(OcrError, match="Vision API error: Bad image data"):
            await _client(lambda r: httpx.Response(200, json=payload)).extract_text("x")

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        responses = iter([httpx.Response(503), httpx.Response(200, json=_annotation("ok"))])

        result = await _client(lambda r: next(responses)).extract_text("x")

        assert result.text == "ok"

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403)

        with pytest.raises(OcrError) as exc_info:
            await _client(handler).extract_text("x")

        assert exc_info.value.status == 403
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(OcrError, match="timeout"):
            await _client(handler).extract_text("x")


def test_config_from_app_config(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLOUD_VISION_API_KEY", "vision-key")
    app_config = _parse_config({"vision": {"timeout": 10, "language_hints": ["en", "es"]}})

    config = VisionConfig.from_app_config(app_config)

    assert config.api_key == "vision-key"
    assert config.timeout == 10.0
    assert config.language_hints == ["en", "es"]
    assert config.endpoint.endswith("images:annotate")
