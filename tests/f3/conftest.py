"""Fixtures for Web API tests.

The app is used without entering its lifespan, so startup never touches
the configured database; each test gets its own temp database instead.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from gradeflow.db.database import init_db
from gradeflow.llm.client import LLMResponse
from gradeflow.ocr.vision_client import OcrResult
from gradeflow.web.api import create_app
from gradeflow.web.dependencies import get_llm_client, get_vision_client


def _response(content) -> LLMResponse:
    text = content if isinstance(content, str) else json.dumps(content)
    return LLMResponse(content=text, model="gpt-4o-mini", provider="openai")


@pytest.fixture
def llm_response():
    """Factory: LLMResponse from a string or a JSON-serializable object."""
    return _response


@pytest.fixture
def api_db(tmp_path):
    db_path = tmp_path / "api.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def llm():
    client = MagicMock()
    client.chat = AsyncMock(return_value=_response("{}"))
    client.simple_chat = AsyncMock(return_value="")
    client.simple_json = AsyncMock(return_value={})
    client.is_available = AsyncMock(return_value=True)
    return client


@pytest.fixture
def vision():
    client = MagicMock()
    client.extract_text = AsyncMock(return_value=OcrResult(text="", confidence=0.0))
    return client


@pytest.fixture
def client(api_db, llm, vision):
    """TestClient with the LLM and Vision clients replaced by mocks."""
    app = create_app()
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_vision_client] = lambda: vision
    return TestClient(app)
