"""Async LLM client for OpenAI-compatible chat-completions endpoints.

Provides a unified interface for LLM interactions used by grading,
practice generation and tutor chat.

Supported providers:
- openai: OpenAI API (default, gpt-4o-mini)
- lmstudio: Local LM Studio server (OpenAI-compatible API)

Every request goes through gradeflow.core.retry.with_retry, so rate limits,
timeouts and upstream 5xx errors are retried with backoff.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from openai import AsyncOpenAI

from gradeflow.config.app_config import AppConfig, load_app_config
from gradeflow.core.json_extraction import JSONExtractionError, extract_json_object
from gradeflow.core.retry import RetryConfig, with_retry

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["openai", "lmstudio"]

DEFAULT_CONFIG_PATH = Path("configs/models.yaml")

PROVIDER_DEFAULTS: dict[str, dict[str, Any]] = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
    },
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
        "api_key": "lm-studio",  # LM Studio doesn't need a real API key
    },
}

PROVIDER_CAPABILITIES_DEFAULTS: dict[str, dict[str, bool]] = {
    "openai": {"supports_json_object": True},
    "lmstudio": {"supports_json_object": False},
}

JSON_REPAIR_PROMPT = """Fix the following text and return ONLY valid JSON:
<<<
{invalid_output}
>>>

Respond with the corrected JSON only, no explanations and no markdown."""


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: Provider = "openai"
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: int = 60
    api_key: str | None = None
    supports_json_object: bool | None = None
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> LLMConfig:
        """Load configuration from a models YAML file."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if not config_path.exists():
            logger.warning("config_not_found", path=str(config_path))
            return cls(api_key=os.environ.get("OPENAI_API_KEY"))

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        llm_config = data.get("llm", {})

        provider = llm_config.get("provider", "openai")
        defaults = PROVIDER_DEFAULTS.get(provider, {})

        api_key = None
        if "api_key_env" in defaults:
            api_key = os.environ.get(defaults["api_key_env"])
        elif "api_key" in defaults:
            api_key = defaults["api_key"]

        return cls(
            provider=provider,
            base_url=llm_config.get("base_url", defaults.get("base_url", "")),
            model=llm_config.get("model", "gpt-4o-mini"),
            temperature=llm_config.get("temperature", 0.7),
            max_tokens=llm_config.get("max_tokens", 2000),
            timeout=llm_config.get("timeout", 60),
            api_key=api_key,
            supports_json_object=llm_config.get("supports_json_object", None),
        )

    @classmethod
    def from_app_config(cls, app_config: AppConfig | None = None) -> LLMConfig:
        """Build from the application config (provider + retry settings)."""
        if app_config is None:
            app_config = load_app_config()

        provider = app_config.default_provider
        pconfig = app_config.providers.get(provider)
        defaults = PROVIDER_DEFAULTS.get(provider, {})

        api_key = pconfig.get_api_key() if pconfig else None
        if api_key is None and "api_key" in defaults:
            api_key = defaults["api_key"]

        r = app_config.retry
        return cls(
            provider=provider,  # type: ignore[arg-type]
            base_url=(pconfig.base_url if pconfig and pconfig.base_url else defaults.get("base_url", "")),
            model=pconfig.default_model if pconfig else "gpt-4o-mini",
            api_key=api_key,
            retry=RetryConfig(
                max_attempts=r.max_attempts,
                base_delay=r.base_delay,
                max_delay=r.max_delay,
                backoff_multiplier=r.backoff_multiplier,
                jitter=r.jitter,
            ),
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for API call."""
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def prompt_tokens(self) -> int:
        """Get prompt token count."""
        return self.usage.get("prompt_tokens", 0)

    @property
    def completion_tokens(self) -> int:
        """Get completion token count."""
        return self.usage.get("completion_tokens", 0)

    @property
    def total_tokens(self) -> int:
        """Get total token count."""
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class LLMConnectionError(LLMError):
    """Error connecting to LLM server."""

    pass


class LLMResponseError(LLMError):
    """Error in LLM response."""

    pass


class LLMConfigurationError(LLMError):
    """Missing or invalid LLM configuration (e.g. no API key)."""

    pass


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Unified async client for chat completions with retry and JSON parsing."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        provider: Provider | None = None,
        model: str | None = None,
    ):
        """Initialize LLM client.

        Args:
            config: LLM configuration (built from app config if not provided)
            provider: Override provider from config
            model: Override model from config
        """
        if config is None:
            config = LLMConfig.from_app_config()

        self.config = config

        if provider is not None:
            self.config.provider = provider
            defaults = PROVIDER_DEFAULTS.get(provider, {})
            if "base_url" in defaults:
                self.config.base_url = defaults["base_url"]
            if "api_key_env" in defaults:
                self.config.api_key = os.environ.get(defaults["api_key_env"])
            elif "api_key" in defaults:
                self.config.api_key = defaults["api_key"]

        if model is not None:
            self.config.model = model

        self._client = AsyncOpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
            max_retries=0,  # retries handled by with_retry
        )

        logger.info(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    def _supports_json_object(self) -> bool:
        """Check if current provider supports response_format json_object."""
        if self.config.supports_json_object is not None:
            return self.config.supports_json_object

        caps = PROVIDER_CAPABILITIES_DEFAULTS.get(self.config.provider, {})
        return caps.get("supports_json_object", False)

    def _ensure_configured(self) -> None:
        if self.config.provider == "openai" and not self.config.api_key:
            raise LLMConfigurationError("OpenAI API key not configured")

    async def _create_completion(self, request_kwargs: dict[str, Any]) -> Any:
        """Single API call, with SDK errors mapped to LLMError."""
        try:
            return await self._client.chat.completions.create(**request_kwargs)
        except Exception as e:
            error_msg = str(e)
            status = getattr(e, "status_code", None)
            if "Connection" in error_msg or "connect" in error_msg.lower():
                raise LLMConnectionError(
                    f"Could not connect to {self.config.provider} at {self.config.base_url}: {e}",
                    status=status,
                ) from e
            raise LLMError(f"OpenAI API error: {e}", status=status) from e

    async def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send chat completion request.

        Args:
            messages: List of messages in conversation
            temperature: Override default temperature
            max_tokens: Override default max tokens
            json_mode: Request JSON response format (only if provider supports it)

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMConfigurationError: If the API key is missing
            LLMConnectionError: If cannot connect to server
            LLMResponseError: If response is invalid
        """
        self._ensure_configured()

        if temperature is None:
            temperature = self.config.temperature
        if max_tokens is None:
            max_tokens = self.config.max_tokens

        request_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if json_mode and self._supports_json_object():
            request_kwargs["response_format"] = {"type": "json_object"}

        start_time = time.time()

        response = await with_retry(
            lambda: self._create_completion(request_kwargs),
            self.config.retry,
            operation_name="chat_completion",
        )

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.choices:
            raise LLMResponseError("Empty response from LLM")

        content = response.choices[0].message.content or ""

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_response",
            provider=self.config.provider,
            model=response.model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=latency_ms,
        )

    async def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 1,
    ) -> dict[str, Any]:
        """Send chat request expecting a JSON object back.

        Args:
            messages: List of messages
            temperature: Override temperature
            max_tokens: Override max tokens
            max_retries: Number of repair round trips on parse failure

        Returns:
            Parsed JSON as dictionary

        Raises:
            LLMResponseError: If response is not valid JSON after retries
        """
        response = await self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )

        try:
            return extract_json_object(response.content)
        except JSONExtractionError:
            pass

        if max_retries > 0:
            logger.warning(
                "json_parse_failed_retrying",
                content=response.content[:100],
                provider=self.config.provider,
            )

            repair_prompt = JSON_REPAIR_PROMPT.format(
                invalid_output=response.content[:1000]
            )
            retry_messages = messages + [
                Message(role="assistant", content=response.content),
                Message(role="user", content=repair_prompt),
            ]

            retry_response = await self.chat(
                retry_messages,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
            )

            try:
                parsed = extract_json_object(retry_response.content)
            except JSONExtractionError:
                pass
            else:
                logger.info("json_parse_recovered_after_retry")
                return parsed

        raise LLMResponseError(
            f"Could not extract valid JSON from LLM response: {response.content[:200]}..."
        )

    async def simple_chat(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Single-turn chat with system prompt and user message.

        Returns:
            Response content as string
        """
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]

        response = await self.chat(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        return response.content

    async def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Single-turn chat expecting a JSON object."""
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]

        return await self.chat_json(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def is_available(self) -> bool:
        """Check if the LLM server responds.

        Returns:
            True if server responds, False otherwise
        """
        try:
            await self._client.models.list()
            return True
        except Exception as e:
            logger.debug("llm_unavailable", error=str(e))
            return False
