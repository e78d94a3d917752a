"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file is missing.
API keys are never stored in the file, only the names of the
environment variables that hold them.

Usage:
    from gradeflow.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("openai")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")


@dataclass
class ProviderConfig:
    """Configuration for a single LLM provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class RetrySettings:
    """Backoff settings for outbound API calls (seconds)."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter: float = 1.0


@dataclass
class VisionSettings:
    """Google Cloud Vision settings."""

    endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    api_key_env: str = "GOOGLE_CLOUD_VISION_API_KEY"
    timeout: float = 45.0
    language_hints: list[str] = field(default_factory=lambda: ["en"])

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        return os.environ.get(self.api_key_env)


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    default_provider: str = "openai"
    retry: RetrySettings = field(default_factory=RetrySettings)
    vision: VisionSettings = field(default_factory=VisionSettings)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def db_path(self) -> Path:
        """SQLite database location."""
        return Path(self.paths.get("db_path", "db/gradeflow.db"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "openai": {
                "base_url": "https://api.openai.com/v1",
                "default_model": "gpt-4o-mini",
                "api_key_env": "OPENAI_API_KEY",
            },
            "lmstudio": {
                "base_url": "http://localhost:1234/v1",
                "default_model": "llama-3.2-3b-instruct",
                "api_key_env": None,
            },
        },
        "default_provider": "openai",
        "retry": {
            "max_attempts": 3,
            "base_delay": 1.0,
            "max_delay": 8.0,
            "backoff_multiplier": 2.0,
            "jitter": 1.0,
        },
        "vision": {
            "endpoint": "https://vision.googleapis.com/v1/images:annotate",
            "api_key_env": "GOOGLE_CLOUD_VISION_API_KEY",
            "timeout": 45.0,
            "language_hints": ["en"],
        },
        "paths": {
            "db_path": "db/gradeflow.db",
            "config_dir": "data/config",
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    providers = {}
    for name, pconfig in (data.get("providers") or defaults["providers"]).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
        )

    retry_data = {**defaults["retry"], **(data.get("retry") or {})}
    retry = RetrySettings(
        max_attempts=int(retry_data["max_attempts"]),
        base_delay=float(retry_data["base_delay"]),
        max_delay=float(retry_data["max_delay"]),
        backoff_multiplier=float(retry_data["backoff_multiplier"]),
        jitter=float(retry_data["jitter"]),
    )

    vision_data = {**defaults["vision"], **(data.get("vision") or {})}
    vision = VisionSettings(
        endpoint=vision_data["endpoint"],
        api_key_env=vision_data["api_key_env"],
        timeout=float(vision_data["timeout"]),
        language_hints=list(vision_data["language_hints"]),
    )

    paths = {**defaults["paths"], **(data.get("paths") or {})}

    return AppConfig(
        providers=providers,
        default_provider=data.get("default_provider", defaults["default_provider"]),
        retry=retry,
        vision=vision,
        paths=paths,
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, using defaults if no file exists.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "openai", "lmstudio")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
