"""Configuration package for gradeflow."""

from gradeflow.config.app_config import (
    AppConfig,
    ProviderConfig,
    RetrySettings,
    VisionSettings,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "ProviderConfig",
    "RetrySettings",
    "VisionSettings",
    "clear_config_cache",
    "get_provider_config",
    "load_app_config",
]
