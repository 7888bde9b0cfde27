"""Configuration package."""

from src.config.settings import (
    AppSettings,
    GeminiSettings,
    InsightSettings,
    OpenAISettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "InsightSettings",
    "OpenAISettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
