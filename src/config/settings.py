"""
Configuration Management for the Financial Insights Service

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so that every external dependency
(AI providers, cache policy) is visible in one place. Provider API keys
are OPTIONAL: a missing key simply marks that provider as unavailable and
the pipeline falls through to the next step.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key (provider disabled when unset)"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class OpenAISettings(BaseSettings):
    """OpenAI chat completion configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OPENAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (provider disabled when unset)"
    )
    model_name: str = Field(
        default="gpt-3.5-turbo",
        description="Chat model to use"
    )
    max_tokens: int = Field(
        default=1500,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Client-side timeout for a single completion call"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class InsightSettings(BaseSettings):
    """Insight pipeline policy: cache lifetime, defaults, provider order."""

    model_config = SettingsConfigDict(
        env_prefix="INSIGHTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cache_ttl_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a generated insight stays cached"
    )
    default_user_id: str = Field(
        default="current-user",
        description="User id assumed when the request omits one"
    )
    default_currency: str = Field(
        default="USD",
        description="Currency assumed when the request omits one"
    )
    provider_order: str = Field(
        default="gemini,openai",
        description="Comma-separated provider names, tried in this order"
    )

    @field_validator("provider_order")
    @classmethod
    def validate_provider_order(cls, v: str) -> str:
        """Only known provider names may appear in the chain."""
        known = {"gemini", "openai"}
        names = [name.strip().lower() for name in v.split(",") if name.strip()]
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"Unknown provider(s): {', '.join(unknown)}")
        return ",".join(names)

    @property
    def provider_order_list(self) -> list[str]:
        """Get provider order as a list."""
        return [name for name in self.provider_order.split(",") if name]


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Audit trail
    audit_buffer_size: int = Field(
        default=1000,
        ge=0,
        le=100000,
        description="Number of recent audit events kept in memory (0 disables)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def openai(self) -> OpenAISettings:
        return OpenAISettings()

    @property
    def insights(self) -> InsightSettings:
        return InsightSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings and report which providers are configured.

    Returns a dict of {setting_name: is_valid}, plus
    {provider_name}_configured flags for the AI providers.
    Useful for startup checks and the health endpoint.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    try:
        gemini = settings.gemini
        results["gemini"] = True
        results["gemini_configured"] = gemini.is_configured
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        openai = settings.openai
        results["openai"] = True
        results["openai_configured"] = openai.is_configured
    except Exception as e:
        results["openai"] = False
        results["openai_error"] = str(e)

    try:
        _ = settings.insights
        results["insights"] = True
    except Exception as e:
        results["insights"] = False
        results["insights_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
