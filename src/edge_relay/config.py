"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class ConfigurationError(Exception):
    """Raised when a required setting (usually an API key) is missing."""


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "gemini_api_key"),
    )
    anthropic_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("ANTHROPIC_API_KEY", "anthropic_api_key"),
    )
    xai_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("XAI_API_KEY", "xai_api_key"),
    )

    gemini_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://generativelanguage.googleapis.com"),
        validation_alias=AliasChoices("GEMINI_BASE_URL", "gemini_base_url"),
    )
    anthropic_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.anthropic.com"),
        validation_alias=AliasChoices("ANTHROPIC_BASE_URL", "anthropic_base_url"),
    )
    xai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.x.ai"),
        validation_alias=AliasChoices("XAI_BASE_URL", "xai_base_url"),
    )

    supabase_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "supabase_url"),
    )
    supabase_anon_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "supabase_anon_key"),
    )
    supabase_service_role_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUPABASE_SERVICE_ROLE_KEY", "supabase_service_role_key"
        ),
    )
    tools_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("TOOLS_BASE_URL", "tools_base_url"),
    )

    # None means no client-side timeout; the hosting layer decides.
    upstream_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("UPSTREAM_TIMEOUT", "upstream_timeout"),
    )
    default_max_output_tokens: int = Field(
        default=32768,
        ge=1,
        validation_alias=AliasChoices(
            "DEFAULT_MAX_OUTPUT_TOKENS", "default_max_output_tokens"
        ),
    )
    vision_batch_size: int = Field(
        default=5,
        ge=1,
        validation_alias=AliasChoices("VISION_BATCH_SIZE", "vision_batch_size"),
    )
    context_char_limit: int = Field(
        default=50000,
        ge=0,
        validation_alias=AliasChoices("CONTEXT_CHAR_LIMIT", "context_char_limit"),
    )

    @property
    def resolved_tools_base_url(self) -> str | None:
        """Return the base URL for auxiliary tool functions, if any."""

        if self.tools_base_url is not None:
            return str(self.tools_base_url).rstrip("/")
        if self.supabase_url is not None:
            return f"{str(self.supabase_url).rstrip('/')}/functions/v1"
        return None

    @property
    def supabase_key(self) -> SecretStr | None:
        return self.supabase_anon_key or self.supabase_service_role_key

    def require_secret(self, field_name: str, env_name: str) -> str:
        """Return a configured secret or raise `ConfigurationError`."""

        value: SecretStr | None = getattr(self, field_name)
        if value is None or not value.get_secret_value():
            raise ConfigurationError(f"{env_name} is not configured")
        return value.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["ConfigurationError", "PROJECT_ROOT", "Settings", "get_settings"]
