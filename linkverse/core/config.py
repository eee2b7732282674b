"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8077, ge=1024, le=65535)
    debug: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Backend-as-a-service (PostgREST tables + GoTrue auth)
    baas_url: str = Field(default="http://localhost:54321")
    baas_anon_key: str = Field(default="")
    http_timeout: float = Field(default=10.0, ge=1.0, le=120.0)

    # Shared data cache
    cache_freshness_seconds: float = Field(default=30.0, ge=1.0, le=3600.0)

    # URL enrichment (LLM)
    enrichment_enabled: bool = Field(default=True)
    enrichment_debounce_ms: int = Field(default=300, ge=0, le=5000)
    ai_provider: Literal["openai", "anthropic", "gemini"] = Field(default="openai")
    ai_model: Optional[str] = Field(default=None)
    ai_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    ai_max_tokens: int = Field(default=600, ge=64, le=8192)
    ai_timeout: int = Field(default=30, ge=5, le=300)

    # API Keys (all optional, only the selected provider's key is needed)
    openai_api_key: Optional[str] = Field(default=None)
    anthropic_api_key: Optional[str] = Field(default=None)
    google_ai_api_key: Optional[str] = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_file: Optional[str] = Field(default=None)

    @field_validator("baas_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        """REST paths are joined onto the base URL."""
        return v.rstrip("/")

    @property
    def enrichment_debounce_seconds(self) -> float:
        return self.enrichment_debounce_ms / 1000.0

    def api_key_for(self, provider: str) -> Optional[str]:
        """Return the configured API key for an AI provider."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "gemini": self.google_ai_api_key,
        }.get(provider)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
