"""Configuration models for the gateway and RAG pipeline."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseModel):
    """Configures the tool gateway and its rate limiter."""

    server_name: str = Field(default="platform", min_length=1)
    description: str = "Platform operations and learning tools"
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    default_rate_limit_per_minute: int = Field(default=100, ge=1)
    # Availability of the tutoring flow wins over strict quota enforcement.
    allow_on_limiter_failure: bool = True


class RetrievalConfig(BaseModel):
    """Configures vector retrieval, relevance filtering and result caching."""

    default_collection: str = Field(default="knowledge", min_length=1)
    top_k: int = Field(default=5, ge=1, le=20)
    min_score: float = Field(default=0.5, ge=0.0, le=1.0)
    source_preview_chars: int = Field(default=200, ge=20)
    cache_enabled: bool = True
    cache_ttl_seconds: int = Field(default=3600, ge=1)


class LLMConfig(BaseModel):
    """Configures the completion model. The client itself is built lazily."""

    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, ge=1)
    timeout_seconds: float = Field(default=60.0, gt=0.0)
    api_key: SecretStr | None = None


class Settings(BaseSettings):
    """Environment-derived settings (prefix ``RAG_GATEWAY_``)."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    redis_url: str | None = Field(
        default=None,
        description="Shared store for rate-limit counters and cached retrievals; "
        "in-memory stores are used when unset",
    )
    redis_socket_timeout: float = Field(default=2.0, gt=0.0)

    server_name: str = "platform"
    allow_on_limiter_failure: bool = True
    default_rate_limit_per_minute: int = Field(default=100, ge=1)

    rag_top_k: int = Field(default=5, ge=1, le=20)
    rag_min_score: float = Field(default=0.5, ge=0.0, le=1.0)
    vector_cache_enabled: bool = True
    vector_cache_ttl: int = Field(default=3600, ge=1)

    openai_api_key: SecretStr | None = Field(default=None)
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=2048, ge=1)
    llm_timeout_seconds: float = Field(default=60.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_prefix="RAG_GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def gateway_config(self) -> GatewayConfig:
        return GatewayConfig(
            server_name=self.server_name,
            default_rate_limit_per_minute=self.default_rate_limit_per_minute,
            allow_on_limiter_failure=self.allow_on_limiter_failure,
        )

    def retrieval_config(self) -> RetrievalConfig:
        return RetrievalConfig(
            top_k=self.rag_top_k,
            min_score=self.rag_min_score,
            cache_enabled=self.vector_cache_enabled,
            cache_ttl_seconds=self.vector_cache_ttl,
        )

    def llm_config(self) -> LLMConfig:
        return LLMConfig(
            model=self.llm_model,
            temperature=self.llm_temperature,
            max_tokens=self.llm_max_tokens,
            timeout_seconds=self.llm_timeout_seconds,
            api_key=self.openai_api_key,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
