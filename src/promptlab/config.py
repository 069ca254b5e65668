"""LLM connection settings."""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """LLM connection settings from environment or direct initialization."""

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("PROMPTLAB_API_KEY", "OPENAI_API_KEY", "API_KEY", "api_key"),
    )
    model: str = "gpt-4o-mini"
    judge_model: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 500
    base_url: Optional[str] = None
    timeout: float = Field(default=60.0, ge=1.0, le=600.0)
    prompt_price_per_million: Optional[float] = Field(default=None, ge=0.0)
    completion_price_per_million: Optional[float] = Field(default=None, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="PROMPTLAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


def get_settings() -> Settings:
    """Load settings from environment."""
    return Settings()
