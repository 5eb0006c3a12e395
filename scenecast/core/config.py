"""
SceneCast Configuration

Pydantic settings loaded from the environment and ``.env``.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from scenecast.core.env_loader import get_api_key


class Settings(BaseSettings):
    """Application settings."""

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Text providers
    openai_api_key: str = Field(default="")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_text_model: str = Field(default="gpt-4.1-mini")
    openai_prompt_model: str = Field(default="gpt-4o-mini")
    gemini_api_key: str = Field(default="")
    gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    gemini_text_model: str = Field(default="gemini-2.0-flash")

    # Image providers
    gemini_image_model: str = Field(default="gemini-2.0-flash-preview-image-generation")
    together_api_key: str = Field(default="")
    together_base_url: str = Field(default="https://api.together.xyz/v1")
    together_image_model: str = Field(default="black-forest-labs/FLUX.1-schnell-Free")

    # Scene stream tuning
    stream_temperature: float = Field(default=0.7)
    stream_max_tokens: int = Field(default=4000)
    max_buffer_chars: int = Field(default=200_000)
    request_timeout: float = Field(default=120.0)

    # Blob storage
    blob_backend: str = Field(default="local")  # "local" or "supabase"
    blob_dir: str = Field(default="data/blobs")
    supabase_url: str = Field(default="")
    supabase_service_key: str = Field(default="")
    supabase_bucket: str = Field(default="images")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    generation_rate_limit: str = Field(default="10/minute")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @model_validator(mode="after")
    def _apply_key_fallbacks(self) -> "Settings":
        # GOOGLE_API_KEY is accepted for Gemini as well
        if not self.gemini_api_key:
            self.gemini_api_key = get_api_key("GEMINI_API_KEY", ["GOOGLE_API_KEY"]) or ""
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
