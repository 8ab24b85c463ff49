"""Configuration management for the form schema generation service."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Form generation configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shared paths
    output_dir: Path = Field(default=Path("./output"))
    log_dir: Path = Field(default=Path("./logs"))

    # LLM Configuration (Groq, OpenAI-compatible endpoint)
    llm_api_key: str = Field(default="")
    llm_base_url: str = Field(default="https://api.groq.com/openai/v1")
    generation_model: str = Field(
        default="openai/gpt-oss-20b",
        description="Model for text-to-schema generation",
    )
    generation_temperature: float = Field(default=0.2)
    strict_temperature: float = Field(
        default=0.0,
        description="Temperature used on corrective retries",
    )
    max_output_tokens: int = Field(default=1000)
    llm_timeout_seconds: float = Field(default=60.0)

    # Generation limits
    max_prompt_chars: int = Field(default=500)
    max_validation_attempts: int = Field(default=3)
    max_rate_limit_attempts: int = Field(default=3)
    rate_limit_base_delay: float = Field(default=2.0)

    # Session store
    session_backend: Literal["redis", "memory"] = Field(default="redis")
    redis_url: str = Field(default="redis://localhost:6379/0")
    session_ttl_seconds: int = Field(default=3600)
    session_key_prefix: str = Field(default="form_session:")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text", "both"] = Field(default="both")

    @property
    def forms_dir(self) -> Path:
        """Directory holding saved form records."""
        return self.output_dir / "forms"


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()


# Default singleton
settings = Settings()
