"""Configuration schema using Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramConfig(BaseModel):
    """Telegram bot configuration."""

    token: str = ""
    allowed_user_id: str = ""  # Only this user may talk to the bot
    proxy: str | None = None

    @field_validator("allowed_user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()


class ProgressConfig(BaseModel):
    """Live progress message configuration."""

    enabled: bool = True
    update_interval_ms: int = Field(default=2000, ge=0)


class VoiceConfig(BaseModel):
    """Voice transcription and confirmation configuration."""

    enabled: bool = True
    api_key: str = ""
    api_base: str = "https://api.openai.com/v1"
    model: str = "whisper-1"
    max_duration_s: int = Field(default=120, gt=0)
    confirmation_required: bool = True
    confirmation_ttl_s: float = Field(default=300.0, gt=0)
    sweep_interval_s: float = Field(default=60.0, gt=0)


class AgentConfig(BaseModel):
    """Agent runtime and task-runner configuration."""

    factory: str = ""  # "package.module:callable" returning an Agent
    runner_url: str | None = None

    @field_validator("runner_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if not value:
            return None
        return str(value).rstrip("/")


class Config(BaseSettings):
    """Root configuration for agenthq."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTHQ_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    log_level: str = "INFO"


def load_config() -> Config:
    """Load configuration from the environment and an optional .env file."""
    return Config()
