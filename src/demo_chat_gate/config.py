"""Application configuration primitives."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(BASE_DIR / ".env")

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant. Be concise and helpful in your responses."


class ModelOption(BaseModel):
    value: str
    name: str


def _default_model_options() -> list[ModelOption]:
    return [
        ModelOption(value="gpt-4o", name="GPT-4o"),
        ModelOption(value="gpt-4o-mini", name="GPT-4o Mini"),
        ModelOption(value="gpt-3.5-turbo", name="GPT-3.5 Turbo"),
    ]


class LLMConfig(BaseModel):
    api_key: SecretStr | None = None
    base_url: str = Field(default="https://api.openai.com/v1")
    economy_model: str = Field(default="gpt-4o-mini")
    premium_model: str = Field(default="gpt-4o")
    temperature: float | None = None
    timeout: float = Field(default=30.0)
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    # Offered to the front-end; everything is served by economy_model
    model_options: list[ModelOption] = Field(default_factory=_default_model_options)


class LimitsConfig(BaseModel):
    max_messages_per_session: int = Field(default=10, gt=0)
    max_message_length: int = Field(default=500, gt=0)
    rate_limit_max_requests: int = Field(default=20, gt=0)
    rate_limit_window_seconds: float = Field(default=60 * 60, gt=0)
    # None means sweep once per window
    sweep_interval_seconds: float | None = Field(default=None, gt=0)

    @property
    def sweep_interval(self) -> float:
        if self.sweep_interval_seconds is None:
            return self.rate_limit_window_seconds
        return self.sweep_interval_seconds


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    # Plain OPENAI_API_KEY, used when LLM__API_KEY is not set
    openai_api_key: SecretStr | None = None
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @property
    def api_key(self) -> str | None:
        for secret in (self.llm.api_key, self.openai_api_key):
            if secret is not None and secret.get_secret_value().strip():
                return secret.get_secret_value()
        return None


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
