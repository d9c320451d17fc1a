from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ignore unrelated env keys so local/dev .env can include optional integrations.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Pulse Survey Metrics"
    environment: str = "development"
    api_prefix: str = "/api/v1"
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    supabase_url: str = Field(..., alias="SUPABASE_URL")
    supabase_service_role_key: Optional[str] = Field(
        default=None, alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    supabase_anon_key: Optional[str] = Field(default=None, alias="SUPABASE_ANON_KEY")
    supabase_timeout_seconds: float = Field(default=30.0, alias="SUPABASE_TIMEOUT_SECONDS")

    survey_terminal_role_marker: str = Field(default="TERM", alias="SURVEY_TERMINAL_ROLE_MARKER")
    survey_retry_attempts: int = Field(default=3, alias="SURVEY_RETRY_ATTEMPTS")
    survey_retry_initial_delay_seconds: float = Field(
        default=2.0, alias="SURVEY_RETRY_INITIAL_DELAY_SECONDS"
    )
    survey_retry_backoff_multiplier: float = Field(
        default=2.0, alias="SURVEY_RETRY_BACKOFF_MULTIPLIER"
    )
    survey_max_workers: int = Field(default=4, alias="SURVEY_MAX_WORKERS")
    survey_processing_run_token: Optional[str] = Field(
        default=None, alias="SURVEY_PROCESSING_RUN_TOKEN"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_cors_origins() -> list[str]:
    settings = get_settings()
    return [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
