import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# app/core/config.py -> core -> app -> repo
REPO_ROOT = Path(__file__).resolve().parents[2]


def _env_files() -> list[str]:
    """`.env`, then `.env.<environment>` outside development or `.env.local` inside it; missing files are skipped."""
    env = os.getenv("SP_ENVIRONMENT", "").strip().lower()
    overlay = f".env.{env}" if env and env != "development" else ".env.local"
    return [str(REPO_ROOT / ".env"), str(REPO_ROOT / overlay)]


class Settings(BaseSettings):
    app_name: str = "Staffing Pipeline"
    environment: str = "development"

    database_url: str = "sqlite+aiosqlite:///./staffing_pipeline.db"
    redis_url: str = ""
    event_channel: str = "sp:events"

    timezone: str = "Asia/Kolkata"
    default_interview_duration_minutes: int = Field(default=60, ge=1, le=24 * 60)
    meeting_base_url: str = "https://meet.example.com"
    public_app_origin: str = ""

    enable_scheduler: bool = False
    sweep_interval_minutes: int = Field(default=60, ge=1)
    submission_followup_days: int = Field(default=7, ge=0)

    model_config = SettingsConfigDict(env_prefix="SP_", env_file=_env_files(), extra="ignore")


settings = Settings()
