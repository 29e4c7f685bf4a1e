from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Contract Onboarding Service"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    # unset => in-memory registries
    database_url: Optional[str] = None

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── STORAGE ───────────
    storage_root: str = "data"
    keys_dir: str = "keys"
    dropbox_token: Optional[str] = None
    dropbox_folder: str = "/contracts"
    http_timeout_seconds: float = 15.0

    # ─────────── SIGNING ───────────
    signature_font_path: Optional[str] = None

    # ─────────── ONBOARDING ───────────
    invite_webhook_url: Optional[str] = None
    course_url: str = "https://www.notion.so/onboarding-course"
    team_chat_url: str = "https://slack.com/signup"
    dashboard_url: str = "https://dashboard.example.com"
    access_ttl_days: int = 30

    # ─────────── CHAT ───────────
    chat_service_url: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
