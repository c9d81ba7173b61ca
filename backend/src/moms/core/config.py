from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ROOT = Path(__file__).resolve().parents[3]
ENV_PATH = BACKEND_ROOT / ".env"

# Load environment variables as early as possible so Settings picks them up.
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        env_prefix="MOMS_",
        extra="ignore",
    )

    app_name: str = "MOMS API"
    app_version: str = "0.1.0"
    docs_url: str = "/docs"
    database_url: str = f"sqlite:///{(BACKEND_ROOT / 'moms.db').as_posix()}"
    database_echo: bool = False
    log_level: str = "INFO"

    # Phone numbers are mapped onto a synthetic login identifier in this domain.
    credential_domain: str = "moms.app"
    min_password_length: int = 6
    max_failed_logins: int = 5
    lockout_minutes: int = 15

    token_secret: str = "change-me-moms-development-signing-key"
    token_algorithm: str = "HS256"
    token_ttl_minutes: int = 60 * 24

    # Cutoff times and "today" are evaluated in the agency's local time.
    timezone: str = "Asia/Kolkata"

    upload_dir: str = str(BACKEND_ROOT / "uploads")
    files_url_prefix: str = "/files"


@lru_cache
def get_settings() -> Settings:
    return Settings()
