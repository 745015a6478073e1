# src/seerr_gateway/config.py

import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Determine the base directory of this config file
# .env is at the service root, two levels up from src/seerr_gateway/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"

logger = logging.getLogger(__name__)

if ENV_FILE_PATH.exists():
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=True)
    logger.debug("Loaded .env file from: %s", ENV_FILE_PATH)


class Settings(BaseSettings):
    # === Service ===
    APP_TITLE: str = "Seerr Gateway"
    MOUNT_PREFIX: str = "/api/seerr"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # === Upstream (Jellyseerr / Overseerr) ===
    DEFAULT_SCHEME: str = "https"
    UPSTREAM_TIMEOUT: float = 30.0
    VERIFY_TLS: bool = True

    # === Dashboard queries ===
    RECENTLY_ADDED_TAKE: int = 20
    RECENT_REQUESTS_TAKE: int = 10

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @field_validator("MOUNT_PREFIX", mode='before')
    @classmethod
    def normalize_mount_prefix(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise TypeError('MOUNT_PREFIX: Expected a string.')
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @field_validator("LOG_LEVEL", mode='before')
    @classmethod
    def check_log_level(cls, v: Any) -> str:
        level = str(v).strip().upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"LOG_LEVEL: Unknown logging level '{v}'.")
        return level

    @field_validator("DEFAULT_SCHEME", mode='before')
    @classmethod
    def check_default_scheme(cls, v: Any) -> str:
        scheme = str(v).strip().lower().rstrip(":/")
        if scheme not in ("http", "https"):
            raise ValueError("DEFAULT_SCHEME must be 'http' or 'https'.")
        return scheme


settings = Settings()
