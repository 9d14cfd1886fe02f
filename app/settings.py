# app/settings.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel
import os


class Settings(BaseModel):
    APP_NAME: str = "roulette-round-server"

    # Redis (empty -> result/audit store runs unconfigured)
    REDIS_URL: str = ""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Dev
    LOG_LEVEL: str = "INFO"

    # CORS (comma-separated)
    CORS_ALLOWED_ORIGINS: str = "*"

    # Round / spin timing (milliseconds)
    ROUND_DURATION_MS: int = 30000
    SPIN_ANIMATION_MS: int = 15000
    SPIN_BUFFER_MS: int = 3000
    # None disables auto-restart; rounds then start only from enqueue / manual trigger
    AUTO_RESTART_DELAY_MS: Optional[int] = None

    # Frontend activity tracking
    FRONTEND_ACTIVITY_TIMEOUT_MS: int = 60000
    ACTIVITY_CHECK_INTERVAL_MS: int = 10000

    # Queue / cache / store
    MAX_QUEUE_SIZE: int = 100
    LAST_SPIN_CACHE_TTL_MS: int = 5 * 60 * 1000
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_BASE_DELAY_MS: int = 1000
    AUDIT_LOG_MAX_ENTRIES: int = 10000

    # Admin chat
    ADMINS: List[int] = []
    # When set, /admin routes require a matching X-Admin-Token header
    ADMIN_API_TOKEN: str = ""
    TIMEZONE: str = "Asia/Kolkata"
    SOFT_DELETE_ON_QUEUE_REMOVE: bool = False


def _flag(value: str) -> bool:
    return value.lower() in ("1", "true", "yes", "y", "on")


def _admin_ids(raw: str) -> List[int]:
    ids: List[int] = []
    for part in raw.split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.append(int(part))
    return ids


def get_settings() -> Settings:
    restart = os.getenv("AUTO_RESTART_DELAY_MS", "").strip()
    return Settings(
        APP_NAME=os.getenv("APP_NAME", "roulette-round-server"),
        REDIS_URL=os.getenv("REDIS_URL", ""),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=int(os.getenv("PORT", "3001")),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        CORS_ALLOWED_ORIGINS=os.getenv("CORS_ALLOWED_ORIGINS", "*"),

        ROUND_DURATION_MS=int(os.getenv("ROUND_DURATION_MS", "30000")),
        SPIN_ANIMATION_MS=int(os.getenv("SPIN_ANIMATION_MS", "15000")),
        SPIN_BUFFER_MS=int(os.getenv("SPIN_BUFFER_MS", "3000")),
        AUTO_RESTART_DELAY_MS=int(restart) if restart else None,

        FRONTEND_ACTIVITY_TIMEOUT_MS=int(os.getenv("FRONTEND_ACTIVITY_TIMEOUT_MS", "60000")),
        ACTIVITY_CHECK_INTERVAL_MS=int(os.getenv("ACTIVITY_CHECK_INTERVAL_MS", "10000")),

        MAX_QUEUE_SIZE=int(os.getenv("MAX_QUEUE_SIZE", "100")),
        LAST_SPIN_CACHE_TTL_MS=int(os.getenv("LAST_SPIN_CACHE_TTL_MS", "300000")),
        STORE_RETRY_ATTEMPTS=int(os.getenv("STORE_RETRY_ATTEMPTS", "3")),
        STORE_RETRY_BASE_DELAY_MS=int(os.getenv("STORE_RETRY_BASE_DELAY_MS", "1000")),
        AUDIT_LOG_MAX_ENTRIES=int(os.getenv("AUDIT_LOG_MAX_ENTRIES", "10000")),

        ADMINS=_admin_ids(os.getenv("ADMINS", "")),
        ADMIN_API_TOKEN=os.getenv("ADMIN_API_TOKEN", ""),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Kolkata"),
        SOFT_DELETE_ON_QUEUE_REMOVE=_flag(os.getenv("SOFT_DELETE_ON_QUEUE_REMOVE", "false")),
    )
