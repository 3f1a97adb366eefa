"""
backend/app/config.py

Purpose:
    Central settings loading for the match sync backend.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "matchsync"
    JWT_SECRET: str = ""
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    # BetsAPI (b365api) match source
    BETSAPI_BASE_URL: str = "https://api.b365api.com"
    BETSAPI_TOKEN: str = ""
    BETSAPI_SPORT_ID: str = "1"  # 1 = soccer
    BETSAPI_TIMEOUT_SECONDS: float = 20.0
    BETSAPI_MAX_RETRIES: int = 2
    BETSAPI_RETRY_BASE_DELAY: float = 1.0

    # Provider "day" filters are calendar days in this timezone (YYYYMMDD)
    PROVIDER_DAY_TIMEZONE: str = "Asia/Seoul"

    # Sync engine bounds
    SYNC_MAX_PAGES: int = 5
    RESYNC_BATCH_LIMIT: int = 100
    COMPLETENESS_SCAN_LIMIT: int = 1000
    STORED_MATCHES_PAGE_SIZE: int = 20

    # Scheduled sync (off by default; admin-triggered syncs always work)
    SYNC_SCHEDULER_ENABLED: bool = False
    SYNC_SCHEDULER_INTERVAL_MINUTES: int = 30
    SYNC_INPLAY_INTERVAL_MINUTES: int = 5

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
