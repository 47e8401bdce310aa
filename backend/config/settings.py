from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path

# backend/ (settings are resolved relative to it, not the working directory)
_backend_dir = Path(__file__).parent.parent
_env_local = _backend_dir / '.env.local'
_env_file = _backend_dir / '.env'


class Settings(BaseSettings):
    """Environment-driven settings for the API, refresh jobs and scheduler."""

    # Storage
    DATABASE_URL: str = "sqlite:///./advisories.db"  # PostgreSQL in production
    AUTO_CREATE_TABLES: bool = True  # create_all on startup (Alembic manages prod schema)

    # Comma-separated list of origins allowed by CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Bulk refresh tuning (governs load against third-party services)
    REFRESH_BATCH_SIZE: int = 5  # Countries in flight at once
    REFRESH_MAX_RETRIES: int = 3  # Total attempts per country
    REFRESH_RETRY_BASE_DELAY: float = 1.0  # seconds, doubles per retry
    REFRESH_RETRY_MAX_DELAY: float = 10.0  # seconds, backoff cap
    REFRESH_BATCH_DELAY: float = 2.0  # seconds between batches
    JOB_RETENTION_DAYS: int = 30

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULE_WEEKDAY: int = 6  # 0=Monday ... 6=Sunday (UTC)
    SCHEDULE_HOUR: int = 2  # UTC hour from which the weekly slot may fire
    SCHEDULER_POLL_INTERVAL_SECONDS: float = 300.0
    ALERT_REFRESH_INTERVAL_HOURS: float = 6.0  # Tracked-country refresh cadence

    # Upstream sources
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # AI enhancement of State Dept summaries (disabled when key is empty)
    ANTHROPIC_API_KEY: str = ""
    AI_MODEL: str = "claude-3-5-haiku-latest"
    AI_TIMEOUT_SECONDS: float = 30.0

    class Config:
        # .env.local wins over .env when both exist
        env_file = str(_env_local) if _env_local.exists() else str(_env_file)
        case_sensitive = True
        extra = "ignore"

    def get_allowed_origins(self) -> List[str]:
        """ALLOWED_ORIGINS split into a list"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    def is_ai_enabled(self) -> bool:
        """AI enhancement runs only when an API key is configured"""
        return bool(self.ANTHROPIC_API_KEY.strip())


settings = Settings()
