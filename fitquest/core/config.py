from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import os

load_dotenv()


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Storage
    # "supabase" for the PostgREST-backed store, "memory" for local runs
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "supabase")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

    # Redis (Celery broker/backend, catalog cache, enrollment locks)
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

    @property
    def redis_connection_url(self) -> str:
        return self.REDIS_URL.strip()

    # Calendar day boundary used for "today" (baselines, expiry)
    CHALLENGE_TIMEZONE: str = os.getenv("CHALLENGE_TIMEZONE", "UTC")

    # Challenge catalog cache
    CATALOG_CACHE_TTL_SECONDS: int = os.getenv("CATALOG_CACHE_TTL_SECONDS", 60)

    # Per-enrollment / per-challenge locks
    ENROLLMENT_LOCK_TIMEOUT_SECONDS: int = os.getenv(
        "ENROLLMENT_LOCK_TIMEOUT_SECONDS", 30
    )
    ENROLLMENT_LOCK_WAIT_SECONDS: int = os.getenv("ENROLLMENT_LOCK_WAIT_SECONDS", 10)

    # Rank synchronously after a completing update for small challenges
    SYNC_RANKING_MAX_PARTICIPANTS: int = os.getenv(
        "SYNC_RANKING_MAX_PARTICIPANTS", 100
    )

    # Scheduler intervals (Celery beat)
    MAINTENANCE_INTERVAL_SECONDS: int = os.getenv("MAINTENANCE_INTERVAL_SECONDS", 3600)
    DAILY_SYNC_INTERVAL_SECONDS: int = os.getenv("DAILY_SYNC_INTERVAL_SECONDS", 86400)

    # Rewards ledger (empty URL -> points_transactions table in Supabase)
    REWARDS_LEDGER_URL: str = os.getenv("REWARDS_LEDGER_URL", "")
    REWARDS_LEDGER_API_KEY: str = os.getenv("REWARDS_LEDGER_API_KEY", "")
    REWARDS_LEDGER_TIMEOUT_SECONDS: float = os.getenv(
        "REWARDS_LEDGER_TIMEOUT_SECONDS", 10.0
    )

    class Config:
        env_file = [".env.local", ".env"]
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()
