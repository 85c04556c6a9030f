"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "leadflow_user"
    POSTGRES_PASSWORD: str = "leadflow_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "leadflow_db"

    # Full async URL that wins over the POSTGRES_* pieces when set,
    # e.g. "sqlite+aiosqlite:///./leadflow.db" for local runs.
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_SYNC(self) -> str:
        """Sync URL for Alembic migrations (psycopg2)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE.replace("+aiosqlite", "").replace("+asyncpg", "")
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Availability / resilience ─────────────
    DB_HEALTH_TIMEOUT_SECONDS: float = 3.0
    SCHEMA_ENSURE_ON_STARTUP: bool = True
    SCHEMA_SELF_HEAL_ON_DRIFT: bool = False
    FALLBACK_ENABLED: bool = True

    # ── Redis / Celery ────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Display codes ─────────────────────────
    LEAD_CODE_PREFIX: str = "#"
    VC_CODE_PREFIX: str = "#VC"

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
