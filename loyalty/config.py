"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Secrets stay out of source code; .env is never committed.

Pydantic Settings resolves each value from:
  1. Environment variables (highest priority)
  2. The .env file
  3. The defaults defined here (lowest priority)

Usage:
    from loyalty.config import settings
    print(settings.ACCRUAL_SYSTEM_ADDRESS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Loyalty API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Loyalty Points API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local runs; use postgresql+asyncpg://... in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/loyalty.db"

    # --- Authentication ---
    # REQUIRED: No default, forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Accrual service ---
    ACCRUAL_SYSTEM_ADDRESS: str = "http://localhost:8085"
    ACCRUAL_REQUEST_TIMEOUT_SECONDS: float = 10.0
    # Parallel lookups per reconciliation cycle; 1 polls orders one by one
    ACCRUAL_CONCURRENCY: int = 1

    # --- Background workers ---
    BACKGROUND_WORKERS_ENABLED: bool = True
    STATUS_POLL_INTERVAL_SECONDS: float = 300.0
    STATUS_POLL_TIMEOUT_SECONDS: float = 60.0
    # Folds run on multiples of the interval since the epoch (86400 = UTC midnight)
    BALANCE_FOLD_INTERVAL_SECONDS: float = 86400.0
    BALANCE_FOLD_TIMEOUT_SECONDS: float = 300.0
    # Rows younger than this are left for the next fold
    BALANCE_FOLD_LAG_SECONDS: float = 60.0


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
