"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Database
    # ======================
    DATABASE_URL: str = "sqlite+aiosqlite:///./decision_audit.db"
    AUTO_CREATE_TABLES: bool = True

    # "database" uses the SQL repositories, "memory" keeps everything in-process
    STORAGE_BACKEND: Literal["database", "memory"] = "database"
    SEED_DEMO_DECISIONS: bool = False

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # ======================
    # Commitment ledger
    # ======================
    # "overwrite" (last write wins) or "reject" (409 on duplicate hash)
    COMMITMENT_DUPLICATE_POLICY: Literal["overwrite", "reject"] = "overwrite"

    # ======================
    # Yield feeds
    # ======================
    YIELD_FEED_URL: str = "https://yields.llama.fi/pools"
    YIELD_FEED_TIMEOUT_SECONDS: float = 15.0
    TRADING_FEE_FEED_URL: Optional[str] = None

    # ======================
    # Export
    # ======================
    EXPORT_FILENAME_PREFIX: str = "yield-agent"

    # ======================
    # Logging
    # ======================
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
