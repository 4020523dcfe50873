"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Psikotes Session API"
    APP_VERSION: str = "0.1.0"
    ENV: Literal["development", "production", "test"] = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/psikotes_dev"
    DB_POOL_SIZE: int = 10  # Number of connections to maintain
    DB_POOL_MAX_OVERFLOW: int = 20  # Max extra connections when pool exhausted
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for available connection
    DB_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    DB_POOL_PRE_PING: bool = True
    # Create missing tables on startup (development / single-node setups)
    DB_AUTO_CREATE: bool = False

    # Session status reconciliation
    SESSION_RECONCILER_ENABLED: bool = True
    SESSION_RECONCILE_INTERVAL_SECONDS: float = Field(
        default=180.0,
        description="Seconds between reconciliation passes (3 minutes by default)",
    )
    SESSION_RECONCILE_ATTEMPT_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        description="Timeout for a single attempt-count lookup during a pass",
    )
    SESSION_RECONCILE_BATCH_LIMIT: int = Field(
        default=500,
        description="Maximum number of candidate sessions examined per pass",
    )

    # Participant-facing links
    PARTICIPANT_BASE_URL: str = "http://localhost:3000"

    # Admin
    ADMIN_TOKEN: str = Field(
        default="",
        description="Admin API token for triggering jobs (required for admin endpoints)",
    )

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_reconciler_config(self) -> Self:
        """Validate reconciliation cadence and limits at startup."""
        if self.SESSION_RECONCILE_INTERVAL_SECONDS <= 0:
            raise ValueError(
                "SESSION_RECONCILE_INTERVAL_SECONDS must be positive, "
                f"got {self.SESSION_RECONCILE_INTERVAL_SECONDS}"
            )
        if self.SESSION_RECONCILE_ATTEMPT_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                "SESSION_RECONCILE_ATTEMPT_TIMEOUT_SECONDS must be positive, "
                f"got {self.SESSION_RECONCILE_ATTEMPT_TIMEOUT_SECONDS}"
            )
        if self.SESSION_RECONCILE_BATCH_LIMIT <= 0:
            raise ValueError(
                "SESSION_RECONCILE_BATCH_LIMIT must be positive, "
                f"got {self.SESSION_RECONCILE_BATCH_LIMIT}"
            )
        return self


settings = Settings()
