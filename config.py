"""
Configuration management for DoseLedger
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "DoseLedger"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./dose_ledger.db"
    DATABASE_ECHO: bool = False

    # Insight generation (OpenAI-compatible chat gateway)
    INSIGHTS_API_KEY: Optional[str] = None
    INSIGHTS_BASE_URL: str = "https://ai.gateway.lovable.dev/v1"
    INSIGHTS_MODEL: str = "google/gemini-3-flash-preview"
    INSIGHTS_TIMEOUT_SECONDS: float = 30.0

    # Reports
    REPORT_TIMEZONE: str = "UTC"  # every day boundary is computed in this zone
    REPORT_INCLUDE_EXPIRED: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class ReportConfig:
    """Constants for the adherence report engine"""

    # Default report periods
    WEEKLY_DAYS: int = 7
    MONTHLY_MONTHS: int = 1
    PERIODS: list[str] = ["weekly", "monthly", "custom"]

    # Adherence levels (percent)
    ADHERENCE_GOOD_THRESHOLD: int = 80
    ADHERENCE_FAIR_THRESHOLD: int = 50

    # Longest renewal a user can request (days)
    RENEWAL_MAX_DAYS: int = 90

    # Insight text used when the gateway answers without content
    INSIGHTS_FALLBACK_TEXT: str = "Unable to generate insights at this time."


# Database table names
class TableNames:
    MEDICATIONS = "medications"
    MEDICATION_LOGS = "medication_logs"


settings = get_settings()
report_config = ReportConfig()
