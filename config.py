"""
Configuration management for MediTrack
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "MediTrack"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./meditrack.db"
    DATABASE_ECHO: bool = False

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8081"]

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


class EngineConfig:
    """Thresholds used by the adherence, reminder, alert and trend engines"""

    # Adherence windows (days back from today, today included)
    WEEKLY_WINDOW_DAYS: int = 7
    MONTHLY_WINDOW_DAYS: int = 30

    # Adaptive reminders
    MIN_DAYS_FOR_ADAPTIVE: int = 3
    ADAPTIVE_WINDOW_DAYS: int = 5
    PATTERN_SAMPLE_SIZE: int = 30

    # Alerts
    MISSED_WINDOW_DAYS: int = 30
    MISSED_ALERT_THRESHOLD: int = 3
    LOW_STOCK_THRESHOLD: int = 5
    CRITICAL_STOCK_THRESHOLD: int = 2
    LOW_ADHERENCE_THRESHOLD: float = 60
    MEDIUM_ADHERENCE_THRESHOLD: float = 80  # doctor view only

    # Trend
    TREND_MIN_POINTS: int = 3
    TREND_CHANGE_THRESHOLD: float = 10

    # Suggestions
    SUGGESTION_ADHERENCE_THRESHOLD: float = 70

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown engine setting: {key}")
            setattr(self, key, value)


# Database table names
class TableNames:
    USERS = "users"
    MEDICINES = "medicines"
    DOSE_LOGS = "dose_logs"
    ADHERENCE_STATS = "adherence_stats"
    RELATIONSHIPS = "relationships"


settings = get_settings()
engine_config = EngineConfig()
