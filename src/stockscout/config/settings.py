"""Application settings loaded from the environment and ``.env``."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENVIRONMENTS = ("development", "testing", "production")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("structured", "plain")


def _one_of(value: str, choices, label: str) -> str:
    for choice in choices:
        if value.lower() == choice.lower():
            return choice
    raise ValueError(f"{label} must be one of: {', '.join(choices)}")


class Settings(BaseSettings):
    """Stock Scout configuration.

    Every field can be set through the upper-cased environment variable of
    the same name.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    debug: bool = False
    app_version: str = "1.0.0"

    # Workflow webhooks
    research_webhook_url: str = "https://thinkcode.app.n8n.cloud/webhook/stock-research"
    research_webhook_token: Optional[str] = None
    screening_webhook_url: str = (
        "https://thinkcode.app.n8n.cloud/webhook/screen-stocks-sequential"
    )
    screening_webhook_token: Optional[str] = None
    research_timeout_seconds: int = Field(60, ge=1)

    # Screening submission
    large_batch_threshold: int = Field(100, ge=1)
    large_batch_timeout_seconds: int = Field(30, ge=1)
    small_batch_timeout_seconds: int = Field(120, ge=1)
    default_results_limit: int = Field(50, ge=1)

    # Result polling
    poll_interval_seconds: int = Field(10, ge=1)
    recent_session_window_minutes: int = Field(5, ge=1)
    missing_session_grace_attempts: int = Field(3, ge=0)

    # HTTP server
    endpoint_host: str = "0.0.0.0"
    endpoint_port: int = Field(8000, ge=1, le=65535)
    api_reload: bool = False
    api_log_level: str = "INFO"

    # Database; hosted Postgres when set, local SQLite otherwise
    database_url: Optional[str] = None
    database_anon_key: Optional[str] = None
    data_directory: str = "data"
    database_echo_sql: bool = False
    database_pool_pre_ping: bool = True
    database_pool_recycle: int = 3600

    # Logging
    log_level: str = "INFO"
    log_format: str = "structured"
    log_file_enabled: bool = True
    log_file_path: str = "data/stockscout.log"
    log_max_file_size: str = "10MB"
    log_backup_count: int = 5

    @field_validator("environment", "log_format")
    @classmethod
    def validate_choice(cls, v, info):
        """Normalise enumerated string settings to lower case."""
        choices = ENVIRONMENTS if info.field_name == "environment" else LOG_FORMATS
        return _one_of(v, choices, info.field_name.replace("_", " ").capitalize())

    @field_validator("log_level", "api_log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Normalise log levels to upper case."""
        return _one_of(v, LOG_LEVELS, "Log level")

    def get_database_url(self) -> str:
        """Configured database URL, or a SQLite file in the data directory."""
        if self.database_url:
            return self.database_url

        db_dir = Path(self.data_directory)
        db_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_dir / 'stockscout.db'}"

    def is_development(self) -> bool:
        return self.environment == "development"

    def is_production(self) -> bool:
        return self.environment == "production"

    def is_testing(self) -> bool:
        return self.environment == "testing"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance; call ``get_settings.cache_clear()`` to reload."""
    return Settings()


def validate_required_settings() -> bool:
    """Whether both webhook tokens are configured."""
    settings = get_settings()
    return bool(settings.research_webhook_token and settings.screening_webhook_token)


def get_required_env_vars() -> list[str]:
    """Names of the environment variables a deployment is expected to set."""
    return [
        "RESEARCH_WEBHOOK_TOKEN",
        "SCREENING_WEBHOOK_TOKEN",
        "DATABASE_URL",
    ]
