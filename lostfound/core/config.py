from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    # App
    app_name: str = "Lost & Found Workflow"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./lostfound.db"

    # Approver directory seed file (YAML)
    directory_config_path: Optional[str] = None

    # Workflow
    sla_approaching_threshold_hours: float = 2.0
    allow_scope_fallback: bool = False  # route outside the required organization when nobody inside holds the role

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    file_logging: bool = False
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_prefix="LOSTFOUND_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}. Must be one of: {', '.join(LOG_LEVELS)}")
        return level


@lru_cache
def get_settings() -> Settings:
    return Settings()
