"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="FLOWWATCH_",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: Literal["debug", "info", "warning", "error"] = "info"

    # Application settings
    app_name: str = "Flowwatch Sync"
    app_version: str = "0.1.0"
    debug: bool = False

    # CORS settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Storage settings
    database_url: str = "sqlite+aiosqlite:///./flowwatch.db"
    sqlite_busy_timeout_ms: int = 5000

    # Credential vault
    encryption_key: str = "flowwatch-default-encryption-key-change-me"
    encryption_salt: str = "flowwatch"

    # Remote provider client
    remote_timeout_seconds: float = 10.0
    remote_page_size: int = 100

    # Sync settings
    sync_batch_size: int = 100
    manual_sync_batch_size: int = 200
    fetch_concurrency: int = 5
    max_incremental_pages: int = 0  # 0 means no limit
    executions_interval_minutes: float = 1
    workflows_interval_minutes: float = 360
    backups_interval_minutes: float = 1440
    enable_scheduler: bool = True

    def job_intervals(self) -> dict[str, float]:
        """Interval in seconds per scheduled job name."""
        return {
            "executions": self.executions_interval_minutes * 60,
            "workflows": self.workflows_interval_minutes * 60,
            "backups": self.backups_interval_minutes * 60,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
