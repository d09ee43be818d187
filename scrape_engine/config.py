"""Application configuration management."""
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    environment: Literal["development", "staging", "production"] = "development"

    # Session Registry Configuration
    max_sessions: int = 100
    session_timeout_seconds: int = 1800  # 30 minutes
    cleanup_interval_seconds: int = 300  # Sweep every 5 minutes
    session_retention_hours: int = 24

    # Job Tracker Configuration
    job_retention_hours: int = 24

    # Export Configuration
    export_base_path: str = "./exports"

    # Identity
    user_agent: str = "ScrapeEngine/1.0.0"
    engine_version: str = "1.0.0"

    # Model Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def export_path(self) -> Path:
        """Get the resolved export path."""
        return Path(self.export_base_path).expanduser().resolve()


# Global settings instance
settings = Settings()
