"""Configuration settings for the prompt library service."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_LIBRARY_",
        env_file=[".env.local", ".env"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = Field(default="prompt-library-service", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    environment: str = Field(
        default="development",
        description="Runtime environment; 'production' hides internal error details",
    )

    # Storage
    data_dir: Path = Field(default=Path("./data"), description="Directory holding the prompts file")
    data_file_name: str = Field(default="prompts.yaml", description="Name of the prompts file")
    backup_dir_name: str = Field(default="backups", description="Backup directory inside data_dir")
    max_backups: int = Field(default=10, ge=1, description="Number of backups to retain")

    # Requests
    max_request_bytes: int = Field(
        default=10 * 1024 * 1024, ge=1, description="Largest accepted request body in bytes"
    )

    # Pagination
    default_page_limit: int = Field(default=50, description="Default page size")

    # CORS origins (comma-separated)
    cors_origins: str = Field(default="*", description="Comma-separated allowed CORS origins")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file: str = Field(default="prompt-library.log", description="Log file name")
    log_to_file: bool = Field(default=True, description="Write logs to a rotating file")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def get_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get global settings instance."""
    return Settings()
