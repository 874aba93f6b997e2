"""Configuration management using pydantic-settings"""

import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator, field_validator
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Configuration
    environment: str = Field(default="production", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="error", description="Log level: debug, info, warning, error (default: error for production)")

    # Backend Configuration
    backend_url: str = Field(default="http://localhost:54321", description="Base URL of the hosted backend")
    backend_api_key: Optional[str] = Field(default=None, description="Public API key sent as the 'apikey' header")
    backend_access_token: Optional[str] = Field(default=None, description="Session access token (falls back to the API key)")
    backend_timeout: int = Field(default=60, description="Total timeout in seconds for a single backend request")
    storage_bucket: str = Field(default="user-content", description="Blob storage bucket holding file contents")
    files_table: str = Field(default="files", description="Metadata table holding file records")

    # Local State Configuration
    local_state_url: str = "sqlite:///./data/filedrive.db"

    # Download Configuration
    download_dir: str = Field(default="./downloads", description="Directory where downloaded files are saved")
    download_chunk_size: int = Field(default=64 * 1024, description="Chunk size in bytes for streamed downloads")
    download_complete_linger: float = Field(default=3.0, description="Seconds a completed download stays listed")
    download_retry_delay: float = Field(default=2.0, description="Seconds before a failed download is retried")
    download_auto_retries: int = Field(default=1, description="Automatic retries per failed download chain")
    bulk_download_stagger: float = Field(default=0.5, description="Seconds between starts of a bulk download")
    download_history_limit: int = Field(default=50, description="Maximum download history entries kept")

    # Upload Configuration
    upload_max_file_size_mb: int = Field(default=50, description="Maximum upload size in MB")
    upload_default_folder: str = Field(default="documents", description="Folder used when none is given")

    @field_validator("backend_url", mode="before")
    @classmethod
    def strip_backend_url(cls, v):
        """Remove trailing slashes so endpoint paths can be appended"""
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("download_auto_retries")
    @classmethod
    def validate_auto_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("download_auto_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def set_environment_defaults(self) -> "Settings":
        """Set environment-specific defaults for log level"""
        if self.environment == "production" and not os.getenv("LOG_LEVEL"):
            # Default to error in production if not explicitly set
            self.log_level = "error"

        return self

    @property
    def access_token(self) -> Optional[str]:
        """Bearer token for backend requests"""
        return self.backend_access_token or self.backend_api_key


# Global settings instance
settings = Settings()
