"""
Configuration settings for Appliance Vault.

Loads environment variables from .env file and provides typed configuration.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins",
    )
    ENVIRONMENT: str = Field(
        default="production",
        description="'production' or 'development' (development exposes error details)",
    )

    # Security Configuration
    SECRET_KEY: str = Field(
        default="change-me-in-production-8c1f0b6d2e4a47a5b3f9",
        description="Secret key for JWT",
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=12 * 60,
        description="Lifetime of every issued access token, in minutes",
    )
    GOOGLE_CLIENT_ID: Optional[str] = Field(
        default=None, description="Expected audience of Google ID tokens"
    )

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(
        default=True, description="Enable rate limiting on credential endpoints"
    )
    AUTH_RATE_LIMIT: str = Field(
        default="5/minute", description="Rate limit for signup/signin/google"
    )

    # Database Configuration
    DATABASE_URL: str = Field(
        default="sqlite:///./data/appliances.db", description="Database URL"
    )
    DATABASE_ECHO: bool = Field(
        default=False, description="Echo SQL queries (for debugging)"
    )

    # File Upload Configuration
    MAX_UPLOAD_SIZE: int = Field(
        default=5 * 1024 * 1024,  # 5 MiB
        description="Maximum size of a single uploaded file in bytes",
    )
    ALLOWED_CONTENT_TYPES: List[str] = Field(
        default=["image/jpeg", "image/png", "application/pdf"],
        description="Accepted content types for uploaded assets",
    )
    ALLOWED_EXTENSIONS: List[str] = Field(
        default=[".jpg", ".jpeg", ".png", ".pdf"],
        description="Accepted filename extensions where extension checks apply",
    )

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


# Global settings instance
settings = Settings()
