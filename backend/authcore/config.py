"""
AuthCore Application Configuration
Security settings and environment configuration for the authorization core
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from AUTHCORE_* environment variables"""

    # Application
    app_name: str = "AuthCore"
    app_version: str = "1.0.0"
    debug: bool = False

    # Security
    secret_key: str = Field(default="change-me-authcore-development-secret-key")
    algorithm: str = "HS256"
    jwt_public_key: Optional[str] = None  # PEM, required for RS*/ES* algorithms
    jwt_audience: Optional[str] = None
    internal_api_key: Optional[str] = None
    resolve_username_principals: bool = False

    # Database
    database_url: str = "sqlite:///./authcore.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_recycle: int = 3600

    # Authorization
    context_path: str = ""
    endpoint_cache_ttl_seconds: float = 30.0

    # Allowed hosts for CORS (configurable via environment)
    allowed_origins: List[str] = Field(
        default_factory=lambda: os.getenv("AUTHCORE_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    )

    # Logging
    log_level: str = "INFO"

    @validator("secret_key")
    def secret_key_must_be_strong(cls, v):
        if len(v) < 32:
            raise ValueError("Secret key must be at least 32 characters long")
        return v

    @validator("context_path")
    def validate_context_path(cls, v):
        v = (v or "").strip()
        if v and not v.startswith("/"):
            raise ValueError("Context path must be empty or start with '/'")
        return v.rstrip("/")

    @validator("endpoint_cache_ttl_seconds")
    def validate_cache_ttl(cls, v):
        if v <= 0:
            raise ValueError("Endpoint cache TTL must be positive")
        return v

    @validator("allowed_origins")
    def validate_origins(cls, v):
        for origin in v:
            if not origin.startswith(("https://", "http://localhost")):
                raise ValueError("All origins must use HTTPS (except localhost)")
        return v

    class Config:
        env_file = ".env"
        env_prefix = "AUTHCORE_"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()
