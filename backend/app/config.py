"""Configuration settings for the GigFlow backend."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Storage: "supabase" in deployment, "memory" for local runs and tests
    store_backend: Literal["supabase", "memory"] = "supabase"

    # Supabase
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access
    supabase_service_role_key: str | None = None  # Legacy name for the same key

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # Auth cookie
    cookie_secure: bool = True

    # Core services
    notify_timeout_seconds: float = 2.0
    max_page_size: int = 100
    password_hash_rounds: int = 12

    # App
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_enabled: bool = True
    # Proxies allowed to set X-Forwarded-For (comma-separated CIDRs)
    trusted_proxy_cidrs: str = "10.0.0.0/8,172.16.0.0/12,192.168.0.0/16,127.0.0.0/8,::1/128"
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
