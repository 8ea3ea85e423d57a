"""Configuration settings for the GreenKeep sync server."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase (global database: tenant directory)
    supabase_url: str
    # New key system (preferred)
    supabase_secret_key: str | None = None  # Backend/admin access
    # Legacy key (deprecated, will be removed)
    supabase_service_role_key: str | None = None
    tenants_table: str = "tenants"

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # Tenant databases: one SQLite file per tenant under this directory
    tenant_data_dir: str = "./data/tenants"

    # Rate limiting (slowapi syntax)
    sync_rate_limit: str = "120/minute"

    # App
    debug: bool = False
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
