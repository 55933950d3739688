"""
Runtime configuration loaded from environment variables.

A `.env` file in the repository root is loaded first, so local development
can keep credentials out of the shell environment.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

env_path = Path(__file__).parent.parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

# 35 minutes, from the first increment of a counting window
DEFAULT_VIEW_COUNTER_TTL = 35 * 60

# 100 minutes between reconciliation passes
DEFAULT_RECONCILE_INTERVAL = 100 * 60


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_database_url() -> str:
    """Get database URL from environment."""
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    # Fallback: construct from individual components
    host = os.getenv("DB_HOST", "postgres")
    port = int(os.getenv("DB_PORT", "5432"))
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "postgres")
    database = os.getenv("DB_NAME", "postgres")

    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


class Settings(BaseModel):
    """Cache layer settings."""

    redis_url: str = Field(default_factory=lambda: os.getenv("REDIS_URL", "redis://redis:6379"))
    redis_max_connections: int = Field(
        default_factory=lambda: int(os.getenv("REDIS_MAX_CONNECTIONS", "20"))
    )
    redis_socket_timeout: float = Field(
        default_factory=lambda: float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
    )

    database_url: str = Field(default_factory=get_database_url)

    view_counter_ttl_seconds: int = Field(
        default_factory=lambda: int(os.getenv("VIEW_COUNTER_TTL_SECONDS", str(DEFAULT_VIEW_COUNTER_TTL))),
        gt=0,
    )
    view_counter_sliding_ttl: bool = Field(
        default_factory=lambda: _env_bool("VIEW_COUNTER_SLIDING_TTL", False)
    )
    detail_ttl_seconds: int = Field(
        default_factory=lambda: int(os.getenv("DETAIL_TTL_SECONDS", "3600")),
        gt=0,
    )
    ranking_top_n: int = Field(
        default_factory=lambda: int(os.getenv("RANKING_TOP_N", "100")),
        gt=0,
    )
    reconcile_interval_seconds: int = Field(
        default_factory=lambda: int(os.getenv("RECONCILE_INTERVAL_SECONDS", str(DEFAULT_RECONCILE_INTERVAL))),
        gt=0,
    )
    reconcile_lock_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("RECONCILE_LOCK_TIMEOUT_SECONDS", "600")),
        gt=0,
    )

    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = Field(default_factory=lambda: _env_bool("LOG_JSON", True))


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
