"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    # ── Question Pools ───────────────────────────────────────
    # Directory holding <level>.json pool files (technician.json, general.json)
    pool_dir: str = "data/pools"

    # ── Exam Sessions ────────────────────────────────────────
    session_store_type: str = "memory"  # "memory" or "redis"
    session_ttl: int = 6 * 60 * 60  # seconds; an exam is 60 min, keep a margin
    exam_session_key: str = "hamforge-exam-session"
    timer_interval_seconds: float = 1.0
    # Live controllers are dropped after session_ttl idle, or this long once finished
    completed_session_ttl: int = 15 * 60
    session_sweep_interval: int = 300

    # ── Progress / Archive storage ───────────────────────────
    storage_type: str = "memory"  # "memory" or "redis"
    redis_url: str = ""  # e.g. redis://:password@host:6379/0


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
