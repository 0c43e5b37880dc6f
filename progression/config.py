"""
Configuration settings for lesson progression.

Uses Pydantic Settings for environment variable management with .env file support.
All variables use the PROGRESSION_ prefix, e.g. PROGRESSION_STORAGE_BACKEND=sqlite.
"""
from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROGRESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Local Store
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".progression",
        description="Directory holding the local progress store",
    )
    storage_backend: Literal["json", "sqlite", "memory"] = Field(
        default="json",
        description="Key-value backend for the local progress store",
    )
    storage_namespace: str = Field(
        default="progression",
        description="Prefix for every key written by the store",
    )

    # ========================================
    # Scoring
    # ========================================
    answer_matching: Literal["exact", "normalized"] = Field(
        default="exact",
        description="exact: case-sensitive equality; normalized: trimmed and case-folded",
    )

    # ========================================
    # Lesson Catalog
    # ========================================
    catalog_path: Path | None = Field(
        default=None,
        description="JSON file with lessons and tests; remote catalog is used when unset and remote is configured",
    )

    # ========================================
    # Remote Table API
    # ========================================
    remote_sync_enabled: bool = Field(
        default=False,
        description="Push progress updates to the hosted table API after unlocks",
    )
    remote_base_url: str = Field(
        default="",
        description="Base URL of the hosted table API, e.g. https://<project>.example.co/rest/v1",
    )
    remote_api_key: str | None = Field(default=None, description="API key sent as the apikey header")
    remote_access_token: str | None = Field(default=None, description="User access token (Bearer)")
    remote_timeout_seconds: float = Field(default=10.0, gt=0)

    progress_table: str = "user_lesson_progress"
    lessons_table: str = "learning_lessons"
    tests_table: str = "lesson_tests"
    questions_table: str = "test_questions"

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(default="INFO", description="Loguru level for the stderr sink")

    @property
    def json_store_dir(self) -> Path:
        return self.data_dir / "store"

    @property
    def sqlite_path(self) -> Path:
        return self.data_dir / "progress.db"

    def has_remote_configured(self) -> bool:
        """Check if the hosted table API can be reached with current settings."""
        return bool(self.remote_base_url and self.remote_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with a stderr sink at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or get_settings().log_level).upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name} - <level>{message}</level>",
    )
