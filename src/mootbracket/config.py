"""
Configuration management for mootbracket.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. Database URLs and other
deployment-specific values should be set via environment variables or a
.env file.

Usage:
    from mootbracket.config import settings
    print(settings.database_url)
"""

import json
from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_STAGE_ORDER = ["Prelims", "Quarter-Finals", "Semi-Finals", "Final"]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    # SQLite for local development; production points this at PostgreSQL
    database_url: str = Field(
        default="sqlite:///mootbracket.db",
        description="SQLAlchemy connection URL for the round/score store",
    )

    # Pool settings (ignored by SQLite's single-file pool)
    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    # ==========================================================================
    # Bracket Configuration
    # ==========================================================================

    # Ordered single-elimination stages, first to last.
    # Accepts a JSON list or a comma separated string in the environment.
    stage_order: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_STAGE_ORDER),
        description="Bracket stages in progression order",
    )
    default_round_duration_minutes: int = Field(
        default=60,
        description="Round duration used when a create request omits it",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================

    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to",
    )
    api_port: int = Field(
        default=8000,
        description="Port for the API server",
    )
    api_reload: bool = Field(
        default=False,
        description="Enable auto-reload for development",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="%(asctime)s %(levelname)s %(name)s: %(message)s",
        description="logging.basicConfig format string for entry points",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("stage_order", mode="before")
    @classmethod
    def parse_stage_order(cls, v: Any) -> list[str]:
        """Accept JSON lists and comma separated strings."""
        if isinstance(v, str):
            raw = v.strip()
            if raw.startswith("["):
                v = json.loads(raw)
            else:
                v = raw.split(",")
        stages = [str(s).strip() for s in v if str(s).strip()]
        if not stages:
            raise ValueError("stage_order must contain at least one stage")
        if len(stages) != len(set(stages)):
            raise ValueError("stage_order must not repeat a stage")
        return stages

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
