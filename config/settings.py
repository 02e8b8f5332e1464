"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``YOJANA_`` prefix; infrastructure settings use their
canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the Yojana recommendation service.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``YOJANA_``; infra keys use their
    standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="YOJANA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── Redis ──────────────────────────────────────────────────────────
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Collaborators ──────────────────────────────────────────────────
    # Empty URL means the in-process store / bundled catalog is used.
    profile_service_url: str = ""
    scheme_service_url: str = ""
    catalog_path: str = ""
    dependency_timeout_seconds: float = Field(default=5.0, gt=0)

    # ── Cache TTLs (seconds) ───────────────────────────────────────────
    recommendation_cache_ttl: int = Field(default=21_600, ge=1)  # 6 hours
    scheme_cache_ttl: int = Field(default=14_400, validation_alias="SCHEME_CACHE_TTL")  # 4 hours

    # ── Recommendation options ─────────────────────────────────────────
    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=100, ge=1)
    scoring_chunk_size: int = Field(default=64, ge=1)

    # ── Scoring weights (must sum to 1.0) ──────────────────────────────
    weight_eligibility: float = Field(default=0.50, ge=0)
    weight_benefit: float = Field(default=0.20, ge=0)
    weight_deadline: float = Field(default=0.15, ge=0)
    weight_popularity: float = Field(default=0.10, ge=0)
    weight_completeness: float = Field(default=0.05, ge=0)

    deadline_urgent_days: int = Field(default=7, ge=0)
    deadline_horizon_days: int = Field(default=90, ge=1)

    # ── Ranking thresholds ─────────────────────────────────────────────
    partial_match_threshold: float = Field(default=40.0, ge=0, le=100)
    high_priority_threshold: float = Field(default=70.0, ge=0, le=100)
    medium_priority_threshold: float = Field(default=40.0, ge=0, le=100)

    @model_validator(mode="after")
    def _check_consistency(self) -> Settings:
        total = (
            self.weight_eligibility
            + self.weight_benefit
            + self.weight_deadline
            + self.weight_popularity
            + self.weight_completeness
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0 (got {total:.4f})")
        if self.deadline_urgent_days >= self.deadline_horizon_days:
            raise ValueError("deadline_urgent_days must be below deadline_horizon_days")
        if self.high_priority_threshold < self.medium_priority_threshold:
            raise ValueError("high_priority_threshold must be >= medium_priority_threshold")
        return self

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION


# Module-level singleton: import ``settings`` everywhere.
settings = Settings()
