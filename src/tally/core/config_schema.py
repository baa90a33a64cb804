"""Pydantic models for config validation.

``Config.validated()`` turns the merged config dict into a ``TallyConfig``.
Env-var overrides arrive as strings; pydantic coerces them to the declared
numeric types.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PathsConfig(BaseModel):
    """File-system paths used by the application."""

    data_dir: Path
    store_file: Path | None = None
    log_dir: Path | None = None

    @field_validator("data_dir", "store_file", "log_dir", mode="before")
    @classmethod
    def _expand_user(cls, v: Any) -> Any:
        if isinstance(v, str) and v:
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v or None


class PortfolioConfig(BaseModel):
    """Currency consolidation and cache windows for the portfolio analyzer."""

    base_currency: str = "ILS"
    fx_cache_ttl_seconds: float = Field(default=3600, ge=0)
    fallback_fx_rate: float = Field(default=3.65, gt=0)
    value_cache_ttl_seconds: float = Field(default=5 * 3600, ge=0)
    asset_update_threshold_seconds: float = Field(default=5 * 3600, ge=0)

    @field_validator("base_currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


class QuotesConfig(BaseModel):
    """Quote provider call settings."""

    timeout_seconds: float = Field(default=10.0, gt=0)
    sparkline_days: int = Field(default=7, ge=0)
    fixtures_file: str = ""


class BackfillConfig(BaseModel):
    """Net-worth backfill settings."""

    initial_months: int = Field(default=6, ge=1)
    max_concurrent: int = Field(default=4, ge=1)


class TallyConfig(BaseModel):
    """Root configuration model. Unknown sections are kept."""

    model_config = ConfigDict(extra="allow")

    paths: PathsConfig = PathsConfig(data_dir=Path("~/.tally-data"))
    portfolio: PortfolioConfig = PortfolioConfig()
    quotes: QuotesConfig = QuotesConfig()
    backfill: BackfillConfig = BackfillConfig()
