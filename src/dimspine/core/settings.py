"""Runtime settings for dimspine.

Settings are read from ``DIMSPINE_*`` environment variables and an optional
``.env`` file. CLI flags override them per invocation.

Fields
──────
database_path                   : SQLite warehouse file
log_level                       : structlog level
json_logs                       : JSON renderer (None = auto-detect from TTY)
max_workers                     : Thread pool size for dimension builds and fact chunks
fact_chunk_size                 : Sales rows per fact-resolution task
reconcile_tolerance             : Absolute tolerance for monetary reconciliation sums
include_signup_dates_in_calendar: Add customer signup dates to the calendar dimension

Examples:
    >>> settings = load_settings(max_workers=1)
    >>> settings.database_path.name
    'dimspine.db'
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dimspine.core.errors import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DimspineSettings(BaseSettings):
    """Validated settings for one pipeline invocation."""

    model_config = SettingsConfigDict(
        env_prefix="DIMSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".dimspine" / "dimspine.db",
        description="SQLite warehouse file",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Execution ────────────────────────────────────────────────
    max_workers: int = Field(default=4, ge=1)
    fact_chunk_size: int = Field(default=5000, ge=1)

    # ── Conformance ──────────────────────────────────────────────
    reconcile_tolerance: Decimal = Field(default=Decimal("0"), ge=0)
    include_signup_dates_in_calendar: bool = True

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


def load_settings(**overrides: Any) -> DimspineSettings:
    """
    Build settings from the environment plus explicit overrides.

    ``None`` overrides are ignored so CLI options can pass through unset
    flags. Validation failures surface as ``ConfigError``.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return DimspineSettings(**values)
    except ValidationError as exc:
        first = exc.errors()[0]
        key = ".".join(str(part) for part in first["loc"]) or "settings"
        raise ConfigError(key, first.get("input"), f"Invalid configuration for {key}: {first['msg']}") from exc
