"""shiftwatch configuration schema — YAML + Pydantic + env override."""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ════════════════════════════════════════════════════════════
# SUB-CONFIGS (nested BaseModel)
# ════════════════════════════════════════════════════════════


class AutomationConfig(BaseModel):
    """Scheduling engine (automation.*)."""

    timezone: str = "Asia/Jerusalem"
    backoff_seconds: list[int] = Field(default_factory=lambda: [60, 300, 900])
    default_max_retries: int = Field(default=3, ge=0)
    interrupted_grace_s: int = Field(default=0, ge=0)
    seed_catalog: bool = True
    # job name → "package.module:function"
    handlers: dict[str, str] = Field(default_factory=dict)
    # job name → cron expression, applied only when a config row is first seeded
    schedules: dict[str, str] = Field(default_factory=dict)

    @field_validator("backoff_seconds")
    @classmethod
    def _non_empty_backoff(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("backoff_seconds must contain at least one delay")
        if any(v < 0 for v in value):
            raise ValueError("backoff_seconds must be non-negative")
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {value!r}") from e
        return value


class DatabaseConfig(BaseModel):
    path: str = "data/shiftwatch.db"


class ApiConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


# ════════════════════════════════════════════════════════════
# ROOT CONFIG (BaseSettings — env + .env support)
# ════════════════════════════════════════════════════════════


class Config(BaseSettings):
    """
    Root configuration.

    Priority: env vars > .env > YAML (init kwargs) > defaults

    Env override examples:
        SHIFTWATCH_AUTOMATION__TIMEZONE=UTC
        SHIFTWATCH_DATABASE__PATH=data/prod.db
        SHIFTWATCH_API__PORT=9000
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIFTWATCH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML arrives as init kwargs; env must still win over it
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    # ── Computed properties ─────────────────────────────────

    @property
    def db_path(self) -> Path:
        return Path(self.database.path)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.automation.timezone)
