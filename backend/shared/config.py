"""
Settings for the Kho-Kho Live services, read from ``KK_*`` environment
variables (and an optional ``.env``) through pydantic-settings.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import Field, PostgresDsn, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

from shared.models.enums import BreakKind

_ASYNCPG_SCHEME = "postgresql+asyncpg://"


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="KK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Container ID added to every log line")

    # Postgres holds the authoritative match rows
    database_url: PostgresDsn = Field(default=f"{_ASYNCPG_SCHEME}khokho:khokho@postgres:5432/khokho")
    db_pool_min: int = Field(default=2, ge=1)
    db_pool_max: int = Field(default=10, ge=1)
    db_command_timeout: int = 30

    # Redis carries the per-match change feed
    redis_url: RedisDsn = Field(default="redis://redis:6379/0")
    redis_max_connections: int = 50

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]
    connect_attempts: int = Field(default=10, ge=1, description="Startup attempts for Redis and Postgres")

    timer_tick_interval_s: float = Field(default=1.0, gt=0)
    turn_duration_s: int = Field(default=540, ge=0, description="Turn time limit; 0 disables it")
    turn_break_duration_s: int = Field(default=180, gt=0)
    inning_break_duration_s: int = Field(default=300, gt=0)

    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("database_url", mode="before")
    @classmethod
    def use_asyncpg_driver(cls, value: Any) -> Any:
        """Hosted Postgres URLs come as postgres:// or postgresql://; the engine needs asyncpg."""
        if not isinstance(value, str) or "+asyncpg" in value:
            return value
        for prefix in ("postgres://", "postgresql://"):
            if value.startswith(prefix):
                return _ASYNCPG_SCHEME + value[len(prefix):]
        return value

    @property
    def redis_url_str(self) -> str:
        return str(self.redis_url)

    @property
    def database_url_str(self) -> str:
        return str(self.database_url)

    @property
    def database_url_safe_log(self) -> str:
        """Database URL with the password masked."""
        return make_url(self.database_url_str).render_as_string(hide_password=True)

    def break_duration_s(self, kind: BreakKind) -> int:
        if kind == BreakKind.INNING:
            return self.inning_break_duration_s
        return self.turn_break_duration_s


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
