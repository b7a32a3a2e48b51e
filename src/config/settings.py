"""Application settings.

Each settings class reads its own environment prefix (``APP_``, ``REDIS_``,
``STORAGE_``; the store uses ``DB_``, see ``config.database``). A ``.env``
file in the working directory is honoured for ``APP_`` values.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database import DatabaseSettings, get_database_settings


class RedisSettings(BaseSettings):
    """Cache store connection and key layout."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = "localhost"
    port: int = 6379
    db: int = Field(default=0, description="Logical database index")
    password: Optional[str] = None
    ssl: bool = Field(default=False, description="Connect with rediss://")

    max_connections: int = Field(default=50, ge=1)
    socket_timeout: int = Field(default=5, description="Seconds per command")
    socket_connect_timeout: int = Field(default=5, description="Seconds to connect")

    key_prefix: str = Field(default="abs_admin:", description="Namespace for every key")
    default_ttl: Optional[int] = Field(
        default=None,
        description="Expiry in seconds for keys written without a ttl; None keeps them",
    )

    @property
    def url(self) -> str:
        scheme = "rediss" if self.ssl else "redis"
        credentials = f":{self.password}@" if self.password else ""
        return f"{scheme}://{credentials}{self.host}:{self.port}/{self.db}"


class StorageSettings(BaseSettings):
    """Local file storage."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    root: Path = Field(default=Path("data/storage"), description="Directory stored names resolve against")


class Settings(BaseSettings):
    """Top-level settings for the admin backend."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = "abs_admin"
    version: str = "0.1.0"
    environment: str = Field(default="development", description="development, test, staging or production")
    debug: bool = Field(default=False, description="Also logs every role cache hit")

    log_level: str = "INFO"
    log_json: bool = Field(default=False, description="JSON log lines instead of readable ones")

    api_host: str = "127.0.0.1"
    api_port: int = 8000

    cache_backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="memory keeps the role snapshot in-process (single worker only)",
    )
    role_cache_key: str = Field(
        default="sys_role:all",
        description="Key holding the serialized snapshot of every role",
    )

    # Sub-settings read their own prefixes on access
    @property
    def redis(self) -> RedisSettings:
        return RedisSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def database(self) -> DatabaseSettings:
        return get_database_settings()

    @property
    def is_production(self) -> bool:
        return self.environment in ("production", "prod", "staging")


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once per process; tests clear the cache between runs."""
    return Settings()
