"""Persistent store settings.

The role tables live in SQLite for local runs and tests, and in PostgreSQL
(asyncpg) when deployed. Values come from ``DB_*`` environment variables.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """
    Connection settings for the RBAC store.

    Example environment:
        DB_DRIVER=postgresql+asyncpg
        DB_HOST=db.internal
        DB_NAME=abs_admin
        DB_USER=admin
        DB_PASSWORD=secret
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    driver: str = Field(default="sqlite+aiosqlite", description="SQLAlchemy async driver")

    # Server databases
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="abs_admin", description="Database name")
    user: str = Field(default="")
    password: str = Field(default="")

    # Local file database
    sqlite_path: Path = Field(default=Path("data/abs_admin.db"), description="SQLite file")

    # Pooling (ignored for SQLite, which runs without a pool)
    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=20, ge=0, le=100)
    pool_timeout: int = Field(default=30, ge=1, description="Seconds to wait for a connection")
    pool_recycle: int = Field(default=1800, ge=60, description="Connection lifetime in seconds")
    pool_pre_ping: bool = Field(default=True)

    echo_sql: bool = Field(default=False, description="Log every statement")
    query_timeout: int = Field(default=30, ge=1, description="Statement timeout in seconds")

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.driver.lower()

    @computed_field
    @property
    def is_postgres(self) -> bool:
        return "postgres" in self.driver.lower()

    @computed_field
    @property
    def async_url(self) -> str:
        """SQLAlchemy URL; for SQLite the file's directory is created on demand."""
        if self.is_sqlite:
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite+aiosqlite:///{self.sqlite_path.absolute()}"

        credentials = self.user
        if credentials and self.password:
            credentials = f"{credentials}:{self.password}"
        if credentials:
            credentials += "@"
        return f"{self.driver}://{credentials}{self.host}:{self.port}/{self.name}"

    def get_connect_args(self) -> dict:
        """Driver-level arguments passed through ``connect_args``."""
        if self.is_sqlite:
            return {"check_same_thread": False, "timeout": self.query_timeout}
        return {"command_timeout": self.query_timeout}


@lru_cache
def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()
