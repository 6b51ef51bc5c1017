from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseModel):
    """Application-specific configuration values."""

    name: str = "miujsag"
    env: str = "development"
    log_level: str = "INFO"


class EngineConfig(BaseModel):
    """Search engine connection values."""

    # "memory" keeps a whoosh index in RAM; useful for tests and local runs
    backend: Literal["elasticsearch", "memory"] = "elasticsearch"
    url: str = "http://localhost:9200"
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 30.0
    verify_ssl: bool = True
    # Passed as the `refresh` parameter of document writes. "wait_for" makes a
    # written article visible to the next url lookup, which deduplication relies on
    refresh: Literal["false", "true", "wait_for"] = "wait_for"


class IndexConfig(BaseModel):
    """Index naming values."""

    name: str = "miujsag"


class SearchConfig(BaseModel):
    """Tuning values used when building search queries."""

    page_size: int = Field(default=20, ge=1)
    window_days: int = Field(default=7, ge=1)
    fuzziness: int = Field(default=1, ge=0, le=2)
    prefix_length: int = Field(default=2, ge=0)
    fragments: int = Field(default=1, ge=1)


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="MIUJSAG_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    engine: EngineConfig = EngineConfig()
    index: IndexConfig = IndexConfig()
    search: SearchConfig = SearchConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    return Settings()  # type: ignore[call-arg]
