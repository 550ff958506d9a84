"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FALLBACK_MOVIES_PATH = Path(__file__).resolve().parent / "data" / "fallback-movies.json"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineAI", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(
        default=None,
        alias="TMDB_API_KEY",
        validation_alias=AliasChoices("TMDB_API_KEY", "NEXT_PUBLIC_TMDB_API_KEY"),
    )
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_url: HttpUrl = Field(
        default="https://image.tmdb.org/t/p", alias="TMDB_IMAGE_URL"
    )
    tmdb_request_timeout: float = Field(
        default=5.0, alias="TMDB_REQUEST_TIMEOUT", gt=0, le=60
    )
    tmdb_retry_limit: int = Field(default=2, alias="TMDB_RETRY_LIMIT", ge=0, le=10)
    tmdb_retry_delay: float = Field(
        default=0.5, alias="TMDB_RETRY_DELAY", ge=0, le=30
    )

    fallback_movies_path: Path = Field(
        default=DEFAULT_FALLBACK_MOVIES_PATH, alias="FALLBACK_MOVIES_PATH"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./cineai.db", alias="DATABASE_URL"
    )
    storage_key: str = Field(default="cineai_movie_data", alias="STORAGE_KEY")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: object) -> object:
        """Treat empty or whitespace-only API keys as unconfigured."""

        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("storage_key")
    @classmethod
    def _validate_storage_key(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("STORAGE_KEY may not be empty")
        return cleaned

    @property
    def has_tmdb_credentials(self) -> bool:
        return bool(self.tmdb_api_key)

    @property
    def tmdb_base_url(self) -> str:
        """Return the TMDB API root without a trailing slash."""

        return str(self.tmdb_api_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
