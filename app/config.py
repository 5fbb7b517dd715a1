"""Application configuration models."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LANGUAGE_TAG_RE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="WatchDeck", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="fr-FR", alias="TMDB_LANGUAGE")
    tmdb_image_language: str = Field(default="en-US", alias="TMDB_IMAGE_LANGUAGE")
    watch_region: str = Field(default="FR", alias="WATCH_REGION")
    cast_limit: int = Field(default=10, alias="CAST_LIMIT", ge=1, le=50)

    hero_item_count: int = Field(default=4, alias="HERO_ITEM_COUNT", ge=0, le=20)
    agenda_lookup_timeout: float = Field(
        default=10.0, alias="AGENDA_LOOKUP_TIMEOUT", gt=0
    )
    agenda_concurrency: int = Field(
        default=8, alias="AGENDA_CONCURRENCY", ge=1, le=64
    )

    password_hash_iterations: int = Field(
        default=210_000, alias="PASSWORD_HASH_ITERATIONS", ge=10_000
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./watchdeck.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("watch_region", mode="before")
    @classmethod
    def _normalise_region(cls, value: object) -> object:
        if isinstance(value, str):
            region = value.strip().upper()
            if len(region) != 2 or not region.isalpha():
                raise ValueError("WATCH_REGION must be a two-letter country code")
            return region
        return value

    @field_validator("tmdb_language", "tmdb_image_language")
    @classmethod
    def _validate_language(cls, value: str) -> str:
        cleaned = value.strip()
        if not LANGUAGE_TAG_RE.match(cleaned):
            raise ValueError("Language must look like 'en' or 'en-US'")
        return cleaned

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
