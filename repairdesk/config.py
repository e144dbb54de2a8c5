"""
Configuration settings for repairdesk.

Uses Pydantic Settings to load environment variables for the remote database,
the local fallback cache, logging, and the default accounts seeded into an
empty store.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Remote database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("repairdesk", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(5, alias="DB_POOL_MAX_SIZE")
    db_connect_timeout: float = Field(5.0, alias="DB_CONNECT_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Local fallback cache
    local_cache_path: Path = Field(Path("var/repairdesk-cache.json"), alias="LOCAL_CACHE_PATH")

    # Drop (False) or reject (True) patch fields outside the acting role's writable set
    strict_authorization: bool = Field(False, alias="STRICT_AUTHORIZATION")

    # Seed data for an empty store
    seed_admin_username: str = Field("admin", alias="SEED_ADMIN_USERNAME")
    seed_admin_password: str = Field("admin121890", alias="SEED_ADMIN_PASSWORD")
    seed_admin_name: str = Field("Administrator", alias="SEED_ADMIN_NAME")
    seed_technicians: List[str] = Field(
        default_factory=lambda: ["John Doe", "Jane Smith", "Mike Johnson"],
        alias="SEED_TECHNICIANS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
