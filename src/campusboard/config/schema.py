"""Pydantic models for campusboard configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class GeneralConfig(BaseModel):
    """Forum behaviour settings."""

    owner_name: str = "Owner"
    alias_prefix: str = "Anon"
    alias_claim_retries: int = 5
    short_comment_limit: int = 5
    short_reply_limit: int = 5
    page_size: int = 20
    max_page_size: int = 100


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///~/.local/share/campusboard/campusboard.db"
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0
    pool_recycle: int = 3600


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class ImagesConfig(BaseModel):
    """Local image store settings."""

    directory: str = "~/.local/share/campusboard/images"
    base_url: str = "/images"
    max_per_thread: int = 3


class NotifierConfig(BaseModel):
    """Outbound announcement notifier."""

    enabled: bool = False
    endpoint: str = ""
    timeout: float = 10.0


class APIConfig(BaseModel):
    """REST API server settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    jwt_secret: str | None = None
    jwt_secret_env: str = "CAMPUSBOARD_JWT_SECRET"


class PurgeConfig(BaseModel):
    """Permanent purge of soft-deleted threads."""

    retention_days: int = 30


class CampusBoardConfig(BaseModel):
    """Top-level configuration for campusboard."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    purge: PurgeConfig = Field(default_factory=PurgeConfig)
