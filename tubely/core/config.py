from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ONE_GIB = 1 << 30


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Tubely API."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubely.db",
        description="SQLAlchemy compatible DSN for the video metadata store.",
    )

    storage_backend: Literal["local", "s3"] = Field(default="local", description="Active object store implementation.")
    assets_root: Path = Field(default_factory=lambda: Path("assets"), description="Root for locally published objects.")
    staging_dir: Path | None = Field(
        default=None,
        description="Directory for in-flight uploads (defaults to the system temp dir).",
    )
    public_base_url: str = Field(
        default="http://localhost:8091/assets",
        description="Public prefix for objects published by the local store.",
    )

    s3_bucket: Optional[str] = None
    s3_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = Field(default=None, description="Override endpoint, e.g. for MinIO.")
    s3_cf_distribution: Optional[str] = Field(
        default=None,
        description="CDN distribution prefix used to build public URLs for S3 objects.",
    )

    max_video_upload_bytes: int = Field(default=ONE_GIB, gt=0, description="Hard cap for video upload bodies.")
    accepted_video_type: str = Field(default="video/mp4", description="The only media type accepted for videos.")

    ffprobe_binary: str = Field(default="ffprobe")
    ffmpeg_binary: str = Field(default="ffmpeg")
    media_tool_timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional wall-clock limit for a single ffprobe/ffmpeg invocation.",
    )

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = Field(default="tubely-access")
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def public_asset_base(self) -> str:
        if self.storage_backend == "s3":
            if not self.s3_cf_distribution:
                raise ValueError("TUBELY_S3_CF_DISTRIBUTION is required for the s3 storage backend.")
            return self.s3_cf_distribution
        return self.public_base_url


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "TUBELY_ENV": "TUBELY_ENVIRONMENT",
        "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()
    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")

    settings.secrets = secrets
    return settings


__all__ = ["ONE_GIB", "Secrets", "Settings", "get_settings"]
