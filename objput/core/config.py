from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    S3_ENDPOINT: str | None = None
    S3_ACCESS_KEY: str | None = None
    S3_SECRET_KEY: str | None = None
    S3_CONNECT_TIMEOUT: float = 10.0
    S3_READ_TIMEOUT: float = 60.0
    OBJPUT_BUCKET: str = "objput"

    # Retry policy, delays in seconds
    UPLOAD_MAX_ATTEMPTS: int = 3
    UPLOAD_INITIAL_DELAY: float = 1.0
    UPLOAD_MAX_DELAY: float = 10.0
    UPLOAD_BACKOFF_FACTOR: float = 2.0
    UPLOAD_PART_SIZE: int = 10 * 1024 * 1024  # used when the length is unknown

    METRICS_TEXTFILE: Path | None = None

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
