"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    api_base_url: str
    request_signing_key: str
    request_timeout_seconds: float = 10.0
    verify_interval_seconds: float = 300.0
    session_file: Path | None = None
    encrypt_sensitive_fields: bool = True
    sensitive_fields: str | None = None
    client_version: str = "1.0"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="WINBOARD_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_sensitive_fields(raw: str | None) -> frozenset[str] | None:
    """Parse a comma-separated list of body fields to obfuscate."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    fields = {chunk.strip() for chunk in cleaned.split(",")}
    fields.discard("")
    return frozenset(fields) or None
