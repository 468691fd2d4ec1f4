"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Vitalog server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback: this is a single-owner personal server.
    vitalog_host: str = "127.0.0.1"
    vitalog_port: int = 8010
    vitalog_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is set true.
    vitalog_allow_insecure_bind: bool = False

    # Identity: opaque user id issued by the identity provider for this server's owner
    vitalog_owner_id: str = ""

    # Storage (reading store)
    db_path: str = "~/.vitalog/readings.db"

    # Encryption (notes are encrypted at rest)
    encryption_key: str = ""

    # Timestamps: reject submissions without a client UTC offset instead of
    # interpreting them in the server's local timezone.
    require_utc_offset: bool = False


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
