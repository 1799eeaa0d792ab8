"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Flarecast forecast server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback so a personal health journal is never exposed to the
    # LAN/WAN by accident. Opt into `0.0.0.0` explicitly for remote access.
    flarecast_host: str = "127.0.0.1"
    flarecast_port: int = 8001
    flarecast_log_level: str = "info"
    # Binding to a non-loopback address is refused unless this is set true.
    flarecast_allow_insecure_bind: bool = False

    # Storage (journal)
    db_path: str = "~/.flarecast/journal.db"

    # Encryption
    encryption_key: str = ""

    # Forecast inputs
    entry_fetch_limit: int = 1000
    medication_fetch_limit: int = 200
    min_entries_for_forecast: int = 5
    model_version: str = "v3-bayesian-ewma"

    # Serve a synthetic journal instead of the database (demos and tests)
    use_mock_data: bool = False


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
