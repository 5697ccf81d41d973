"""
Configuration management for the Requirements Gatherer.

Uses pydantic-settings for environment variable binding.
All settings can be overridden via environment variables with REQG_ prefix.
"""

import logging
import sys
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable binding."""

    model_config = SettingsConfigDict(
        env_prefix="REQG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================
    # Data Storage
    # ==========================================
    data_dir: Path = Path.home() / "requirements-gatherer"
    """Directory holding the JSON documents and the SQLite database."""

    storage_type: str = "sqlite"
    """Storage backend: 'sqlite' or 'json'. Unknown values fall back to json."""

    database_name: str = "requirements.db"

    # ==========================================
    # REST API
    # ==========================================
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # ==========================================
    # MCP Server
    # ==========================================
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8765

    # ==========================================
    # Logging
    # ==========================================
    log_level: str = "INFO"
    log_file: Path | None = None

    # ==========================================
    # Computed Properties
    # ==========================================
    @property
    def database_path(self) -> Path:
        return self.data_dir / self.database_name

    def ensure_directories(self) -> None:
        """Create the data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()


def setup_logging(level: str | None = None) -> None:
    """Configure application logging."""
    log_level = level or settings.log_level

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
    ]

    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=handlers,
    )

    # Quiet noisy libraries
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(f"reqgather.{name}")
