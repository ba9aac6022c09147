"""
Configuration - Environment settings for the server and CLI.

Read once from the environment:
    CASINO_ENV               development | production
    CASINO_LOG_LEVEL         logging level name (INFO)
    ALLOWED_ORIGINS          comma separated CORS origins (*)
    CASINO_HOST              bind address for `casino serve` (0.0.0.0)
    CASINO_PORT              bind port for `casino serve` (3001)
    CASINO_SESSION_MAX_AGE   seconds before a finished session is dropped (3600)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from functools import lru_cache
import logging
import os


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    """Runtime settings."""
    env: str = "development"
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 3001
    session_max_age: int = 3600

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables."""
        return cls(
            env=os.getenv("CASINO_ENV", "development"),
            log_level=os.getenv("CASINO_LOG_LEVEL", "INFO").upper(),
            allowed_origins=[
                origin.strip()
                for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            host=os.getenv("CASINO_HOST", "0.0.0.0"),
            port=int(os.getenv("CASINO_PORT", "3001")),
            session_max_age=int(os.getenv("CASINO_SESSION_MAX_AGE", "3600")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for this process, read on first use."""
    return Settings.from_env()


def configure_logging(level: str | int | None = None) -> None:
    """Set up root logging with the standard format."""
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
