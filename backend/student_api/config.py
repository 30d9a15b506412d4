"""
Runtime configuration read from environment variables.

A `.env` file in the working directory is loaded first (python-dotenv),
so local development works without exporting variables by hand.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PORT = 3000
SERVERLESS_PRODUCTION = "production"


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, resolved once at startup."""
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    database_url: Optional[str] = None
    deploy_env: Optional[str] = None
    log_level: str = "INFO"

    @property
    def is_serverless(self) -> bool:
        """True when the hosting platform owns the listener."""
        return self.deploy_env == SERVERLESS_PRODUCTION

    @property
    def exit_on_startup_failure(self) -> bool:
        # Any deployment flag (preview, development) keeps the process alive
        return not self.deploy_env


def _parse_port(value: Optional[str]) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        return int(value)
    except ValueError:
        return DEFAULT_PORT


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        port=_parse_port(os.getenv("PORT")),
        host=os.getenv("HOST", "0.0.0.0"),
        database_url=os.getenv("DATABASE_URL") or None,
        deploy_env=os.getenv("VERCEL_ENV") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
