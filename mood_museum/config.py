"""
Centralised settings for the Mood Museum service.

Values are read from environment variables. A ``.env`` file in the working
directory is loaded when this module is imported and never overrides
variables that are already set.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv(override=False)

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_CONTRACT_ADDRESS = "0x0000000000000000000000000000000000000000"
DEFAULT_CHAIN_ID = 11155111
DEFAULT_DURATION_DAYS = 30


@dataclass
class Settings:
    # Client side
    backend_url: str = field(
        default_factory=lambda: os.environ.get("MUSEUM_BACKEND_URL", DEFAULT_BASE_URL)
    )
    duration_days: int = field(
        default_factory=lambda: int(
            os.environ.get("MUSEUM_DURATION_DAYS", str(DEFAULT_DURATION_DAYS))
        )
    )

    # Relay server
    host: str = field(default_factory=lambda: os.environ.get("MUSEUM_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.environ.get("MUSEUM_PORT", "8000")))
    contract_address: str = field(
        default_factory=lambda: os.environ.get(
            "MUSEUM_CONTRACT_ADDRESS", DEFAULT_CONTRACT_ADDRESS
        )
    )
    chain_id: int = field(
        default_factory=lambda: int(
            os.environ.get("MUSEUM_CHAIN_ID", str(DEFAULT_CHAIN_ID))
        )
    )

    log_level: str = field(
        default_factory=lambda: os.environ.get("MUSEUM_LOG_LEVEL", "warning")
    )


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()


def configure_logging(level: str) -> None:
    """Configure root logging for command-line entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
