"""
Taskflow — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Kanban REST backend
    API_BASE_URL: str = "http://localhost:8080"
    API_TOKEN: str
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Persistence collaborator: only "rest" is shipped
    BACKEND: str = "rest"

    # Calendar
    TIMEZONE: str = "Asia/Tokyo"
    DEFAULT_EVENT_MINUTES: int = 30
    QUICK_ADD_ROUND_MINUTES: int = 10

    # Timer
    DEFAULT_TIMER_MINUTES: int = 25

    # Board
    DONE_COLUMN_TITLE: str = "Done"
    DEFAULT_BOARD_ID: int = 1

    @field_validator("API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator(
        "DEFAULT_EVENT_MINUTES",
        "QUICK_ADD_ROUND_MINUTES",
        "DEFAULT_TIMER_MINUTES",
        "DEFAULT_BOARD_ID",
        mode="before",
    )
    @classmethod
    def parse_positive_int(cls, v: str | int) -> int:
        value = int(v)
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("API_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: API_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        API_BASE_URL=os.getenv("API_BASE_URL", "http://localhost:8080"),
        API_TOKEN=token,
        HTTP_TIMEOUT_SECONDS=os.getenv("HTTP_TIMEOUT_SECONDS", "10"),
        BACKEND=os.getenv("BACKEND", "rest"),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Tokyo"),
        DEFAULT_EVENT_MINUTES=os.getenv("DEFAULT_EVENT_MINUTES", "30"),
        QUICK_ADD_ROUND_MINUTES=os.getenv("QUICK_ADD_ROUND_MINUTES", "10"),
        DEFAULT_TIMER_MINUTES=os.getenv("DEFAULT_TIMER_MINUTES", "25"),
        DONE_COLUMN_TITLE=os.getenv("DONE_COLUMN_TITLE", "Done"),
        DEFAULT_BOARD_ID=os.getenv("DEFAULT_BOARD_ID", "1"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
