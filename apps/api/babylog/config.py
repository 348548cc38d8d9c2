"""Application configuration utilities."""
from __future__ import annotations

import json
import logging
import os
import secrets
from pathlib import Path
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPES = ["Feed", "Diaper", "Sleep", "Bath", "Medicine"]


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json and the environment."""

    session_secret: str = Field(default="", description="HMAC key for session tokens")
    session_ttl_days: int = Field(default=30, ge=1)
    cookie_name: str = Field(default="babylog_session")
    cookie_secure: bool = Field(default=True)
    backend: Literal["memory", "sqlite"] = Field(default="memory")
    database_path: str = Field(default="./data/babylog.db")
    allowed_emails: List[str] = Field(default_factory=lambda: ["parent1@example.com", "parent2@example.com"])
    default_password: str = Field(default="changeme")
    password_hash_rounds: int = Field(default=12, ge=4, le=31)
    baby_id: str = Field(default="baby")
    baby_name: str = Field(default="Baby")
    default_event_types: List[str] = Field(default_factory=lambda: list(DEFAULT_EVENT_TYPES))
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @field_validator("allowed_emails")
    @classmethod
    def _two_identities(cls, value: List[str]) -> List[str]:
        emails = [email.strip().lower() for email in value if email.strip()]
        if len(emails) != 2 or len(set(emails)) != 2:
            raise ValueError("allowed_emails must list exactly two distinct identities")
        return emails

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_days * 24 * 60 * 60

    @property
    def resolved_database_path(self) -> Path:
        """Return the absolute path for the SQLite database file."""
        return (Path(__file__).resolve().parents[1] / self.database_path).resolve()


def _config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "config.json"


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if os.getenv("BABYLOG_SESSION_SECRET"):
        overrides["session_secret"] = os.environ["BABYLOG_SESSION_SECRET"]
    if os.getenv("BABYLOG_BACKEND"):
        overrides["backend"] = os.environ["BABYLOG_BACKEND"]
    if os.getenv("BABYLOG_DATABASE_PATH"):
        overrides["database_path"] = os.environ["BABYLOG_DATABASE_PATH"]
    if os.getenv("BABYLOG_ALLOWED_EMAILS"):
        overrides["allowed_emails"] = os.environ["BABYLOG_ALLOWED_EMAILS"].split(",")
    if os.getenv("BABYLOG_COOKIE_SECURE"):
        overrides["cookie_secure"] = os.environ["BABYLOG_COOKIE_SECURE"].lower() in {"1", "true", "yes"}
    return overrides


def load_config() -> AppConfig:
    """Load configuration from config.json (optional) with environment overrides."""

    contents: Dict[str, Any] = {}
    config_file = _config_path()
    if config_file.exists():
        contents = json.loads(config_file.read_text())
    contents.update(_env_overrides())
    config = AppConfig(**contents)
    if not config.session_secret:
        logger.warning(
            "no session secret configured; generating one for this process",
            extra={"config_file": str(config_file)},
        )
        config = config.model_copy(update={"session_secret": secrets.token_urlsafe(32)})
    return config
