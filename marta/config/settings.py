"""
Process configuration for the intake agent.

Settings are read once from the environment (and an optional ``.env`` file)
into an immutable model shared by every call session. ``validate_settings``
is called before the server accepts connections so that a missing credential
is a startup failure rather than a per-call error.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import dotenv
from pydantic import BaseModel, ConfigDict

from marta.config.constants import (
    DEFAULT_EXTRACT_MODEL,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_VOICE,
    DEFAULT_TIMEZONE,
    DEFAULT_TRANSCRIBE_MODEL,
    LOGGER_NAME,
    TURN_MODE_AUTO,
    TURN_MODE_MANUAL,
)
from marta.errors import ConfigError

logger = logging.getLogger(LOGGER_NAME)

REQUIRED_VARS = [
    "OPENAI_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_SMS_FROM",
    "ALERT_TO_NUMBER",
]

OPTIONAL_VARS = [
    "REALTIME_MODEL",
    "REALTIME_VOICE",
    "TRANSCRIBE_MODEL",
    "EXTRACT_MODEL",
    "TIMEZONE",
    "TURN_MODE",
    "MODEL_RECONNECT",
    "PUBLIC_HOST",
]

_TRUTHY = {"1", "true", "yes", "on", "si"}


class Settings(BaseModel):
    """Read-only process configuration."""

    model_config = ConfigDict(frozen=True)

    openai_api_key: str = ""
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_sms_from: str = ""
    alert_to_number: str = ""
    realtime_model: str = DEFAULT_REALTIME_MODEL
    realtime_voice: str = DEFAULT_REALTIME_VOICE
    transcribe_model: str = DEFAULT_TRANSCRIBE_MODEL
    extract_model: str = DEFAULT_EXTRACT_MODEL
    timezone: str = DEFAULT_TIMEZONE
    turn_mode: str = TURN_MODE_AUTO
    model_reconnect: bool = False
    public_host: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from an environment mapping (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        values: Dict[str, object] = {
            "openai_api_key": env.get("OPENAI_API_KEY", ""),
            "twilio_account_sid": env.get("TWILIO_ACCOUNT_SID", ""),
            "twilio_auth_token": env.get("TWILIO_AUTH_TOKEN", ""),
            "twilio_sms_from": env.get("TWILIO_SMS_FROM", ""),
            "alert_to_number": env.get("ALERT_TO_NUMBER", ""),
            "model_reconnect": env.get("MODEL_RECONNECT", "").strip().lower() in _TRUTHY,
            "public_host": env.get("PUBLIC_HOST") or None,
        }
        for name, var in (
            ("realtime_model", "REALTIME_MODEL"),
            ("realtime_voice", "REALTIME_VOICE"),
            ("transcribe_model", "TRANSCRIBE_MODEL"),
            ("extract_model", "EXTRACT_MODEL"),
            ("timezone", "TIMEZONE"),
        ):
            if env.get(var):
                values[name] = env[var]
        if env.get("TURN_MODE"):
            values["turn_mode"] = env["TURN_MODE"].strip().lower()
        return cls(**values)

    def missing_required(self) -> List[str]:
        """Names of required environment variables that are empty."""
        return [var for var in REQUIRED_VARS if not getattr(self, var.lower())]


def validate_settings(
    settings: Settings, environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Validate settings at startup.

    Raises:
        ConfigError: if a required variable is missing or a value is invalid.
    """
    missing = settings.missing_required()
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    if settings.turn_mode not in (TURN_MODE_AUTO, TURN_MODE_MANUAL):
        raise ConfigError(
            f"TURN_MODE must be '{TURN_MODE_AUTO}' or '{TURN_MODE_MANUAL}', got '{settings.turn_mode}'"
        )

    try:
        ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown TIMEZONE '{settings.timezone}'") from e

    env = os.environ if environ is None else environ
    for var in OPTIONAL_VARS:
        if not env.get(var):
            logger.warning(f"Optional env var {var} is not set, using default")

    return settings


def load_dotenv_file(path: Path = Path(".") / ".env") -> bool:
    """Load a ``.env`` file into the environment if it exists."""
    if path.exists():
        return dotenv.load_dotenv(path)
    return False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    load_dotenv_file()
    return Settings.from_env()
