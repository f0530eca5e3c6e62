"""Runtime settings, environment-driven via pydantic-settings.

Invariants:
    - ``APP_ENV`` selects a named profile (staging or production); an unknown
      name falls back to staging
    - Precedence: explicit init kwargs > environment / .env > profile > field default
    - The resulting `Settings` is the read-only secret provider handed to the
      token service and the handlers

Twilio credentials live in their own nested settings object, read from
``TWILIO_*`` variables.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

__all__ = [
    "TwilioSettings",
    "Settings",
    "ENVIRONMENTS",
    "ConfigError",
    "load_settings",
]


class ConfigError(ValueError):
    """Raised when the environment holds a value that does not validate."""


ENVIRONMENTS: dict[str, dict[str, Any]] = {
    "staging": {
        "http_port": 3000,
        "hashing_secret": "staging-hashing-secret",
        "max_checks": 5,
    },
    "production": {
        "http_port": 443,
        "hashing_secret": "production-hashing-secret",
        "max_checks": 5,
    },
}


class TwilioSettings(BaseSettings):
    """Credentials for the outbound SMS sender."""

    model_config = SettingsConfigDict(
        env_prefix="TWILIO_", env_file=".env", env_ignore_empty=True,
        case_sensitive=False, extra="ignore",
    )

    account_sid: str = ""
    auth_token: str = ""
    from_phone: str = ""
    country_code: str = "+1"
    base_url: str = "https://api.twilio.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_empty=True, case_sensitive=False, extra="ignore",
    )

    env_name: str = Field("staging", validation_alias=AliasChoices("app_env", "env_name"))
    host: str = "0.0.0.0"
    http_port: int = Field(3000, ge=1, le=65535)
    data_dir: Path = Path(".data")
    hashing_secret: str = Field(..., min_length=1)
    max_checks: int = Field(5, ge=0)
    ssl_keyfile: Optional[Path] = None
    ssl_certfile: Optional[Path] = None
    log_level: str = "INFO"
    twilio: TwilioSettings = Field(default_factory=TwilioSettings)

    @model_validator(mode="before")
    @classmethod
    def apply_profile(cls, data: Any) -> Any:
        """Fill whatever the caller and the environment left unset from the profile."""
        if not isinstance(data, dict):
            return data
        values = dict(data)
        requested = values.pop("app_env", None) or values.pop("env_name", None) or ""
        name = str(requested).strip().lower()
        if name not in ENVIRONMENTS:
            name = "staging"
        for key, value in ENVIRONMENTS[name].items():
            values.setdefault(key, value)
        values["env_name"] = name
        return values


def load_settings() -> Settings:
    """Build settings from the process environment (and ``.env``, if present)."""
    try:
        return Settings()
    except (ValidationError, SettingsError) as e:
        raise ConfigError(f"Invalid settings: {e}") from e
