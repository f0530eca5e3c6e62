"""Settings loading from the process environment.

Invariants:
    - APP_ENV picks the profile; unknown names fall back to staging
    - Environment variables override profile values, init kwargs override both
    - Invalid values surface as ConfigError
"""
from pathlib import Path

import pytest

from pingwatch.config import ConfigError, Settings, load_settings

_VARS = (
    "APP_ENV", "ENV_NAME", "HOST", "HTTP_PORT", "DATA_DIR", "HASHING_SECRET", "MAX_CHECKS",
    "SSL_KEYFILE", "SSL_CERTFILE", "LOG_LEVEL", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN",
    "TWILIO_FROM_PHONE", "TWILIO_COUNTRY_CODE", "TWILIO_BASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in _VARS:
        monkeypatch.delenv(var, raising=False)
    # keep a stray .env in the working directory out of these tests
    monkeypatch.chdir(tmp_path)


def test_defaults_to_staging_profile():
    settings = load_settings()
    assert settings.env_name == "staging"
    assert settings.http_port == 3000
    assert settings.max_checks == 5
    assert settings.hashing_secret == "staging-hashing-secret"


def test_unknown_environment_falls_back_to_staging(monkeypatch):
    monkeypatch.setenv("APP_ENV", "qa")
    assert load_settings().env_name == "staging"


def test_production_profile(monkeypatch):
    monkeypatch.setenv("APP_ENV", "Production")
    settings = load_settings()
    assert settings.env_name == "production"
    assert settings.http_port == 443


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("HTTP_PORT", "8443")
    monkeypatch.setenv("MAX_CHECKS", "2")
    monkeypatch.setenv("DATA_DIR", "/tmp/pingwatch")
    monkeypatch.setenv("HASHING_SECRET", "s3cret")
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC1")

    settings = load_settings()
    assert settings.env_name == "production"
    assert settings.http_port == 8443
    assert settings.max_checks == 2
    assert settings.data_dir == Path("/tmp/pingwatch")
    assert settings.hashing_secret == "s3cret"
    assert settings.twilio.account_sid == "AC1"
    assert settings.twilio.country_code == "+1"


def test_empty_variables_are_ignored(monkeypatch):
    monkeypatch.setenv("MAX_CHECKS", "")
    assert load_settings().max_checks == 5


def test_dotenv_file_is_read(tmp_path):
    (tmp_path / ".env").write_text("MAX_CHECKS=3\nTWILIO_FROM_PHONE=5550001111\n", encoding="utf-8")
    settings = load_settings()
    assert settings.max_checks == 3
    assert settings.twilio.from_phone == "5550001111"


def test_init_kwargs_win_over_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MAX_CHECKS", "9")
    settings = Settings(hashing_secret="test-secret", data_dir=tmp_path, max_checks=1)
    assert settings.max_checks == 1
    assert settings.hashing_secret == "test-secret"
    assert settings.env_name == "staging"


@pytest.mark.parametrize(
    "var, value",
    [("MAX_CHECKS", "many"), ("MAX_CHECKS", "-1"), ("HTTP_PORT", "0")],
)
def test_bad_values_raise(monkeypatch, var, value):
    monkeypatch.setenv(var, value)
    with pytest.raises(ConfigError):
        load_settings()
