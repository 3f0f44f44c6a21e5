"""
Tests for environment-driven settings.
"""
import pytest
from pydantic import ValidationError

from destkit.config import AppSettings, get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch):
    for name in ("DESTKIT_LOG_LEVEL", "DESTKIT_DESTINATION_MODULES", "DESTKIT_DEBUG"):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()
    assert settings.log_level == "INFO"
    assert settings.debug is False
    assert settings.credential_test_timeout == 3.0
    assert settings.redaction_placeholder == "***"
    assert settings.destination_modules == []


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("DESTKIT_LOG_LEVEL", "debug")
    monkeypatch.setenv("DESTKIT_DEBUG", "True")
    monkeypatch.setenv("DESTKIT_CREDENTIAL_TEST_TIMEOUT", "1.5")
    monkeypatch.setenv("DESTKIT_DESTINATION_MODULES", "acme.destination, , other.destination")

    settings = get_settings()
    assert settings.log_level == "DEBUG"
    assert settings.debug is True
    assert settings.credential_test_timeout == 1.5
    assert settings.destination_modules == ["acme.destination", "other.destination"]


def test_settings_are_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("DESTKIT_SERVICE_NAME", "changed")
    assert get_settings() is first


def test_invalid_values():
    with pytest.raises(ValidationError):
        AppSettings(log_level="loud")
    with pytest.raises(ValidationError):
        AppSettings(request_timeout=0)
