from __future__ import annotations

import pytest

from address_capture.app.settings import get_settings
from address_capture.infra.providers.postcode_api import POSTCODE_API_HOSTNAME

_VARS = (
    "ADDRESS_KEY",
    "POSTCODE_ALLOWED_COUNTRIES",
    "POSTCODE_API_HOSTNAME",
    "POSTCODE_API_LOOKUP_PATH",
    "POSTCODE_API_VALIDATE_PATH",
    "POSTCODE_AUTH",
    "HTTP_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = get_settings()

    assert settings.address_key == "address"
    assert settings.allowed_countries == ()
    assert settings.postcode_api_hostname == POSTCODE_API_HOSTNAME
    assert settings.postcode_api_lookup_path == "/addresses"
    assert settings.postcode_auth == ""
    assert settings.http_timeout_seconds == 10.0
    assert settings.log_level == "INFO"


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("ADDRESS_KEY", "address-one")
    monkeypatch.setenv("POSTCODE_ALLOWED_COUNTRIES", "England, Wales,,")
    monkeypatch.setenv("POSTCODE_AUTH", '"Token abc"')
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.address_key == "address-one"
    assert settings.allowed_countries == ("England", "Wales")
    assert settings.postcode_auth == "Token abc"
    assert settings.http_timeout_seconds == 2.5
    assert settings.log_level == "DEBUG"


def test_blank_address_key_is_rejected(monkeypatch):
    monkeypatch.setenv("ADDRESS_KEY", "  ")

    with pytest.raises(RuntimeError):
        get_settings()
