import pytest
from pydantic import ValidationError

from core.config.settings import (
    BackendProfile,
    ReconnectionSettings,
    Settings,
    StreamHealthSettings,
)


def test_defaults():
    settings = Settings()

    assert settings.reconnection.delay_seconds == 3.0
    assert settings.mirror.notification_capacity == 50
    assert settings.mirror.log_capacity == 500
    assert settings.stream_health.healthy_below_seconds == 120
    assert settings.stream_health.stale_below_seconds == 600
    assert settings.endpoints.positions_refresh == "/api/positions/refresh"


def test_nested_values_from_environment(monkeypatch):
    monkeypatch.setenv("RECONNECTION__DELAY_SECONDS", "0.5")
    monkeypatch.setenv("MIRROR__LOG_CAPACITY", "10")

    settings = Settings()

    assert settings.reconnection.delay_seconds == 0.5
    assert settings.mirror.log_capacity == 10


def test_backends_from_environment(monkeypatch):
    monkeypatch.setenv(
        "BACKENDS",
        '[{"username": "Trader_01", "label": "Alice", "api_url": "http://a:3001/", "ws_url": "ws://a:3002"}]',
    )

    settings = Settings()

    assert [b.label for b in settings.backends] == ["Alice"]
    assert settings.backends[0].api_url == "http://a:3001"


def test_reconnection_delay_must_be_positive():
    with pytest.raises(ValidationError):
        ReconnectionSettings(delay_seconds=0)


def test_duplicate_usernames_rejected():
    with pytest.raises(ValidationError):
        Settings(backends=[
            BackendProfile(username="bob", label="One"),
            BackendProfile(username="BOB", label="Two"),
        ])


def test_stale_threshold_above_healthy():
    with pytest.raises(ValidationError):
        StreamHealthSettings(healthy_below_seconds=60, stale_below_seconds=60)


def test_profile_urls_are_normalised():
    profile = BackendProfile(username="x", label="X", api_url="http://host:3001/", ws_url="ws://host:3002//")

    assert profile.api_url == "http://host:3001"
    assert profile.ws_url == "ws://host:3002"
