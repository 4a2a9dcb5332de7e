"""
Pytest configuration and shared fixtures for account mirror tests.
"""
import pytest

from core.config.settings import BackendProfile, ReconnectionSettings, Settings
from services.mirror.dispatcher import EventDispatcher
from services.mirror.store import EntityStore
from tests.mocks.fake_channel import FakeConnector
from tests.mocks.mock_backend import MockBackend


@pytest.fixture
def test_settings():
    """Test settings configuration."""
    return Settings(
        backends=[
            BackendProfile(
                username="Trader_01",
                label="Alice",
                api_url="http://alice.backend.test",
                ws_url="ws://alice.backend.test/ws",
            ),
            BackendProfile(
                username="bob",
                label="Bob",
                api_url="http://bob.backend.test",
                ws_url="ws://bob.backend.test/ws",
            ),
        ],
        reconnection=ReconnectionSettings(delay_seconds=0.01),
    )


@pytest.fixture
def alice(test_settings):
    return test_settings.backends[0]


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def dispatcher(store):
    return EventDispatcher(store)


@pytest.fixture
def backend():
    """Mock backend serving the request/response endpoints."""
    return MockBackend()


@pytest.fixture
def connector():
    """Fake push channel connector in place of websockets.connect."""
    return FakeConnector()
