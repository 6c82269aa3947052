import pytest
from fastapi.testclient import TestClient

from captcha_relay.config import RelayConfig
from captcha_relay.main import create_app

SECRET = "unit-test-secret"
LIFETIME = 60


@pytest.fixture
def config():
    return RelayConfig(secret=SECRET, ticket_lifetime=LIFETIME)


@pytest.fixture
def client(config):
    return TestClient(create_app(config))


@pytest.fixture
def make_client():
    """Build a client for a custom configuration."""
    def _make(**overrides):
        overrides.setdefault("secret", SECRET)
        overrides.setdefault("ticket_lifetime", LIFETIME)
        return TestClient(create_app(RelayConfig(**overrides)))
    return _make
