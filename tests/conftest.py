import pytest
from fastapi.testclient import TestClient

from app import create_app
from config import DispatchMode, RelayConfig, Settings
from stubs import StubSender


@pytest.fixture
def settings():
    return Settings(
        relay=RelayConfig(
            host="smtp.test.local",
            port=587,
            username="news@example.com",
            password="app-password",
            from_name="Test Co",
        ),
        log_file=None,
    )


@pytest.fixture
def stub_sender():
    return StubSender()


@pytest.fixture
def client(settings, stub_sender):
    return TestClient(create_app(settings, sender=stub_sender))


@pytest.fixture
def make_client(settings):
    def _make(sender, mode=DispatchMode.SEQUENTIAL, concurrency=1):
        custom = settings.model_copy(update={"dispatch_mode": mode, "dispatch_concurrency": concurrency})
        return TestClient(create_app(custom, sender=sender))
    return _make


@pytest.fixture
def newsletter_payload():
    return {
        "emails": ["a@example.com", "b@example.com", "c@example.com"],
        "subject": "October News",
        "message": "Hello readers,\nHere is what happened.",
    }
