from typing import Any, Dict, List

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from apps.quickstart.config import AppConfig
from apps.quickstart.focals import (
    FernetEncryptionService,
    FocalsClient,
    KeyService,
    PacketPublisher,
    SignatureService,
    UrlService,
)
from apps.quickstart.main import create_app
from apps.quickstart.users import UserStateStore

SHARED_SECRET = "test-shared-secret"
API_SECRET = "test-api-secret"
INTEGRATION_ID = "integration-123"
ABILITY_KEY = Fernet.generate_key().decode()
ABILITY_KEY_ID = "ability-key"


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKeys(KeyService):
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.device_keys: Dict[str, List[Dict[str, Any]]] = {}

    def add_user(self, user_id: str) -> Dict[str, Any]:
        record = {"keyId": f"{user_id}-device", "key": Fernet.generate_key().decode()}
        self.device_keys[user_id] = [record]
        return record

    async def get_public_keys(self, user_id: str, integration_id: str) -> List[Dict[str, Any]]:
        self.calls.append((user_id, integration_id))
        return self.device_keys[user_id]


class FakePublisher(PacketPublisher):
    def __init__(self) -> None:
        self.published: List[tuple] = []

    async def publish_to_user(self, user_id: str, packet: Dict[str, Any]) -> Dict[str, Any]:
        self.published.append((user_id, packet))
        return {"status": "ok"}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return UserStateStore(clock=clock)


@pytest.fixture
def config():
    return AppConfig(
        overrides={
            "shared_secret": SHARED_SECRET,
            "api_key": "test-api-key",
            "api_secret": API_SECRET,
            "integration_id": INTEGRATION_ID,
            "encryption_key": ABILITY_KEY,
            "encryption_key_id": ABILITY_KEY_ID,
        },
        environ={},
    )


@pytest.fixture
def fake_keys():
    return FakeKeys()


@pytest.fixture
def fake_publisher():
    return FakePublisher()


@pytest.fixture
def focals(fake_keys, fake_publisher):
    return FocalsClient(
        integration_id=INTEGRATION_ID,
        keys=fake_keys,
        encryption=FernetEncryptionService(ABILITY_KEY, ABILITY_KEY_ID),
        publisher=fake_publisher,
        signatures=SignatureService(API_SECRET),
        urls=UrlService(INTEGRATION_ID),
    )


@pytest.fixture
def client(config, store, focals):
    """TestClient over an app wired to the fake collaborators."""
    with TestClient(create_app(config, store=store, focals=focals)) as c:
        yield c
