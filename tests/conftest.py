"""Shared fixtures for pairing tests."""

import time

import fakeredis
import jwt
import pytest

from pairing.codes import CodeGenerator
from pairing.coordinator import PairingCoordinator
from pairing.redis_client import RedisRoomStore
from pairing.schemas import Identity
from pairing.store import MemoryRoomStore

TEST_SECRET = "test-secret-for-pairing-tokens-0123456789"
START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedGenerator(CodeGenerator):
    """Code generator that replays a fixed sequence of codes."""

    def __init__(self, codes):
        super().__init__()
        self.codes = list(codes)

    def generate(self) -> str:
        return self.codes.pop(0)


def make_token(sub: str, name: str = None, email: str = None, expires_in: int = 3600, secret: str = TEST_SECRET) -> str:
    now = int(time.time())
    payload = {"sub": sub, "iat": now, "exp": now + expires_in}
    if name:
        payload["name"] = name
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(sub: str, name: str = None, email: str = None) -> dict:
    return {"Authorization": f"Bearer {make_token(sub, name=name, email=email)}"}


@pytest.fixture
def alice() -> Identity:
    return Identity(user_id="user-alice", name="Alice", email="alice@example.com")


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="user-bob", name="Bob", email="bob@example.com")


@pytest.fixture
def carol() -> Identity:
    return Identity(user_id="user-carol", name="Carol", email="carol@example.com")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


def make_redis_store(server, generator=None, max_attempts=None) -> RedisRoomStore:
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    return RedisRoomStore(client=client, generator=generator, max_attempts=max_attempts)


@pytest.fixture(params=["memory", "redis"])
def store_factory(request, redis_server):
    """Build a room store of each backend with optional generator overrides."""

    def factory(generator=None, max_attempts=None):
        if request.param == "memory":
            return MemoryRoomStore(generator=generator, max_attempts=max_attempts)
        return make_redis_store(redis_server, generator=generator, max_attempts=max_attempts)

    return factory


@pytest.fixture
def store(store_factory):
    return store_factory()


@pytest.fixture
def coordinator(store, clock) -> PairingCoordinator:
    return PairingCoordinator(store, ttl_seconds=600, retry_backoff_seconds=0, clock=clock)
