import asyncio
import inspect
import time

import pytest
from fastapi.testclient import TestClient

from admin_session.config import Settings
from admin_session.main import create_app
from admin_session.auth.authenticator import RequestAuthenticator
from admin_session.auth.credentials import CredentialVerifier, InMemoryUserDirectory, PasswordEncoder
from admin_session.auth.service import AuthService
from admin_session.auth.session import InMemorySessionStore, SessionManager
from admin_session.auth.tokens import TokenCodec

TEST_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"

ALICE_ID = "u-alice"
ALICE_PASSWORD = "Alice-Password-123!"
ADMIN_ID = "u-admin"
ADMIN_PASSWORD = "Admin-Password-456!"


class FakeClock:
    """Settable clock in seconds, shared by the codec and the session store.

    Kept in whole milliseconds so repeated advances never drift. The default
    start sits 200 ms past a second boundary.
    """

    def __init__(self, now: float | None = None):
        if now is None:
            now = int(time.time()) + 0.2
        self._millis = round(now * 1000)

    def __call__(self) -> float:
        return self._millis / 1000

    def advance(self, seconds: float) -> None:
        self._millis += round(seconds * 1000)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisSessionStore."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def psetex(self, key, ttl_millis, value):
        self.data[key] = value
        self.ttls[key] = ttl_millis

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self):
        self.closed = True


@pytest.fixture
def settings():
    """Create test settings."""
    return Settings(
        _env_file=None,
        token_secret_key=TEST_SECRET,
        access_expire_millis=60_000,
        refresh_expire_millis=600_000,
        skip_paths=["/login", "/health", "/public/ping"],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def encoder():
    return PasswordEncoder()


@pytest.fixture
def directory(encoder):
    directory = InMemoryUserDirectory(encoder)
    directory.add_user(
        "alice",
        ALICE_PASSWORD,
        ["common", "ROLE_USER"],
        user_id=ALICE_ID,
        display_name="Alice",
        email="alice@example.com",
    )
    directory.add_user(
        "admin",
        ADMIN_PASSWORD,
        ["admin", "ROLE_ADMIN"],
        user_id=ADMIN_ID,
    )
    return directory


@pytest.fixture
def store(clock):
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def codec(settings, clock):
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def session_manager(settings, store):
    return SessionManager(settings, store)


@pytest.fixture
def auth_service(settings, directory, encoder, codec, session_manager):
    return AuthService(settings, CredentialVerifier(directory, encoder), codec, session_manager)


@pytest.fixture
def authenticator(settings, codec, session_manager):
    return RequestAuthenticator(settings, codec, session_manager)


@pytest.fixture
def app(settings, directory, store, codec):
    return create_app(settings, directory=directory, session_store=store, codec=codec)


@pytest.fixture
def client(app):
    """Create a test client for the API."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
