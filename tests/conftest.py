"""Pytest configuration for all tests."""
import time

import pytest

from api import create_app
from models.db_storage import DBStorage
from models.refresh_token_store import RefreshTokenStore
from services.identity import IdentityProvider
from services.session_auth import AuthSettings, SessionAuthService
from utils.cookies import CookiePolicy

SECRET = "test-secret-key-at-least-256-bits-long-for-security"
OTHER_SECRET = "another-secret-key-that-is-also-long-enough-for-hs256"
COOKIE_NAME = "jwt_refresh_token"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = float(start if start is not None else time.time())

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def refresh_cookie_from(response):
    """Value of the refresh cookie in a response's Set-Cookie headers, or None."""
    for header in response.headers.getlist("Set-Cookie"):
        if header.startswith(COOKIE_NAME + "="):
            return header.split(";", 1)[0].split("=", 1)[1]
    return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    s = DBStorage("sqlite://")
    s.reload()
    yield s
    s.drop_all()
    s.dispose()


@pytest.fixture
def store(storage, clock):
    return RefreshTokenStore(storage, SECRET, clock=clock)


@pytest.fixture
def identity(storage):
    return IdentityProvider(storage)


@pytest.fixture
def alice(identity):
    return identity.create_user("alice", "alice@example.com", "correct-pw", roles=["editor"])


@pytest.fixture
def bob(identity):
    return identity.create_user("bob", "bob@example.com", "bobs-password")


@pytest.fixture
def settings():
    return AuthSettings(secret=SECRET)


@pytest.fixture
def service(settings, store, identity, clock):
    return SessionAuthService(settings, store, identity, CookiePolicy.for_environment("development"), clock=clock)


@pytest.fixture
def app(clock):
    app = create_app("testing", overrides={"JWT_SECRET": SECRET}, clock=clock)
    yield app
    app.extensions["storage"].dispose()


@pytest.fixture
def client(app):
    # cookies are passed explicitly so tests can replay old values
    return app.test_client(use_cookies=False)


@pytest.fixture
def app_alice(app):
    with app.app_context():
        user = app.extensions["session_auth"].identity.create_user(
            "alice", "alice@example.com", "correct-pw", roles=["editor"]
        )
    return user
