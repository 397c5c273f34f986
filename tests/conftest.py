import pytest

from session import AuthContext, MemoryStorage, SessionState
from tests.helpers import FakeBackend, make_token

USER_TOKEN = make_token(id=5, sub="writer@example.com")
ADMIN_TOKEN = make_token(id=1, sub="admin@example.com")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    return backend.client()


@pytest.fixture
def user_auth(client):
    auth = AuthContext(MemoryStorage({"token": USER_TOKEN}), client)
    auth.user_state = SessionState.AUTHENTICATED
    return auth


@pytest.fixture
def admin_auth(client):
    auth = AuthContext(MemoryStorage({"adminToken": ADMIN_TOKEN}), client)
    auth.admin_state = SessionState.AUTHENTICATED
    return auth


@pytest.fixture
def anonymous_auth(client):
    return AuthContext(MemoryStorage(), client)
