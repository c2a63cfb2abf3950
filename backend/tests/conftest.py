import os
import sys
import pytest

# Ensure the backend root (containing the `zombeers` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from zombeers import create_app, socketio
from zombeers.models import RoomState
from zombeers.services.local_session import LocalSession
from zombeers.services.rooms import RoomRegistry
from zombeers.services.storage import MemoryStorage


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:3000']
    SOCKETIO_NAMESPACE = '/'
    MAX_PLAYERS = 10
    HISTORY_LIMIT = 100
    ROOM_CODE_LENGTH = 4
    LOG_LEVEL = 'DEBUG'
    LOCAL_STORAGE_URL = 'sqlite://'


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture()
def flask_app(tmp_path):
    config = type('Config', (TestConfig,), {
        'LOCAL_STORAGE_URL': f"sqlite:///{tmp_path / 'local.db'}",
    })
    application = create_app(config)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['zombeers']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    if test_client.is_connected():
        test_client.disconnect()


@pytest.fixture()
def make_sio_client(flask_app):
    """Factory for extra Socket.IO clients, disconnected at teardown."""
    created = []

    def _make():
        test_client = socketio.test_client(flask_app)
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        if test_client.is_connected():
            test_client.disconnect()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def isolated_registry(clock):
    return RoomRegistry(clock=clock)


@pytest.fixture()
def active_state():
    """Active game with Alice and Bob and default settings."""
    state = RoomState.from_dict({
        'players': [
            {'id': 'a', 'name': 'Alice'},
            {'id': 'b', 'name': 'Bob'},
        ],
    })
    state.set_active(True, 1_700_000_000_000)
    return state


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def local_session(storage, clock):
    errors = []
    session = LocalSession(storage, on_error=errors.append, clock=clock)
    session.errors = errors
    return session
