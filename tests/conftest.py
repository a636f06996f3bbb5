import os

os.environ.setdefault("DB_URI", "sqlite://")
os.environ.setdefault("ASYNC_MODE", "threading")
os.environ.setdefault("PRESENCE_SWEEP", "0")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

import app as server
from client.transport import unwrap_ack
from services.room_store import RoomStore, generate_room_code


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class SequenceCodes:
    """Codes de room prévisibles ; répète le dernier quand la liste est épuisée."""

    def __init__(self, *codes):
        self.codes = list(codes)

    def __call__(self):
        return self.codes.pop(0) if len(self.codes) > 1 else self.codes[0]


def keep_order(players):
    pass


def make_store(clock, code_factory=None, db_path=None) -> RoomStore:
    """Base en mémoire ; `db_path` donne une vraie base fichier pour les tests multi-threads."""
    if db_path is None:
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False, "timeout": 30})
    store = RoomStore(engine, clock=clock, code_factory=code_factory or generate_room_code, shuffle=keep_order)
    store.init_db()
    return store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return make_store(clock)


@pytest.fixture
def live_store(monkeypatch, clock):
    """Store neuf branché sur le serveur Flask-SocketIO."""
    s = make_store(clock)
    monkeypatch.setattr(server, "store", s)
    return s


@pytest.fixture
def sio_client(live_store):
    clients = []

    def _make():
        c = server.socketio.test_client(server.app)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        if c.is_connected():
            c.disconnect()


class FlaskSocketTransport:
    """Adaptateur du client de test Flask-SocketIO vers l'interface de transport."""

    def __init__(self, test_client):
        self.client = test_client
        self.handlers = {}

    def on(self, event, handler):
        self.handlers[event] = handler

    def call(self, event, payload):
        ack = self.client.emit(event, payload, callback=True)
        self.pump()
        return unwrap_ack(ack)

    def pump(self):
        for msg in self.client.get_received():
            handler = self.handlers.get(msg["name"])
            if handler:
                handler(*msg["args"])

    def start_background_task(self, target, *args):
        target(*args)

    def sleep(self, seconds):
        pass


@pytest.fixture
def transport_factory(sio_client):
    return lambda: FlaskSocketTransport(sio_client())
