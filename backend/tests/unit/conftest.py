"""
Shared fixtures for the unit suite.

Databases are throwaway SQLite files under tmp_path; live connections are
replaced by FakeConnection, which records what the server pushes.
"""

import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from chatline.config import Settings
from chatline.core.entities import Message
from chatline.core.media import MediaIntake
from chatline.core.notifier import FanoutNotifier
from chatline.core.rate_limit import limiter
from chatline.core.registry import ConnectionRegistry
from chatline.infra.database import build_engine, db_session
from chatline.infra.message_store import SqlMessageStore
from chatline.main import create_app
from chatline.models import message as _message_model  # noqa: F401
from chatline.models.base import Base
from chatline.models.user import User


class FakeConnection:
    """Stands in for a WebSocket: records payloads, can be slow or broken."""

    def __init__(self, name: str = "conn", delays=None, fail: bool = False, gate: asyncio.Event = None):
        self.name = name
        self.sent = []
        self.delays = list(delays or [])
        self.fail = fail
        self.gate = gate
        self.closed_with = None

    async def send_json(self, payload):
        if self.gate is not None:
            await self.gate.wait()
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(payload)

    async def close(self, code: int = 1000):
        self.closed_with = code

    def __repr__(self):
        return f"FakeConnection({self.name})"


def make_message(message_id: int = 1, sender: str = "u1", receiver: str = "u2", body: str = "hi") -> Message:
    return Message(
        id=message_id,
        sender_id=sender,
        receiver_id=receiver,
        body=body,
        media_ref=None,
        created_at=datetime(2024, 1, 1, 12, 0, message_id % 60),
    )


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def connection_factory():
    return FakeConnection


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlMessageStore:
    return SqlMessageStore(session_factory)


@pytest.fixture
def media(tmp_path) -> MediaIntake:
    return MediaIntake(str(tmp_path / "uploads"))


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def notifier(registry) -> FanoutNotifier:
    return FanoutNotifier(registry, push_timeout=1.0)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        media_root=str(tmp_path / "uploads"),
        allowed_origins="*",
    )


@pytest.fixture
def app(settings):
    # Limits are kept in process memory and would carry over between tests
    limiter.reset()
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seed_users(client):
    """Insert users straight into the app database (needs the app started)."""

    def _seed(*user_ids):
        with db_session() as db:
            for user_id in user_ids:
                db.add(User(id=user_id, public_key=f"KEY-{user_id}"))

    return _seed
