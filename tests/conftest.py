"""Pytest fixtures for the audit service tests."""

import os
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import jwt
import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SQLALCHEMY_ECHO", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-at-least-32-bytes")

from audit_service.config import get_config  # noqa: E402
from audit_service.db.session import Base, get_engine, reset_engine  # noqa: E402
from audit_service.main import create_app  # noqa: E402


class RecordingConnection:
    """Connection stand-in that stores executed rows on its provider."""

    def __init__(self, provider: "RecordingProvider") -> None:
        self._provider = provider

    def execute(self, statement, params):
        error = self._provider.fail(params) if self._provider.fail else None
        if error is not None:
            raise error
        with self._provider.lock:
            self._provider.rows.append(params)


class RecordingProvider:
    """Connection provider double with optional latency, gating and faults."""

    def __init__(self, *, delay: float = 0.0, fail=None, gate=None) -> None:
        self.rows: list[dict] = []
        self.delay = delay
        self.fail = fail
        self.gate = gate
        self.entered = threading.Event()
        self.lock = threading.Lock()
        self.acquired = 0
        self.released = 0

    @contextmanager
    def acquire(self):
        with self.lock:
            self.acquired += 1
        self.entered.set()
        try:
            if self.gate is not None:
                self.gate.wait(5)
            if self.delay:
                time.sleep(self.delay)
            yield RecordingConnection(self)
        finally:
            with self.lock:
                self.released += 1

    @property
    def actions(self) -> list[str]:
        return [row["action"] for row in self.rows]


@pytest.fixture()
def provider_factory():
    return RecordingProvider


@pytest.fixture()
def provider():
    return RecordingProvider()


@pytest.fixture()
def admin_token():
    """Return a factory minting admin bearer tokens signed with the app secret."""

    def factory(admin_id: int, role: str, permissions=()) -> str:
        config = get_config()
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(admin_id),
            "role": role,
            "permissions": sorted(set(permissions)),
            "iat": now,
            "exp": now + timedelta(minutes=60),
        }
        return jwt.encode(
            payload, config.jwt_secret, algorithm=config.jwt_algorithm
        )

    return factory


@pytest.fixture(scope="session")
def app():
    reset_engine()
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    application = create_app()
    application.config.update({"TESTING": True})
    yield application
    application.extensions["audit_sink"].shutdown(timeout=5)
    Base.metadata.drop_all(bind=engine)
    reset_engine()


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def _db_cleanup():
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
