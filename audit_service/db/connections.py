"""Pooled connection providers used by background writers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Protocol

from sqlalchemy.engine import Connection, Engine

from audit_service.db.session import get_engine


class ConnectionProvider(Protocol):
    """Hand out one pooled connection per unit of work."""

    def acquire(self):
        """Return a context manager yielding a connection.

        The transaction commits when the block exits cleanly and rolls back
        otherwise. The connection goes back to the pool either way.
        """
        ...


class EngineConnectionProvider:
    """``ConnectionProvider`` backed by the SQLAlchemy engine pool."""

    def __init__(self, engine_factory: Callable[[], Engine] = get_engine) -> None:
        self._engine_factory = engine_factory

    @property
    def engine(self) -> Engine:
        return self._engine_factory()

    @contextmanager
    def acquire(self) -> Iterator[Connection]:
        with self.engine.begin() as connection:
            yield connection


__all__ = ["ConnectionProvider", "EngineConnectionProvider"]
