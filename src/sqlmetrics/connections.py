from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, Protocol
from urllib.parse import quote_plus

from sqlalchemy import create_engine, Connection, Engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from sqlmetrics.common.errors import ServerConnectionError
from sqlmetrics.common.logger import get_logger
from sqlmetrics.common.security import redact_target

logger = get_logger("connections")

DEFAULT_SERVER = (
    "Driver={ODBC Driver 18 for SQL Server};Server=localhost;"
    "Trusted_Connection=yes;TrustServerCertificate=yes;APP=sqlmetrics;"
)


class ConnectionProvider(Protocol):
    """Opens a query-capable connection for a connection-string-shaped target."""

    def connect(self, target: str) -> ContextManager[Connection]:
        ...


def to_sqlalchemy_url(target: str) -> str:
    """Normalizes a server target into a SQLAlchemy URL.

    SQLAlchemy URLs pass through unchanged. Any other string is taken to be an
    ODBC connection string for SQL Server.
    """
    try:
        make_url(target)
        return target
    except ArgumentError:
        return f"mssql+pyodbc:///?odbc_connect={quote_plus(target)}"


class SQLAlchemyConnectionProvider:
    """
    Connection provider backed by one SQLAlchemy Engine per target.

    Engines are created lazily and cached; each `connect()` checks a connection
    out of the target's pool and always returns it on exit.
    """

    def __init__(self, **engine_kwargs):
        self._engine_kwargs = {"pool_pre_ping": True, **engine_kwargs}
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    def get_engine(self, target: str) -> Engine:
        with self._lock:
            engine = self._engines.get(target)
            if engine is None:
                url = to_sqlalchemy_url(target)
                logger.info(f"Creating engine for {redact_target(target)}")
                engine = create_engine(url, **self._engine_kwargs)
                self._engines[target] = engine
            return engine

    @contextmanager
    def connect(self, target: str) -> Iterator[Connection]:
        try:
            conn = self.get_engine(target).connect()
        except Exception as exc:
            raise ServerConnectionError(
                f"Failed to connect to {redact_target(target)}: {exc}", cause=exc
            ) from exc
        try:
            yield conn
        finally:
            conn.close()

    def dispose(self) -> None:
        """Releases every pooled connection held by cached engines."""
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
