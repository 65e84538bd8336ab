import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from sqlmetrics.common.errors import ServerConnectionError
from sqlmetrics.mapping import RowMapper
from sqlmetrics.sinks import MemorySink

FIXED_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeResult:
    """Minimal stand-in for a SQLAlchemy CursorResult."""

    def __init__(self, columns, rows, fail_at=None, returns_rows=True, keys_error=None):
        self._columns = list(columns)
        self._rows = list(rows)
        self._fail_at = fail_at
        self._keys_error = keys_error
        self._position = 0
        self.returns_rows = returns_rows
        self.closed = False

    def keys(self):
        if self._keys_error:
            raise self._keys_error
        return list(self._columns)

    def fetchone(self):
        if self._fail_at is not None and self._position == self._fail_at:
            raise RuntimeError("cursor broke")
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, server, handler):
        self.server = server
        self.handler = handler
        self.closed = False
        self.results = []

    def exec_driver_sql(self, script):
        result = self.handler(self.server, script)
        self.results.append(result)
        return result


class FakeProvider:
    """Connection provider whose query behaviour is driven by a handler.

    The handler receives (server, script) and returns a FakeResult or raises.
    """

    def __init__(self, handler, unreachable=()):
        self.handler = handler
        self.unreachable = set(unreachable)
        self.connections = []
        self._lock = threading.Lock()

    @contextmanager
    def connect(self, target):
        if target in self.unreachable:
            raise ServerConnectionError(f"Failed to connect to {target}: unreachable")
        conn = FakeConnection(target, self.handler)
        with self._lock:
            self.connections.append(conn)
        try:
            yield conn
        finally:
            conn.closed = True


@pytest.fixture
def fixed_mapper():
    """RowMapper whose timestamps are always FIXED_TIME."""
    return RowMapper(clock=lambda: FIXED_TIME)


@pytest.fixture
def memory_sink():
    return MemorySink()


def _create_db(path, host):
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE cpu (core TEXT, usage REAL, idle REAL)")
        conn.executemany(
            "INSERT INTO cpu (core, usage, idle) VALUES (?, ?, ?)",
            [("core0", 12.5, 87.5), ("core1", 40.0, 60.0)],
        )
        conn.execute("CREATE TABLE info (host TEXT)")
        conn.execute("INSERT INTO info (host) VALUES (?)", (host,))
        conn.commit()
    finally:
        conn.close()


@pytest.fixture()
def sqlite_servers(tmp_path):
    """Two SQLite databases exposed as SQLAlchemy URL targets."""
    targets = []
    for host in ("db1", "db2"):
        path = tmp_path / f"{host}.db"
        _create_db(path, host)
        targets.append(f"sqlite:///{path}")
    return targets
