from unittest.mock import MagicMock

import pytest

from sqlmetrics.common.errors import ErrorCode, ServerConnectionError
from sqlmetrics.connections import SQLAlchemyConnectionProvider


@pytest.fixture
def fake_create_engine(monkeypatch):
    factory = MagicMock(side_effect=lambda url, **kwargs: MagicMock(name=f"engine:{url}"))
    monkeypatch.setattr("sqlmetrics.connections.create_engine", factory)
    return factory


def test_engine_is_created_once_per_target(fake_create_engine):
    provider = SQLAlchemyConnectionProvider()

    first = provider.get_engine("sqlite:///a.db")
    second = provider.get_engine("sqlite:///a.db")
    other = provider.get_engine("sqlite:///b.db")

    assert first is second
    assert other is not first
    assert fake_create_engine.call_count == 2


def test_engine_kwargs_are_forwarded(fake_create_engine):
    provider = SQLAlchemyConnectionProvider(pool_size=2)

    provider.get_engine("Server=db1;APP=x;")

    url = fake_create_engine.call_args.args[0]
    kwargs = fake_create_engine.call_args.kwargs
    assert url.startswith("mssql+pyodbc:///?odbc_connect=")
    assert kwargs == {"pool_pre_ping": True, "pool_size": 2}


def test_connection_is_closed_after_use(fake_create_engine):
    provider = SQLAlchemyConnectionProvider()
    engine = provider.get_engine("sqlite:///a.db")
    conn = engine.connect.return_value

    with provider.connect("sqlite:///a.db") as active:
        assert active is conn
        conn.close.assert_not_called()

    conn.close.assert_called_once()


def test_connection_is_closed_when_body_raises(fake_create_engine):
    provider = SQLAlchemyConnectionProvider()
    conn = provider.get_engine("sqlite:///a.db").connect.return_value

    with pytest.raises(RuntimeError):
        with provider.connect("sqlite:///a.db"):
            raise RuntimeError("query failed")

    conn.close.assert_called_once()


def test_connect_failure_is_wrapped_and_redacted(fake_create_engine):
    target = "Server=db1;UID=mon;PWD=hunter2;"
    provider = SQLAlchemyConnectionProvider()
    provider.get_engine(target).connect.side_effect = OSError("login timeout")

    with pytest.raises(ServerConnectionError) as exc:
        with provider.connect(target):
            pass

    assert exc.value.error_code == ErrorCode.CONNECTION_ERROR
    assert "login timeout" in exc.value.message
    assert "hunter2" not in exc.value.message
    assert isinstance(exc.value.cause, OSError)


def test_dispose_releases_engines(fake_create_engine):
    provider = SQLAlchemyConnectionProvider()
    engine = provider.get_engine("sqlite:///a.db")

    provider.dispose()

    engine.dispose.assert_called_once()
    assert provider.get_engine("sqlite:///a.db") is not engine


def test_real_sqlite_connection(sqlite_servers):
    provider = SQLAlchemyConnectionProvider()

    with provider.connect(sqlite_servers[0]) as conn:
        result = conn.exec_driver_sql("SELECT host FROM info")
        assert list(result.keys()) == ["host"]
        assert result.fetchone()[0] == "db1"

    provider.dispose()
