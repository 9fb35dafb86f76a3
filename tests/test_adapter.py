"""
Tests for DbAdapter, with psycopg2.connect replaced by a recording stub.
"""

import psycopg2
import psycopg2.extras
import pytest

from pgintrospect.adapter import DbAdapter


class _Cursor:
    def __init__(self, connection):
        self.connection = connection

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, text, params):
        self.connection.executed.append((text, params))

    def fetchall(self):
        return self.connection.rows


class _Connection:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []
        self.session = None
        self.cursor_factories = []
        self.closed = 0
        self.dsn = "dbname=test"

    def set_session(self, **kwargs):
        self.session = kwargs

    def cursor(self, cursor_factory=None):
        self.cursor_factories.append(cursor_factory)
        return _Cursor(self)

    def close(self):
        self.closed = 1


@pytest.fixture
def connections(monkeypatch):
    """Every connect() call, as (args, kwargs, connection)"""
    made = []

    def connect(*args, **kwargs):
        connection = _Connection([{"nspname": "public"}])
        made.append((args, kwargs, connection))
        return connection

    monkeypatch.setattr(psycopg2, "connect", connect)
    return made


class TestDbAdapter:
    """Connection handling and query results"""

    def test_dsn_string(self, connections):
        DbAdapter("postgresql://localhost/app").connect()

        args, kwargs, _ = connections[0]
        assert args == ("postgresql://localhost/app",)
        assert kwargs == {}

    def test_dict_config(self, connections):
        DbAdapter({"host": "db", "dbname": "app", "port": 5433}).connect()

        _, kwargs, _ = connections[0]
        assert kwargs == {"host": "db", "dbname": "app", "port": 5433}

    def test_no_config_uses_environment(self, connections):
        DbAdapter().connect()
        assert connections[0][:2] == ((), {})

    def test_session_is_read_only(self, connections):
        DbAdapter("dbname=app").connect()
        assert connections[0][2].session == {"readonly": True, "autocommit": True}

    def test_query_connects_lazily_and_returns_dicts(self, connections):
        db = DbAdapter("dbname=app")

        rows = db.query("SELECT nspname FROM pg_namespace", {"a": 1})

        assert rows == [{"nspname": "public"}]
        connection = connections[0][2]
        assert connection.executed == [("SELECT nspname FROM pg_namespace", {"a": 1})]
        assert connection.cursor_factories == [psycopg2.extras.RealDictCursor]

    def test_single_connection_reused(self, connections):
        db = DbAdapter("dbname=app")
        db.query("SELECT 1")
        db.query("SELECT 2")
        assert len(connections) == 1

    def test_context_manager(self, connections):
        with DbAdapter("dbname=app") as db:
            assert db.connected

        assert connections[0][2].closed
        assert not db.connected
