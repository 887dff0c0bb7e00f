import sqlite3

import pytest

from toolgate.connector import ResilientConnector
from toolgate.errors import ConnectionExhausted, PersistenceError


class FlakyConnect:
    """Fails the first `failures` attempts, then returns a sentinel handle."""

    def __init__(self, failures):
        self.failures = failures
        self.attempts = 0
        self.handle = object()

    def __call__(self, uri):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise OSError(f"unreachable (attempt {self.attempts})")
        return self.handle


def test_succeeds_on_last_attempt_with_linear_backoff():
    connect = FlakyConnect(failures=4)
    sleeps = []
    connector = ResilientConnector("db", connect_fn=connect, sleep=sleeps.append)

    handle = connector.connect(max_attempts=5)

    assert handle is connect.handle
    assert connect.attempts == 5
    assert sleeps == [1.0, 2.0, 3.0, 4.0]


def test_exhausted_carries_last_error():
    connect = FlakyConnect(failures=5)
    sleeps = []
    connector = ResilientConnector("db", connect_fn=connect, sleep=sleeps.append)

    with pytest.raises(ConnectionExhausted) as exc_info:
        connector.connect(max_attempts=5)

    assert connect.attempts == 5
    assert sleeps == [1.0, 2.0, 3.0, 4.0]
    assert "attempt 5" in str(exc_info.value.last_error)
    assert exc_info.value.code == "connection_exhausted"
    assert not connector.is_connected


def test_handle_is_memoized():
    connect = FlakyConnect(failures=0)
    connector = ResilientConnector("db", connect_fn=connect)

    first = connector.connect()
    second = connector.connect()

    assert first is second
    assert connect.attempts == 1


def test_failed_connect_is_retried_on_next_call():
    connect = FlakyConnect(failures=2)
    connector = ResilientConnector("db", max_attempts=2, connect_fn=connect, sleep=lambda s: None)

    with pytest.raises(ConnectionExhausted):
        connector.connect()
    assert connector.connect() is connect.handle


def test_transaction_commits(connector):
    with connector.transaction() as conn:
        conn.execute("CREATE TABLE t (k TEXT PRIMARY KEY)")
        conn.execute("INSERT INTO t VALUES ('a')")

    with connector.transaction() as conn:
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1


def test_sqlite_errors_become_persistence_errors(connector):
    with pytest.raises(PersistenceError) as exc_info:
        with connector.transaction() as conn:
            conn.execute("INSERT INTO missing_table VALUES (1)")

    assert isinstance(exc_info.value.__cause__, sqlite3.Error)


def test_close_forgets_handle(connector):
    connector.connect()
    assert connector.is_connected
    connector.close()
    assert not connector.is_connected
