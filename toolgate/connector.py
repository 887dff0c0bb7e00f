"""
Database connection with bounded retry.

The gateway keeps a single sqlite3 connection per process. It is opened
lazily on first use, retried linearly while the database is unavailable,
and then reused by every later call. There is no health check: once the
handle is cached, a broken connection shows up as failures on the
operations that use it until the process restarts.

Usage:
    connector = ResilientConnector("/data/toolgate.db")
    with connector.transaction() as conn:
        conn.execute("SELECT 1")
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager

from toolgate.errors import ConnectionExhausted, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
RETRY_DELAY_SECONDS = 1.0  # multiplied by the 1-indexed attempt number


def open_sqlite(uri: str) -> sqlite3.Connection:
    """Open a connection shared by the request worker threads."""
    conn = sqlite3.connect(
        uri,
        timeout=10,
        uri=uri.startswith("file:"),
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


class ResilientConnector:
    """Owns the process-wide database handle."""

    def __init__(self, uri: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 connect_fn=open_sqlite, sleep=time.sleep):
        self.uri = uri
        self.max_attempts = max_attempts
        self._connect_fn = connect_fn
        self._sleep = sleep
        self._conn = None
        self._init_lock = threading.Lock()
        self._op_lock = threading.RLock()

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self, uri: str = None, max_attempts: int = None):
        """
        Return the cached handle, connecting first if needed.

        Args:
            uri: Database location (defaults to the one given at construction)
            max_attempts: Attempts before giving up (defaults to 5)

        Returns:
            The open connection

        Raises:
            ConnectionExhausted: After max_attempts consecutive failures,
                carrying the last underlying error
        """
        if self._conn is not None:
            return self._conn

        with self._init_lock:
            if self._conn is None:
                self._conn = self._connect_with_retry(
                    uri or self.uri,
                    max_attempts or self.max_attempts,
                )
        return self._conn

    def _connect_with_retry(self, uri: str, attempts: int):
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                conn = self._connect_fn(uri)
                if attempt > 1:
                    logger.info("Database connected on attempt %d/%d", attempt, attempts)
                return conn
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    delay = RETRY_DELAY_SECONDS * attempt
                    logger.warning(
                        "Database connection attempt %d/%d failed: %s; retrying in %.0fs",
                        attempt, attempts, e, delay,
                    )
                    self._sleep(delay)

        logger.error("Database unreachable after %d attempts: %s", attempts, last_error)
        raise ConnectionExhausted(
            f"Could not connect to database after {attempts} attempts: {last_error}",
            last_error=last_error,
        ) from last_error

    @contextmanager
    def transaction(self):
        """
        Run one unit of work on the shared connection.

        Commits on success and rolls back on error. sqlite errors surface as
        PersistenceError; connection failures stay ConnectionExhausted.
        """
        conn = self.connect()
        with self._op_lock:
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceError(f"Database operation failed: {e}") from e
            except Exception:
                conn.rollback()
                raise

    def close(self):
        """Drop the cached handle. Only tests and the CLI call this."""
        with self._init_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
