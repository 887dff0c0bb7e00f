"""
Token persistence backends.

Three interchangeable stores hold the latest upload token:

    MemoryBackend    - one slot in this process, gone on exit
    DiskBackend      - one JSON file, replaced atomically on every write
    DatabaseBackend  - one row named 'tokenStore' in the token_store table

Each exposes get() -> TokenRecord | None and put(TokenRecord). Records are
replaced wholesale; nothing is ever deleted.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from toolgate.connector import ResilientConnector
from toolgate.errors import PersistenceError
from toolgate.schemas import BackendKind, TokenRecord

logger = logging.getLogger(__name__)

TOKEN_DOC_NAME = "tokenStore"


class MemoryBackend:
    """Volatile single-slot store."""

    kind = BackendKind.MEMORY

    def __init__(self):
        self._record: Optional[TokenRecord] = None

    def get(self) -> Optional[TokenRecord]:
        return self._record

    def put(self, record: TokenRecord):
        self._record = record


class DiskBackend:
    """Single JSON file holding the latest record."""

    kind = BackendKind.DISK

    def __init__(self, path: Path):
        self.path = Path(path)

    def get(self) -> Optional[TokenRecord]:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text()
        except OSError as e:
            raise PersistenceError(f"Could not read token file {self.path}: {e}") from e
        try:
            return TokenRecord(**json.loads(raw))
        except (ValueError, TypeError) as e:
            # Unreadable or half-written file: treat as empty so the caller refreshes
            logger.warning("Ignoring unreadable token file %s: %s", self.path, e)
            return None

    def put(self, record: TokenRecord):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".token-", suffix=".json")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(record.model_dump_json())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write token file {self.path}: {e}") from e


class DatabaseBackend:
    """Singleton row in the token_store table."""

    kind = BackendKind.DATABASE

    def __init__(self, connector: ResilientConnector, name: str = TOKEN_DOC_NAME):
        self.connector = connector
        self.name = name
        self._table_ready = False

    def _ensure_table(self, conn):
        if self._table_ready:
            return
        conn.execute("""
            CREATE TABLE IF NOT EXISTS token_store (
                name        TEXT    PRIMARY KEY,
                token       TEXT    NOT NULL,
                issued_at   INTEGER NOT NULL,
                expires_at  INTEGER NOT NULL,
                updated_at  INTEGER NOT NULL
            )
        """)
        self._table_ready = True

    def get(self) -> Optional[TokenRecord]:
        with self.connector.transaction() as conn:
            self._ensure_table(conn)
            row = conn.execute(
                "SELECT token, issued_at, expires_at FROM token_store WHERE name = ?",
                (self.name,),
            ).fetchone()

        if not row:
            return None
        try:
            return TokenRecord(token=row["token"], issuedAt=row["issued_at"], expiresAt=row["expires_at"])
        except ValidationError as e:
            logger.warning("Ignoring invalid stored token: %s", e)
            return None

    def put(self, record: TokenRecord):
        with self.connector.transaction() as conn:
            self._ensure_table(conn)
            conn.execute(
                """INSERT INTO token_store (name, token, issued_at, expires_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(name)
                   DO UPDATE SET token = excluded.token,
                                 issued_at = excluded.issued_at,
                                 expires_at = excluded.expires_at,
                                 updated_at = excluded.updated_at""",
                (self.name, record.token, record.issuedAt, record.expiresAt, int(time.time())),
            )


def create_backend(kind, connector: ResilientConnector = None, token_file: Path = None):
    """
    Build the store for a backend kind.

    Args:
        kind: BackendKind or its tag ("memory", "DISK", ...)
        connector: Required for DATABASE
        token_file: Required for DISK

    Returns:
        A backend instance
    """
    kind = BackendKind.parse(kind)
    if kind is BackendKind.MEMORY:
        return MemoryBackend()
    if kind is BackendKind.DISK:
        if token_file is None:
            raise ValueError("DISK backend needs a token file path")
        return DiskBackend(token_file)
    if connector is None:
        raise ValueError("DATABASE backend needs a connector")
    return DatabaseBackend(connector)
