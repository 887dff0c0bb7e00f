"""
Upload token lifecycle.

get_token(backend) reads the current token from the chosen store, refreshes
it through the issuer when it is missing or within five minutes of expiry,
persists the fresh one, and hands back a usable token string.

No lock guards the read-check-fetch-write sequence. Two callers that both see
a stale token will both refresh and both write; the last write wins and both
callers still get a valid token. The cost is an extra issuer call.
"""

import logging
import time

from toolgate.errors import IssuerUnavailable
from toolgate.schemas import TokenRecord
from toolgate.token_issuer import RemoteTokenIssuer

logger = logging.getLogger(__name__)

EXPIRY_BUFFER_SECONDS = 300


def is_token_stale(record: TokenRecord, now: float, buffer: int = EXPIRY_BUFFER_SECONDS) -> bool:
    """True if the record is absent or expires within the buffer."""
    if record is None or not record.token:
        return True
    return now >= record.expiresAt - buffer


class TokenLifecycleManager:
    """Hands out bearer tokens, refreshing them on demand."""

    def __init__(self, issuer: RemoteTokenIssuer, clock=time.time,
                 buffer_seconds: int = EXPIRY_BUFFER_SECONDS):
        self.issuer = issuer
        self.clock = clock
        self.buffer_seconds = buffer_seconds

    def get_record(self, backend) -> TokenRecord:
        """Return a fresh TokenRecord from the backend, refreshing if needed."""
        record = backend.get()
        if not is_token_stale(record, self.clock(), self.buffer_seconds):
            return record

        logger.info("Token in %s store is missing or expiring; refreshing", backend.kind.value)
        record = self.issuer.fetch()
        if is_token_stale(record, self.clock(), self.buffer_seconds):
            raise IssuerUnavailable(
                f"Issuer returned a token expiring within {self.buffer_seconds}s"
            )
        backend.put(record)
        logger.info("Stored new token in %s store (expires at %d)", backend.kind.value, record.expiresAt)
        return record

    def get_token(self, backend) -> str:
        """
        Get a usable bearer token.

        Args:
            backend: A token store (MemoryBackend, DiskBackend or DatabaseBackend)

        Returns:
            Token string valid for at least the buffer window

        Raises:
            IssuerUnavailable: If a refresh was needed and the issuer failed or
                returned a token that is already inside the buffer
            PersistenceError: If the refreshed token could not be stored
            ConnectionExhausted: If the database backend could not connect
        """
        return self.get_record(backend).token
