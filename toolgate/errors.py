"""
Error taxonomy for the gateway.

Every error carries a machine-readable ``code`` and the HTTP ``status`` the
API layer answers with, so callers can tell failures apart without parsing
messages.
"""


class GatewayError(Exception):
    """Base class for all gateway failures."""

    code = "internal_error"
    status = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "status": self.status}


class InvalidArgument(GatewayError):
    """A required argument is missing or malformed."""

    code = "invalid_argument"
    status = 400


class IssuerUnavailable(GatewayError):
    """The token issuer could not be reached or refused the request."""

    code = "issuer_unavailable"
    status = 502


class ConnectionExhausted(GatewayError):
    """The database stayed unreachable after every connection attempt."""

    code = "connection_exhausted"
    status = 503

    def __init__(self, message: str = None, last_error: Exception = None):
        super().__init__(message)
        self.last_error = last_error


class PersistenceError(GatewayError):
    """A store read or write failed."""

    code = "persistence_error"
    status = 500


class UpstreamLookupFailed(GatewayError):
    """The geolocation provider call failed."""

    code = "upstream_lookup_failed"
    status = 502


class UploadFailed(GatewayError):
    """The upload service rejected the file or answered without it."""

    code = "upload_failed"
    status = 502


class BatchLimitExceeded(GatewayError):
    """Too many items in a single call."""

    code = "batch_limit_exceeded"
    status = 400
