"""
Client for the external token issuer.

The issuer trades two pre-shared keys for a short-lived bearer token:

    POST {TOKEN_ISSUER_URL}  {"apiKey1": ..., "apiKey2": ...}
    -> {"token": "...", "issuedAt": 1700000000, "expiresAt": 1700003600}
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from toolgate.errors import IssuerUnavailable
from toolgate.schemas import TokenRecord
from toolgate.utils import HTTP_TIMEOUT, TOKEN_ISSUER_URL, get_env

logger = logging.getLogger(__name__)


class RemoteTokenIssuer:
    """Fetches fresh tokens. Holds no state besides its configuration."""

    def __init__(self, url: str = TOKEN_ISSUER_URL, api_key_1: str = None, api_key_2: str = None,
                 client: Optional[httpx.Client] = None, timeout: float = HTTP_TIMEOUT):
        self.url = url
        self.api_key_1 = api_key_1 if api_key_1 is not None else get_env("TRUSTED_API_KEY_1", "")
        self.api_key_2 = api_key_2 if api_key_2 is not None else get_env("TRUSTED_API_KEY_2", "")
        self._client = client
        self.timeout = timeout

    def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.url, json=payload, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(self.url, json=payload)

    def fetch(self) -> TokenRecord:
        """
        Request a new token.

        Returns:
            TokenRecord with the token and its validity window

        Raises:
            IssuerUnavailable: If the issuer is unreachable, answers with a
                non-success status, or returns a malformed body
        """
        payload = {"apiKey1": self.api_key_1, "apiKey2": self.api_key_2}
        try:
            response = self._post(payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Token issuer returned %s", e.response.status_code)
            raise IssuerUnavailable(
                f"Unable to fetch token: issuer returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Token issuer request failed: %s", e)
            raise IssuerUnavailable(f"Unable to fetch token: {e}") from e

        try:
            return TokenRecord(
                token=data.get("token"),
                issuedAt=data.get("issuedAt"),
                expiresAt=data.get("expiresAt"),
            )
        except (ValidationError, AttributeError) as e:
            logger.error("Token issuer returned an unusable body")
            raise IssuerUnavailable(f"Unable to fetch token: malformed issuer response ({e})") from e
