"""
Cache-aside IP geolocation lookup.

resolve(ip) checks the ip_lookup_cache table first. On a miss it asks the
geolocation provider, writes the two description strings once, upserts the
record and returns it. Failed lookups are not cached, so the next call for
the same address goes upstream again.

The provider's `timezone` attribute is stored but never returned.
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from toolgate.connector import ResilientConnector
from toolgate.errors import InvalidArgument, UpstreamLookupFailed
from toolgate.schemas import GeoRecord
from toolgate.utils import HTTP_TIMEOUT, IP_LOOKUP_URL

logger = logging.getLogger(__name__)

# Fields never handed back to callers
HIDDEN_FIELDS = ("timezone",)


def create_description(info: Dict[str, Any]) -> str:
    return f"IP {info.get('ip')} is located in {info.get('city')}, {info.get('region')}, {info.get('country_name')}."


def create_detailed_description(info: Dict[str, Any]) -> str:
    return (
        f"IP {info.get('ip')} belongs to the network {info.get('network')}. "
        f"It is an {info.get('version')} address located in {info.get('city')}, "
        f"{info.get('region')} ({info.get('region_code')}), {info.get('country_name')} "
        f"({info.get('country_code_iso3')}). The location has the postal code {info.get('postal')} "
        f"and is situated at latitude {info.get('latitude')} and longitude {info.get('longitude')}. "
        f"The currency used is {info.get('currency')} ({info.get('currency_name')}), and the "
        f"calling code is {info.get('country_calling_code')}. "
        f"The ISP is {info.get('org')} with ASN {info.get('asn')}."
    )


def strip_hidden(info: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in info.items() if k not in HIDDEN_FIELDS}


class LookupCache:
    """Read-through cache of provider answers keyed by IP address."""

    def __init__(self, connector: ResilientConnector, url_template: str = IP_LOOKUP_URL,
                 client: Optional[httpx.Client] = None, timeout: float = HTTP_TIMEOUT):
        self.connector = connector
        self.url_template = url_template
        self._client = client
        self.timeout = timeout
        self._table_ready = False

    # --- storage ---

    def _ensure_table(self, conn):
        if self._table_ready:
            return
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ip_lookup_cache (
                ip          TEXT    PRIMARY KEY,
                data        TEXT    NOT NULL,
                created_at  INTEGER NOT NULL
            )
        """)
        self._table_ready = True

    def find(self, ip: str) -> Optional[Dict[str, Any]]:
        """Return the stored record for an IP, or None."""
        with self.connector.transaction() as conn:
            self._ensure_table(conn)
            row = conn.execute(
                "SELECT data FROM ip_lookup_cache WHERE ip = ?", (ip,)
            ).fetchone()
        return json.loads(row["data"]) if row else None

    def store(self, info: Dict[str, Any]):
        """Upsert a record keyed by its ip field."""
        with self.connector.transaction() as conn:
            self._ensure_table(conn)
            conn.execute(
                """INSERT INTO ip_lookup_cache (ip, data, created_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(ip)
                   DO UPDATE SET data = excluded.data, created_at = excluded.created_at""",
                (info["ip"], json.dumps(info), int(time.time())),
            )

    # --- upstream ---

    def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url)

    def fetch_upstream(self, ip: str) -> Dict[str, Any]:
        """Ask the provider about an IP. Raises UpstreamLookupFailed."""
        url = self.url_template.format(ip=ip)
        try:
            response = self._get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Geolocation lookup for %s returned %s", ip, e.response.status_code)
            raise UpstreamLookupFailed(
                f"Geolocation lookup for {ip} failed with status {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Geolocation lookup for %s failed: %s", ip, e)
            raise UpstreamLookupFailed(f"Geolocation lookup for {ip} failed: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamLookupFailed(f"Geolocation lookup for {ip} returned an unexpected body")
        # The provider reports reserved or malformed addresses with a 200 and an error flag
        if data.get("error"):
            reason = data.get("reason") or data.get("message") or "unknown error"
            raise UpstreamLookupFailed(f"Geolocation lookup for {ip} failed: {reason}")

        return data

    # --- public ---

    def resolve(self, ip: str) -> Dict[str, Any]:
        """
        Look up geolocation facts for an IP address.

        Args:
            ip: IPv4 or IPv6 address

        Returns:
            GeoRecord fields as a dict, including description and
            detailedDescription, without timezone

        Raises:
            InvalidArgument: If ip is empty
            UpstreamLookupFailed: On a cache miss the provider could not answer
        """
        if not isinstance(ip, str) or not ip.strip():
            raise InvalidArgument("IP address is required")
        ip = ip.strip()

        cached = self.find(ip)
        if cached:
            logger.debug("IP cache hit for %s", ip)
            return strip_hidden(cached)

        logger.info("IP cache miss for %s; querying provider", ip)
        info = self.fetch_upstream(ip)
        # Key the row by the address the caller asked for
        info["ip"] = ip
        info["description"] = create_description(info)
        info["detailedDescription"] = create_detailed_description(info)

        try:
            record = GeoRecord(**info).model_dump(exclude_unset=True)
        except ValidationError as e:
            raise UpstreamLookupFailed(f"Geolocation lookup for {ip} returned malformed fields: {e}") from e
        self.store(record)
        return strip_hidden(record)
