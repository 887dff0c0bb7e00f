import itertools
import threading

import httpx
import pytest

from toolgate.connector import ResilientConnector
from toolgate.errors import IssuerUnavailable
from toolgate.ip_lookup import LookupCache
from toolgate.schemas import TokenRecord
from toolgate.services import Services
from toolgate.token_manager import TokenLifecycleManager

NOW = 1_700_000_000

GOOGLE_DNS = {
    "ip": "8.8.8.8",
    "network": "8.8.8.0/24",
    "version": "IPv4",
    "city": "Mountain View",
    "region": "California",
    "region_code": "CA",
    "country": "US",
    "country_name": "United States",
    "country_code": "US",
    "country_code_iso3": "USA",
    "country_capital": "Washington",
    "country_tld": ".us",
    "continent_code": "NA",
    "in_eu": False,
    "postal": "94043",
    "latitude": 37.42301,
    "longitude": -122.083352,
    "timezone": "America/Los_Angeles",
    "utc_offset": "-0700",
    "country_calling_code": "+1",
    "currency": "USD",
    "currency_name": "Dollar",
    "languages": "en-US,es-US,haw,fr",
    "country_area": 9629091.0,
    "country_population": 327167434,
    "asn": "AS15169",
    "org": "GOOGLE",
}


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class FakeIssuer:
    """Issues numbered tokens valid for one hour from the clock's time."""

    def __init__(self, clock, lifetime=3600, fail=False):
        self.clock = clock
        self.lifetime = lifetime
        self.fail = fail
        self.calls = 0
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def fetch(self):
        with self._lock:
            self.calls += 1
            n = next(self._counter)
        if self.fail:
            raise IssuerUnavailable("Unable to fetch token")
        issued = int(self.clock())
        return TokenRecord(token=f"token-{n}", issuedAt=issued, expiresAt=issued + self.lifetime)


class GeoProvider:
    """httpx transport that answers like the geolocation provider."""

    def __init__(self, payloads=None, status_code=200):
        self.payloads = payloads if payloads is not None else {"8.8.8.8": GOOGLE_DNS}
        self.status_code = status_code
        self.requests = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": True, "reason": "RateLimited"})
        ip = request.url.path.strip("/").split("/")[0]
        payload = self.payloads.get(ip)
        if payload is None:
            return httpx.Response(200, json={"ip": ip, "error": True, "reason": "Reserved IP Address"})
        return httpx.Response(200, json=dict(payload))

    @property
    def calls(self):
        return len(self.requests)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def issuer(clock):
    return FakeIssuer(clock)


@pytest.fixture
def manager(issuer, clock):
    return TokenLifecycleManager(issuer, clock=clock)


@pytest.fixture
def connector(tmp_path):
    conn = ResilientConnector(str(tmp_path / "toolgate.db"), sleep=lambda s: None)
    yield conn
    conn.close()


@pytest.fixture
def geo_provider():
    return GeoProvider()


@pytest.fixture
def lookup_cache(connector, geo_provider):
    client = httpx.Client(transport=httpx.MockTransport(geo_provider))
    yield LookupCache(connector, url_template="https://ipapi.test/{ip}/json/", client=client)
    client.close()


@pytest.fixture
def services(connector, manager, lookup_cache, tmp_path):
    return Services(
        connector=connector,
        token_manager=manager,
        lookup_cache=lookup_cache,
        token_file=tmp_path / "token.json",
    )
