import json

import httpx
import pytest

from toolgate.errors import IssuerUnavailable
from toolgate.token_issuer import RemoteTokenIssuer


def _issuer(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteTokenIssuer(url="https://issuer.test/", api_key_1="k1", api_key_2="k2", client=client)


def test_fetch_posts_both_keys():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"token": "jwt", "issuedAt": 100, "expiresAt": 3700})

    record = _issuer(handler).fetch()

    assert seen == {"method": "POST", "body": {"apiKey1": "k1", "apiKey2": "k2"}}
    assert (record.token, record.issuedAt, record.expiresAt) == ("jwt", 100, 3700)


def test_non_success_status():
    issuer = _issuer(lambda request: httpx.Response(401, json={"error": "bad keys"}))
    with pytest.raises(IssuerUnavailable) as exc_info:
        issuer.fetch()
    assert "401" in exc_info.value.message


def test_unreachable_issuer():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IssuerUnavailable):
        _issuer(handler).fetch()


@pytest.mark.parametrize("body", [
    {"token": "jwt", "issuedAt": 100},
    {"token": "", "issuedAt": 100, "expiresAt": 200},
    {"token": "jwt", "issuedAt": 200, "expiresAt": 100},
    ["not", "an", "object"],
])
def test_malformed_response(body):
    issuer = _issuer(lambda request: httpx.Response(200, json=body))
    with pytest.raises(IssuerUnavailable):
        issuer.fetch()
