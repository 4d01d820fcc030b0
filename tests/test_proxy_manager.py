"""
Tests for the proxy manager client and its session retry policy.

Requests are served by ``httpx.MockTransport`` handlers that record every
call, so login counts and retries can be asserted exactly.
"""

import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from subdomain_manager.proxy_manager import ProxyHostSpec, ProxyManagerClient
from subdomain_manager.result import ConfigurationError, ExternalServiceError

API_URL = "http://npm.test/api"


class FakeProxyManager:
    """Minimal stand-in for the proxy manager API.

    ``reject_tokens`` lists how many upcoming authenticated calls answer 401.
    """

    def __init__(self, reject_tokens=0, login_status=200):
        self.reject_tokens = reject_tokens
        self.login_status = login_status
        self.logins = 0
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tokens":
            self.logins += 1
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"error": {"message": "Invalid password"}})
            return httpx.Response(200, json={"token": f"token-{self.logins}", "expires": "2030-01-01"})

        self.calls.append(request)
        if self.reject_tokens:
            self.reject_tokens -= 1
            return httpx.Response(401, json={"error": {"code": 401, "message": "Token has expired"}})

        if request.method == "POST" and request.url.path == "/api/nginx/proxy-hosts":
            return httpx.Response(201, json={"id": 17, **json.loads(request.content)})
        if request.method == "POST" and request.url.path == "/api/nginx/certificates":
            return httpx.Response(201, json={"id": 5})
        if request.method == "GET":
            return httpx.Response(200, json=[{"id": 17, "domain_names": ["app.example.com"]}])
        if request.method == "DELETE":
            return httpx.Response(200, json=True)
        return httpx.Response(200, content=b"")


def make_client(fake):
    return ProxyManagerClient(API_URL, "admin@example.com", "changeme", transport=httpx.MockTransport(fake))


def spec():
    return ProxyHostSpec(domain_names=["app.example.com"], forward_host="10.0.0.5", forward_port=3000)


def test_login_is_lazy_and_token_is_reused():
    fake = FakeProxyManager()
    client = make_client(fake)
    assert fake.logins == 0

    assert client.create_proxy_host(spec()).value == 17
    assert client.list_proxy_hosts().ok

    assert fake.logins == 1
    assert len(fake.calls) == 2
    assert all(c.headers["Authorization"] == "Bearer token-1" for c in fake.calls)


def test_login_sends_identity_and_secret():
    seen = []

    def handler(request):
        if request.url.path == "/api/tokens":
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"token": "t"})
        return httpx.Response(200, json=[])

    client = ProxyManagerClient(API_URL, "admin@example.com", "changeme", transport=httpx.MockTransport(handler))
    client.list_proxy_hosts()

    assert seen == [{"identity": "admin@example.com", "secret": "changeme"}]


def test_expired_session_is_renewed_and_call_retried_once():
    fake = FakeProxyManager()
    client = make_client(fake)
    client.list_proxy_hosts()

    fake.reject_tokens = 1
    result = client.create_proxy_host(spec())

    assert result.ok
    assert result.value == 17
    assert fake.logins == 2
    # list + rejected create + retried create
    assert len(fake.calls) == 3
    assert fake.calls[-1].headers["Authorization"] == "Bearer token-2"
    assert json.loads(fake.calls[-1].content) == json.loads(fake.calls[-2].content)


def test_second_rejection_is_returned_without_another_retry():
    fake = FakeProxyManager(reject_tokens=5)
    client = make_client(fake)

    result = client.delete_proxy_host(17)

    assert not result.ok
    assert isinstance(result.error, ExternalServiceError)
    assert result.error.status_code == 401
    assert result.message == "Token has expired"
    assert fake.logins == 2
    assert len(fake.calls) == 2


def test_login_failure_is_not_retried():
    fake = FakeProxyManager(login_status=401)
    client = make_client(fake)

    result = client.create_proxy_host(spec())

    assert not result.ok
    assert "Invalid password" in result.message
    assert fake.logins == 1
    assert fake.calls == []


def test_non_auth_errors_are_not_retried():
    def handler(request):
        if request.url.path == "/api/tokens":
            return httpx.Response(200, json={"token": "t"})
        return httpx.Response(400, json={"error": {"code": 400, "message": "app.example.com is already in use"}})

    client = ProxyManagerClient(API_URL, "admin@example.com", "changeme", transport=httpx.MockTransport(handler))
    result = client.create_proxy_host(spec())

    assert result.error.status_code == 400
    assert result.message == "app.example.com is already in use"


def test_proxy_host_payload_uses_default_flags():
    fake = FakeProxyManager()
    make_client(fake).create_proxy_host(spec())

    payload = json.loads(fake.calls[0].content)
    assert payload["domain_names"] == ["app.example.com"]
    assert payload["forward_host"] == "10.0.0.5"
    assert payload["forward_port"] == 3000
    assert payload["forward_scheme"] == "http"
    assert payload["block_exploits"] is True
    assert payload["allow_websocket_upgrade"] is True
    assert payload["http2_support"] is True
    assert payload["ssl_forced"] is False
    assert payload["caching_enabled"] is False
    assert payload["hsts_enabled"] is False
    assert payload["certificate_id"] == 0
    assert payload["meta"] == {}


def test_update_sends_put_with_fields():
    fake = FakeProxyManager()
    result = make_client(fake).update_proxy_host(17, {"forward_port": 8081, "forward_scheme": "https"})

    assert result.ok
    request = fake.calls[0]
    assert request.method == "PUT"
    assert request.url.path == "/api/nginx/proxy-hosts/17"
    assert json.loads(request.content) == {"forward_port": 8081, "forward_scheme": "https"}


def test_request_certificate_body():
    fake = FakeProxyManager()
    result = make_client(fake).request_certificate(["app.example.com"])

    assert result.value == 5
    assert json.loads(fake.calls[0].content) == {
        "provider": "letsencrypt",
        "domain_names": ["app.example.com"],
        "meta": {"letsencrypt_agree": True, "letsencrypt_email": "admin@example.com"},
    }


def test_transport_error_becomes_err():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = ProxyManagerClient(API_URL, "admin@example.com", "changeme", transport=httpx.MockTransport(handler))
    result = client.list_proxy_hosts()

    assert not result.ok
    assert "connection refused" in result.message


@pytest.mark.parametrize("args", [
    ("", "admin@example.com", "changeme"),
    (API_URL, "", "changeme"),
    (API_URL, "admin@example.com", ""),
])
def test_missing_credentials_raise(args):
    with pytest.raises(ConfigurationError):
        ProxyManagerClient(*args)


@pytest.mark.parametrize("body", [[{"id": 1}], "created", 17])
def test_unexpected_create_body_is_err(body):
    def handler(request):
        if request.url.path == "/api/tokens":
            return httpx.Response(200, json={"token": "t"})
        return httpx.Response(201, json=body)

    client = ProxyManagerClient(API_URL, "admin@example.com", "changeme", transport=httpx.MockTransport(handler))

    result = client.create_proxy_host(spec())
    assert not result.ok
    assert "no id returned" in result.message
    assert not client.request_certificate(["app.example.com"]).ok


def test_unexpected_listing_body_is_err():
    def handler(request):
        if request.url.path == "/api/tokens":
            return httpx.Response(200, json={"token": "t"})
        return httpx.Response(200, json={"hosts": []})

    client = ProxyManagerClient(API_URL, "admin@example.com", "changeme", transport=httpx.MockTransport(handler))

    assert not client.list_proxy_hosts().ok


def test_attempt_reports_whether_a_token_was_sent():
    rejected = FakeProxyManager(reject_tokens=1)
    client = make_client(rejected)
    result, had_token = client._attempt(ProxyManagerClient.list_proxy_hosts.__wrapped__)
    assert had_token is True
    assert result.error.status_code == 401

    refused = FakeProxyManager(login_status=403)
    client = make_client(refused)
    result, had_token = client._attempt(ProxyManagerClient.list_proxy_hosts.__wrapped__)
    assert had_token is False
    assert not result.ok
