"""
Tests for the Cloudflare DNS backend against a mocked HTTP transport.
"""

import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from subdomain_manager.backends import CloudflareBackend, DNSRecord, get_backend
from subdomain_manager.result import ConfigurationError, ExternalServiceError

API_URL = "https://api.cloudflare.test/client/v4"


def make_backend(handler, **overrides):
    config = {
        "api_token": "cf-test-token",
        "zone_id": "zone-default",
        "api_url": API_URL,
        "transport": httpx.MockTransport(handler),
    }
    config.update(overrides)
    return CloudflareBackend(config)


def envelope(result=None, success=True, errors=None):
    return {"success": success, "errors": errors or [], "messages": [], "result": result}


def test_create_record_posts_payload_and_returns_id():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=envelope({"id": "rec-123", "name": "blog.example.com"}))

    result = make_backend(handler).create_record("A", "blog.example.com", "10.0.0.5")

    assert result.ok
    assert result.value == "rec-123"
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/client/v4/zones/zone-default/dns_records"
    assert request.headers["Authorization"] == "Bearer cf-test-token"
    assert json.loads(request.content) == {
        "type": "A",
        "name": "blog.example.com",
        "content": "10.0.0.5",
        "ttl": 1,
        "proxied": False,
    }


def test_zone_override_changes_request_path():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json=envelope({"id": "rec-1"}))

    backend = make_backend(handler)
    backend.create_record("A", "a.example.org", "10.0.0.5", zone_id="zone-org")
    backend.delete_record("rec-1", zone_id="zone-org")

    assert paths == [
        "/client/v4/zones/zone-org/dns_records",
        "/client/v4/zones/zone-org/dns_records/rec-1",
    ]


def test_provider_errors_are_joined():
    def handler(request):
        return httpx.Response(400, json=envelope(success=False, errors=[
            {"code": 81057, "message": "Record already exists."},
            {"code": 1004, "message": "DNS Validation Error"},
        ]))

    result = make_backend(handler).create_record("A", "blog.example.com", "10.0.0.5")

    assert not result.ok
    assert isinstance(result.error, ExternalServiceError)
    assert result.error.system == "dns"
    assert result.error.status_code == 400
    assert result.message == "Record already exists., DNS Validation Error"


def test_unsuccessful_envelope_with_200_is_an_error():
    def handler(request):
        return httpx.Response(200, json=envelope(success=False, errors=[{"message": "Invalid zone identifier"}]))

    result = make_backend(handler).delete_record("rec-1")

    assert result.message == "Invalid zone identifier"


def test_error_without_messages_falls_back_to_status():
    def handler(request):
        return httpx.Response(503, json=envelope(success=False))

    assert make_backend(handler).list_records().message == "HTTP 503"


def test_non_json_body_is_an_error():
    def handler(request):
        return httpx.Response(502, text="<html>Bad gateway</html>")

    result = make_backend(handler).get_zone_info()

    assert not result.ok
    assert result.message == "HTTP 502: unexpected response body"


def test_transport_error_becomes_err():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = make_backend(handler).create_record("A", "blog.example.com", "10.0.0.5")

    assert not result.ok
    assert result.message == "connection refused"


def test_create_without_id_is_an_error():
    def handler(request):
        return httpx.Response(200, json=envelope({}))

    assert not make_backend(handler).create_record("A", "x.example.com", "10.0.0.5").ok


def test_list_records_normalizes():
    def handler(request):
        return httpx.Response(200, json=envelope([
            {"id": "r1", "type": "A", "name": "blog.example.com", "content": "10.0.0.5", "ttl": 1, "proxied": False},
            {"id": "r2", "type": "CNAME", "name": "www.example.com", "content": "example.com", "ttl": 300},
        ]))

    result = make_backend(handler).list_records()

    assert result.ok
    assert result.value[0] == DNSRecord(id="r1", type="A", name="blog.example.com", content="10.0.0.5")
    assert result.value[1].ttl == 300
    assert result.value[1].proxied is False


def test_update_record_patches_fields():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=envelope({"id": "rec-1"}))

    result = make_backend(handler).update_record("rec-1", {"content": "10.0.0.6"})

    assert result.ok
    assert requests[0].method == "PATCH"
    assert json.loads(requests[0].content) == {"content": "10.0.0.6"}


def test_connection_check_reports_token_status():
    def handler(request):
        assert request.url.path == "/client/v4/user/tokens/verify"
        return httpx.Response(200, json=envelope({"id": "tok", "status": "active"}))

    ok, message = make_backend(handler).test_connection()

    assert ok
    assert message == "Token status: active"


@pytest.mark.parametrize("missing", ["api_token", "zone_id"])
def test_missing_credentials_raise(missing):
    with pytest.raises(ConfigurationError):
        make_backend(lambda request: httpx.Response(200), **{missing: ""})


def test_registry_builds_cloudflare_and_rejects_unknown():
    backend = get_backend("cloudflare", {"api_token": "t", "zone_id": "z"})
    assert isinstance(backend, CloudflareBackend)
    assert backend.api_url == "https://api.cloudflare.com/client/v4"

    with pytest.raises(ConfigurationError):
        get_backend("route53", {})


def test_unexpected_result_shapes_are_errors():
    def handler(request):
        return httpx.Response(200, json=envelope(["rec-1"]))

    backend = make_backend(handler)

    assert backend.create_record("A", "x.example.com", "10.0.0.5").message == "Record created but no id returned"
    assert backend.list_records().value == []
    assert backend.test_connection() == (False, "Token status: unknown")


def test_non_list_record_listing_is_an_error():
    def handler(request):
        return httpx.Response(200, json=envelope({"records": []}))

    assert make_backend(handler).list_records().message == "Unexpected record listing format"


def test_non_list_errors_field_falls_back_to_status():
    def handler(request):
        return httpx.Response(500, json={"success": False, "errors": "internal"})

    assert make_backend(handler).delete_record("rec-1").message == "HTTP 500"
