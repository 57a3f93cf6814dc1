"""
End-to-End Tests for the Proxy Endpoint
=======================================

Tests for cors_proxy/app/proxy/routes.py and cors_proxy/app/main.py

Test Coverage:
--------------
1. Target resolution through the HTTP surface (header and query parameter)
2. Method, headers and body forwarded; hop-by-hop headers dropped
3. Response status/body passed through; headers sanitized and decorated
4. OPTIONS preflight never reaches the outbound client
5. Error replies (missing target, timeout) carry CORS headers
6. Framework errors (404, 503) carry CORS headers
7. Lifespan creates and closes the httpx outbound client
8. Raw query bytes decoded as UTF-8

Run tests:
----------
    pytest cors_proxy/app/tests/test_proxy.py -v
"""

import httpx
import pytest
from fastapi import Request, status
from fastapi.testclient import TestClient

from cors_proxy.app.config import Settings
from cors_proxy.app.main import create_app
from cors_proxy.app.models import UpstreamResponse
from cors_proxy.app.proxy.client import HttpxOutboundClient
from cors_proxy.app.proxy.resolver import resolve_target
from cors_proxy.app.proxy.routes import to_inbound_request


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def app(settings, fake_client):
    """Create test FastAPI application with a fake outbound client"""
    return create_app(settings=settings, outbound_client=fake_client)


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app)


def assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, PUT, DELETE, PATCH, OPTIONS, HEAD"
    assert response.headers["access-control-allow-headers"] == "*"
    assert response.headers["access-control-expose-headers"] == "*"
    assert response.headers["access-control-max-age"] == "86400"
    assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate, proxy-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"


# ============================================================================
# Forwarding Tests
# ============================================================================

def test_get_with_target_header(client, fake_client):
    """GET / with x-target-url returns the target's status and body"""
    fake_client.response = UpstreamResponse(
        status_code=200,
        headers=httpx.Headers([
            ("Content-Type", "application/json"),
            ("Connection", "close"),
            ("X-Upstream", "yes"),
        ]),
        body=b'{"url": "https://httpbin.org/get"}',
    )

    response = client.get("/", headers={"x-target-url": "https://httpbin.org/get"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"url": "https://httpbin.org/get"}
    assert response.headers["x-upstream"] == "yes"
    assert "connection" not in response.headers
    assert_cors(response)

    call = fake_client.last_call
    assert call["method"] == "GET"
    assert call["url"] == "https://httpbin.org/get"
    assert call["body"] is None


def test_target_header_not_forwarded(client, fake_client):
    client.get(
        "/",
        headers={
            "x-target-url": "https://api.example.com/data",
            "X-Api-Key": "secret",
        },
    )

    forwarded = fake_client.last_call["headers"]
    assert "x-target-url" not in forwarded
    assert "connection" not in forwarded
    assert forwarded["x-api-key"] == "secret"


def test_get_with_encoded_query_parameter(client, fake_client):
    response = client.get(
        "/?url=https%3A%2F%2Fapi.example.com%2Fsearch%3Fq%3Dhello%20world"
    )

    assert response.status_code == status.HTTP_200_OK
    assert fake_client.last_call["url"] == "https://api.example.com/search?q=hello world"


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
def test_method_and_body_forwarded(client, fake_client, method):
    response = client.request(
        method,
        "/",
        headers={"x-target-url": "https://api.example.com/items", "Content-Type": "application/json"},
        content=b'{"name": "widget"}',
    )

    assert response.status_code == status.HTTP_200_OK
    call = fake_client.last_call
    assert call["method"] == method
    assert call["body"] == b'{"name": "widget"}'
    assert call["headers"]["content-type"] == "application/json"


def test_upstream_error_status_passed_through(client, fake_client):
    fake_client.response = UpstreamResponse(
        status_code=503,
        headers=httpx.Headers({"Content-Type": "text/plain", "Retry-After": "30"}),
        body=b"maintenance",
    )

    response = client.get("/", headers={"x-target-url": "https://api.example.com/"})

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.text == "maintenance"
    assert response.headers["retry-after"] == "30"
    assert_cors(response)


def test_duplicate_upstream_headers_preserved(client, fake_client):
    fake_client.response = UpstreamResponse(
        status_code=200,
        headers=httpx.Headers([("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]),
        body=b"ok",
    )

    response = client.get("/", headers={"x-target-url": "https://api.example.com/"})

    assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]
    assert response.headers["content-length"] == "2"


def test_upstream_cache_headers_overwritten(client, fake_client):
    fake_client.response = UpstreamResponse(
        status_code=200,
        headers=httpx.Headers({"Cache-Control": "public, max-age=600", "Expires": "Thu, 01 Dec 2094 16:00:00 GMT"}),
        body=b"",
    )

    response = client.get("/", headers={"x-target-url": "https://api.example.com/"})

    assert response.headers.get_list("cache-control") == ["no-store, no-cache, must-revalidate, proxy-revalidate"]
    assert response.headers["expires"] == "0"


# ============================================================================
# Preflight Tests
# ============================================================================

def test_options_preflight_short_circuits(client, fake_client):
    response = client.options(
        "/",
        headers={
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "POST",
            "x-target-url": "https://api.example.com/",
        },
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.content == b""
    assert_cors(response)
    assert fake_client.calls == []


# ============================================================================
# Error Handling Tests
# ============================================================================

def test_missing_target(client, fake_client):
    response = client.get("/")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "MissingTarget"
    assert "x-target-url" in response.json()["message"]
    assert_cors(response)
    assert fake_client.calls == []


@pytest.mark.parametrize("target", ["ftp://x", "javascript:alert(1)"])
def test_invalid_scheme(client, target):
    response = client.get("/", headers={"x-target-url": target})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "InvalidScheme"
    assert_cors(response)


def test_upstream_timeout(client, fake_client):
    """Simulated target timeout returns 500 with an UpstreamTimeout message"""
    fake_client.error = httpx.ReadTimeout("Timeout")

    response = client.get("/", headers={"x-target-url": "https://httpbin.org/get"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "UpstreamTimeout"
    assert_cors(response)


def test_upstream_unreachable(client, fake_client):
    fake_client.error = httpx.ConnectError("Connection failed")

    response = client.get("/", headers={"x-target-url": "https://httpbin.org/get"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "UpstreamUnreachable"


def test_distinct_error_status_setting(fake_client):
    settings = Settings(_env_file=None, DISTINGUISH_ERROR_STATUS=True)
    client = TestClient(create_app(settings=settings, outbound_client=fake_client))
    fake_client.error = httpx.ConnectTimeout("Timeout")

    assert client.get("/").status_code == status.HTTP_400_BAD_REQUEST
    assert client.get("/", headers={"x-target-url": "https://a.example.com/"}).status_code == status.HTTP_504_GATEWAY_TIMEOUT


def test_unknown_path_has_cors_headers(client):
    response = client.get("/other")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "http_error"
    assert_cors(response)


def test_pipeline_not_initialized(settings):
    """Without lifespan startup or an injected client there is no pipeline"""
    client = TestClient(create_app(settings=settings))

    response = client.get("/", headers={"x-target-url": "https://api.example.com/"})

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert_cors(response)


# ============================================================================
# Lifespan Tests
# ============================================================================

def test_lifespan_creates_and_closes_outbound_client(settings):
    app = create_app(settings=settings)

    with TestClient(app):
        app_state = app.state.app_state
        assert isinstance(app_state.outbound_client, HttpxOutboundClient)
        assert app_state.pipeline is not None

    assert app_state.outbound_client is None
    assert app_state.pipeline is None


def test_lifespan_keeps_injected_client(app, fake_client):
    with TestClient(app):
        assert app.state.app_state.outbound_client is fake_client

    assert app.state.app_state.outbound_client is fake_client


# ============================================================================
# Conversion Tests
# ============================================================================

@pytest.mark.asyncio
async def test_unencoded_utf8_query_target_is_not_mangled():
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "raw_path": b"/",
        "query_string": "url=https://api.example.com/café".encode("utf-8"),
        "headers": [],
    }

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    inbound = await to_inbound_request(Request(scope, receive))

    assert resolve_target(inbound.headers, inbound.query_string).value == "https://api.example.com/café"
