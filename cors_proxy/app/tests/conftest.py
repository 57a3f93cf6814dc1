"""
Shared fixtures for the proxy tests.

``FakeOutboundClient`` stands in for the httpx-backed outbound client so
tests never touch the network: it records every call and either returns a
canned upstream response or raises a configured exception.
"""

from typing import Any, Dict, List, Optional

import httpx
import pytest

from cors_proxy.app.config import Settings
from cors_proxy.app.models import UpstreamResponse


class FakeOutboundClient:
    """Recording OutboundClient test double."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.response = UpstreamResponse(
            status_code=200,
            headers=httpx.Headers({"Content-Type": "application/json"}),
            body=b'{"ok": true}',
        )
        self.error: Optional[Exception] = None

    async def execute(self, method, url, headers, body, timeout) -> UpstreamResponse:
        self.calls.append({
            "method": method,
            "url": url,
            "headers": headers,
            "body": body,
            "timeout": timeout,
        })
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def last_call(self) -> Dict[str, Any]:
        assert self.calls, "outbound client was never called"
        return self.calls[-1]


@pytest.fixture
def fake_client():
    """Outbound client that records calls and returns a 200 JSON response"""
    return FakeOutboundClient()


@pytest.fixture
def settings():
    """Default settings, independent of any local .env file"""
    return Settings(_env_file=None)
