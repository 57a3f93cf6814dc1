"""
Outbound HTTP Client
====================

The only I/O boundary of the proxy. The pipeline depends on the
``OutboundClient`` protocol; ``HttpxOutboundClient`` is the production
implementation backed by a shared ``httpx.AsyncClient``.

The httpx client owns connection pooling, TLS verification, redirect policy
and the outbound host allow-list. Failures are raised as httpx exceptions
and classified by the forwarder.
"""

import logging
from typing import List, Optional, Protocol, Sequence

import httpx

from ..config import Settings
from ..models import UpstreamResponse

logger = logging.getLogger(__name__)

# The transport derives these from the target URL and the body.
TRANSPORT_MANAGED_HEADERS = frozenset({"host", "content-length"})


class OutboundClient(Protocol):
    """Capability that performs a single HTTP exchange with a target."""

    async def execute(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        body: Optional[bytes],
        timeout: float,
    ) -> UpstreamResponse:
        ...


def host_allowed(host: str, patterns: Sequence[str]) -> bool:
    """
    Check a host against allow-list patterns.

    Patterns are ``*`` (any host), an exact host name, or ``*.example.com``
    (any subdomain of example.com, not example.com itself).
    """
    host = host.lower().rstrip(".")
    for pattern in patterns:
        if pattern == "*":
            return True
        if pattern.startswith("*."):
            if host.endswith(pattern[1:]):
                return True
        elif host == pattern:
            return True
    return False


class HttpxOutboundClient:
    """
    OutboundClient implementation on top of ``httpx.AsyncClient``.

    Attributes:
        client: Shared async client (connection pool)
        allowed_hosts: Host patterns the client may contact
    """

    def __init__(self, client: httpx.AsyncClient, allowed_hosts: Sequence[str] = ("*",)):
        self.client = client
        self.allowed_hosts: List[str] = [h.lower() for h in allowed_hosts]

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpxOutboundClient":
        timeout = httpx.Timeout(
            settings.UPSTREAM_TIMEOUT_SECONDS,
            connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
        )
        limits = httpx.Limits(max_connections=settings.MAX_CONNECTIONS)
        client = httpx.AsyncClient(
            timeout=timeout,
            limits=limits,
            follow_redirects=settings.FOLLOW_REDIRECTS,
            verify=settings.VERIFY_TLS,
        )
        return cls(client, settings.allowed_outbound_hosts_list)

    async def execute(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        body: Optional[bytes],
        timeout: float,
    ) -> UpstreamResponse:
        """
        Send one request and read the full, undecoded response body.

        Raises:
            httpx.ConnectError: If the target host is not allowed
            httpx.InvalidURL: If httpx cannot build a request for the URL
            httpx.RequestError: Any transport failure
        """
        # The per-request budget bounds every phase; the configured connect
        # timeout still applies when it is shorter.
        connect = self.client.timeout.connect
        request_timeout = httpx.Timeout(
            timeout,
            connect=timeout if connect is None else min(connect, timeout),
        )

        request = self.client.build_request(
            method,
            url,
            headers=[
                (name, value)
                for name, value in headers.raw
                if name.decode("latin-1").lower() not in TRANSPORT_MANAGED_HEADERS
            ],
            content=body,
            timeout=request_timeout,
        )

        if not host_allowed(request.url.host, self.allowed_hosts):
            logger.warning(
                "Outbound host rejected by allow-list",
                extra={"host": request.url.host}
            )
            raise httpx.ConnectError(
                f"Host '{request.url.host}' is not in the allowed outbound hosts",
                request=request,
            )

        response = await self.client.send(request, stream=True)
        try:
            body_bytes = b"".join([chunk async for chunk in response.aiter_raw()])
        finally:
            await response.aclose()

        return UpstreamResponse(
            status_code=response.status_code,
            headers=response.headers,
            body=body_bytes,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
