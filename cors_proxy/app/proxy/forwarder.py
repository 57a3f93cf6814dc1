"""
Request Forwarding
==================

Sends a sanitized request to the resolved target through the injected
``OutboundClient`` and classifies transport failures into proxy errors.
The method, headers and body go out exactly as given.
"""

import asyncio
import logging

import httpx

from ..models import OutboundRequest, UpstreamResponse
from .client import OutboundClient
from .errors import (
    UpstreamProtocolError,
    UpstreamTimeoutError,
    UpstreamUnreachableError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class Forwarder:
    """
    Forwards outbound requests to their targets.

    Attributes:
        client: Outbound HTTP capability
        timeout: Overall deadline in seconds for one upstream exchange
    """

    def __init__(self, client: OutboundClient, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.client = client
        self.timeout = timeout

    async def forward(self, request: OutboundRequest) -> UpstreamResponse:
        """
        Issue ``request`` and return the upstream response verbatim.

        Args:
            request: Method, validated target, sanitized headers and body

        Returns:
            Upstream status, headers and body (headers not yet sanitized)

        Raises:
            UpstreamTimeoutError: No response within the deadline
            UpstreamProtocolError: The target sent a malformed response
            UpstreamUnreachableError: Connection, DNS or TLS failure
        """
        url = request.target.value
        logger.debug(
            "Forwarding request upstream",
            extra={"method": request.method, "target_host": request.target.host}
        )

        try:
            return await asyncio.wait_for(
                self.client.execute(
                    request.method,
                    url,
                    request.headers,
                    request.body or None,
                    self.timeout,
                ),
                timeout=self.timeout,
            )

        except (httpx.TimeoutException, asyncio.TimeoutError):
            raise UpstreamTimeoutError(
                f"No response from {url} within {self.timeout:g}s"
            )

        except (httpx.ProtocolError, httpx.DecodingError, httpx.TooManyRedirects) as e:
            raise UpstreamProtocolError(f"Invalid response from {url}: {e}")

        except httpx.RequestError as e:
            raise UpstreamUnreachableError(f"Cannot reach {url}: {e}")

        except httpx.InvalidURL as e:
            raise UpstreamUnreachableError(f"Cannot build request for {url}: {e}")
