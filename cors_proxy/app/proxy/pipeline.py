"""
Proxy Pipeline
==============

Turns one inbound request into exactly one final response.

Flow:
-----
1. OPTIONS: reply immediately with the CORS/cache header set, empty body
2. Resolve the target URL (x-target-url header, then url query param)
3. Sanitize request headers and forward method/headers/body to the target
4. Sanitize the upstream response headers and decorate them
5. Any ProxyError along the way becomes a decorated JSON error reply

The pipeline holds no per-request state; one instance serves every request.
"""

import logging
from typing import Optional

import httpx
from fastapi import status

from ..models import ErrorResponse, FinalResponse, InboundRequest, OutboundRequest
from .errors import ProxyError, ProxyErrorKind
from .forwarder import Forwarder
from .headers import decorate_headers, sanitize_headers, strip_upstream_cors_headers
from .resolver import resolve_target

logger = logging.getLogger(__name__)

# Used only when error statuses are distinguished; the default is a flat 500.
DISTINCT_ERROR_STATUS = {
    ProxyErrorKind.MISSING_TARGET: status.HTTP_400_BAD_REQUEST,
    ProxyErrorKind.INVALID_SCHEME: status.HTTP_400_BAD_REQUEST,
    ProxyErrorKind.MALFORMED_URL: status.HTTP_400_BAD_REQUEST,
    ProxyErrorKind.UPSTREAM_UNREACHABLE: status.HTTP_502_BAD_GATEWAY,
    ProxyErrorKind.UPSTREAM_PROTOCOL_ERROR: status.HTTP_502_BAD_GATEWAY,
    ProxyErrorKind.UPSTREAM_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def preflight_response(status_code: int = status.HTTP_200_OK) -> FinalResponse:
    return FinalResponse(
        status_code=status_code,
        headers=decorate_headers(httpx.Headers()),
        body=b"",
    )


def error_response(error: ProxyError, distinguish_status: bool = False) -> FinalResponse:
    """
    Build the decorated JSON reply for a proxy error.

    Args:
        error: The classified failure
        distinguish_status: Use 400/502/504 instead of a flat 500

    Returns:
        FinalResponse with an ErrorResponse JSON body
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if distinguish_status:
        status_code = DISTINCT_ERROR_STATUS[error.kind]

    body = ErrorResponse(error=error.kind.value, message=error.message)
    headers = httpx.Headers({"Content-Type": "application/json"})

    return FinalResponse(
        status_code=status_code,
        headers=decorate_headers(headers),
        body=body.model_dump_json().encode("utf-8"),
    )


class ProxyPipeline:
    """
    Orchestrates resolution, forwarding and header rewriting.

    Attributes:
        forwarder: Sends requests to targets
        preflight_status: Status code for OPTIONS replies (200 or 204)
        distinguish_error_status: Map error kinds to 400/502/504
        strip_upstream_cors: Drop the target's own CORS headers before decorating
    """

    def __init__(
        self,
        forwarder: Forwarder,
        preflight_status: int = status.HTTP_200_OK,
        distinguish_error_status: bool = False,
        strip_upstream_cors: bool = False,
    ):
        self.forwarder = forwarder
        self.preflight_status = preflight_status
        self.distinguish_error_status = distinguish_error_status
        self.strip_upstream_cors = strip_upstream_cors

    async def handle(self, request: InboundRequest) -> FinalResponse:
        """
        Handle one inbound request. Never raises ProxyError.

        Args:
            request: Parsed inbound request

        Returns:
            Final response with sanitized and decorated headers
        """
        if request.method.upper() == "OPTIONS":
            return preflight_response(self.preflight_status)

        target_host: Optional[str] = None
        try:
            target = resolve_target(request.headers, request.query_string)
            target_host = target.host

            outbound = OutboundRequest(
                method=request.method,
                target=target,
                headers=sanitize_headers(request.headers),
                body=request.body or None,
            )

            logger.info(
                "Proxying request",
                extra={
                    "method": request.method,
                    "target_host": target.host,
                    "target_source": target.source.value,
                    "body_length": len(request.body),
                }
            )

            upstream = await self.forwarder.forward(outbound)

        except ProxyError as e:
            logger.warning(
                f"Proxy error: {e.kind.value}: {e.message}",
                extra={"method": request.method, "target_host": target_host}
            )
            return error_response(e, self.distinguish_error_status)

        headers = sanitize_headers(upstream.headers)
        if self.strip_upstream_cors:
            headers = strip_upstream_cors_headers(headers)

        return FinalResponse(
            status_code=upstream.status_code,
            headers=decorate_headers(headers),
            body=upstream.body,
        )
