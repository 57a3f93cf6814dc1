"""
Proxy Routes - Request Forwarding
=================================

This module exposes the proxy pipeline over HTTP. It converts Starlette
requests into ``InboundRequest`` values, runs them through the pipeline,
and writes the resulting ``FinalResponse`` back out.

Endpoints:
----------
- * /: Forward the request to the URL named by the x-target-url header
       or the url query parameter (OPTIONS is answered locally)
"""

from typing import List, Tuple

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..models import FinalResponse, InboundRequest
from .pipeline import ProxyPipeline

# Create router
proxy_router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


# ============================================================================
# Dependencies
# ============================================================================

def get_pipeline(request: Request) -> ProxyPipeline:
    """
    Dependency to get the proxy pipeline from app state.

    Args:
        request: FastAPI request object

    Returns:
        ProxyPipeline built at startup

    Raises:
        HTTPException: If the pipeline has not been initialized
    """
    app_state = getattr(request.app.state, "app_state", None)
    pipeline = getattr(app_state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Proxy pipeline not initialized"
        )
    return pipeline


# ============================================================================
# Conversion Functions
# ============================================================================

async def to_inbound_request(request: Request) -> InboundRequest:
    """Snapshot a Starlette request as an InboundRequest."""
    return InboundRequest(
        method=request.method,
        path=request.url.path,
        # Raw ASGI bytes as UTF-8, like unquote; the resolver does the percent-decoding.
        query_string=request.scope.get("query_string", b"").decode("utf-8", errors="replace"),
        headers=httpx.Headers(request.headers.raw),
        body=await request.body(),
    )


def to_response(final: FinalResponse) -> Response:
    """
    Build a Starlette response that carries the final headers as-is,
    duplicates included.

    Content-Length is taken from the final headers when present, otherwise
    computed from the body.
    """
    response = Response(content=final.body, status_code=final.status_code)

    raw_headers: List[Tuple[bytes, bytes]] = [
        (name.lower(), value) for name, value in final.headers.raw
    ]
    if "content-length" not in final.headers:
        raw_headers.extend(
            (name, value)
            for name, value in response.raw_headers
            if name == b"content-length"
        )

    response.raw_headers = raw_headers
    return response


# ============================================================================
# Proxy Endpoint
# ============================================================================

@proxy_router.api_route("/", methods=PROXY_METHODS)
async def proxy(
    request: Request,
    pipeline: ProxyPipeline = Depends(get_pipeline),
) -> Response:
    """
    Proxy any request to its target.

    Flow:
    1. OPTIONS preflight answered without contacting a target
    2. Target URL resolved from x-target-url header or url query param
    3. Hop-by-hop headers stripped, request forwarded verbatim
    4. Upstream status and body returned with sanitized, CORS-decorated headers

    Returns:
        Upstream response, preflight reply, or JSON proxy error
    """
    inbound = await to_inbound_request(request)
    final = await pipeline.handle(inbound)
    return to_response(final)
