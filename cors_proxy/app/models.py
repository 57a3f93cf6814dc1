"""
Data Models Module

This module defines the request-scoped values that flow through the proxy
pipeline, plus the JSON body returned for proxy errors.

Models are organized by pipeline stage:
- Inbound models (the parsed caller request)
- Forwarding models (validated target, outbound request, upstream response)
- Reply models (final response, error body)

Header collections are ``httpx.Headers`` (case-insensitive ordered multimap),
so every model allows arbitrary types. All models are frozen: nothing is
mutated once a stage has produced it.
"""

from enum import Enum
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field


class _RequestScoped(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# ============================================================================
# Inbound Models
# ============================================================================

class InboundRequest(_RequestScoped):
    """Request as received from the caller."""
    method: str = Field(..., description="HTTP method token")
    path: str = Field(default="/", description="Request path")
    query_string: str = Field(default="", description="Raw query string, without '?'")
    headers: httpx.Headers = Field(default_factory=httpx.Headers, description="Request headers")
    body: bytes = Field(default=b"", description="Request body (may be empty)")


# ============================================================================
# Forwarding Models
# ============================================================================

class TargetSource(str, Enum):
    """Where a target URL was read from, in resolution order."""
    HEADER = "header"
    QUERY = "query"


class TargetURL(_RequestScoped):
    """Validated absolute http(s) URL. Only the target resolver builds these."""
    value: str = Field(..., description="URL exactly as supplied by the caller")
    scheme: str = Field(..., description="Lowercased scheme (http or https)")
    host: str = Field(..., description="Target host")
    source: TargetSource = Field(..., description="Input the URL was resolved from")

    def __str__(self) -> str:
        return self.value


class OutboundRequest(_RequestScoped):
    """Request about to be sent to the target."""
    method: str
    target: TargetURL
    headers: httpx.Headers
    body: Optional[bytes] = None


class UpstreamResponse(_RequestScoped):
    """Response received from the target, before any header rewriting."""
    status_code: int
    headers: httpx.Headers
    body: bytes = b""


# ============================================================================
# Reply Models
# ============================================================================

class FinalResponse(_RequestScoped):
    """The only value handed back to the caller."""
    status_code: int
    headers: httpx.Headers
    body: bytes = b""


class ErrorResponse(BaseModel):
    """Standardized error response body."""
    error: str = Field(..., description="Error kind")
    message: str = Field(..., description="Human-readable error message")
