"""
Target URL Resolution
=====================

Determines where a proxied request should go. Callers name the target
either with the ``x-target-url`` header (raw URL) or the ``url`` query
parameter (percent-encoded URL). Sources are tried in ``RESOLUTION_ORDER``
and the first one present wins.
"""

from typing import Callable, Dict, Optional, Tuple
from urllib.parse import unquote

import httpx

from ..models import TargetSource, TargetURL
from .errors import InvalidSchemeError, MalformedURLError, MissingTargetError
from .headers import TARGET_URL_HEADER

TARGET_URL_QUERY_PARAM = "url"

ALLOWED_SCHEMES = ("http", "https")

RESOLUTION_ORDER: Tuple[TargetSource, ...] = (TargetSource.HEADER, TargetSource.QUERY)


def _from_header(headers: httpx.Headers, query_string: str) -> Optional[str]:
    value = headers.get(TARGET_URL_HEADER)
    return value or None


def _from_query(headers: httpx.Headers, query_string: str) -> Optional[str]:
    for param in query_string.split("&"):
        key, sep, value = param.partition("=")
        if sep and key == TARGET_URL_QUERY_PARAM:
            # Single decoding pass; '+' stays literal.
            return unquote(value)
    return None


_CANDIDATE_READERS: Dict[TargetSource, Callable[[httpx.Headers, str], Optional[str]]] = {
    TargetSource.HEADER: _from_header,
    TargetSource.QUERY: _from_query,
}


def validate_target(candidate: str, source: TargetSource) -> TargetURL:
    """
    Validate a candidate URL string.

    Args:
        candidate: URL string read from the request
        source: Input the candidate came from

    Returns:
        TargetURL holding the candidate unchanged

    Raises:
        MalformedURLError: If the candidate is not an absolute URL with a host
        InvalidSchemeError: If the scheme is not http or https
    """
    # Parsed with the same URL model the outbound client sends with.
    try:
        parsed = httpx.URL(candidate)
    except httpx.InvalidURL as e:
        raise MalformedURLError(f"Target URL is not a valid absolute URL: {e}")

    if not parsed.scheme:
        raise MalformedURLError("Target URL is not absolute")
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidSchemeError(
            f"Target URL must start with http:// or https:// (got scheme '{parsed.scheme}')"
        )
    if not parsed.host or not candidate[len(parsed.scheme) + 1:].startswith("//"):
        raise MalformedURLError("Target URL must name a host after the scheme")

    return TargetURL(value=candidate, scheme=parsed.scheme, host=parsed.host, source=source)


def resolve_target(headers: httpx.Headers, query_string: str) -> TargetURL:
    """
    Resolve the target URL of an inbound request.

    Args:
        headers: Inbound request headers
        query_string: Raw inbound query string (without the leading '?')

    Returns:
        Validated TargetURL

    Raises:
        MissingTargetError: If neither the header nor the query parameter is set
        MalformedURLError: If the candidate does not parse as an absolute URL
        InvalidSchemeError: If the candidate is not http(s)
    """
    for source in RESOLUTION_ORDER:
        candidate = _CANDIDATE_READERS[source](headers, query_string)
        if candidate is not None:
            return validate_target(candidate, source)

    raise MissingTargetError(
        "Missing target URL in x-target-url header or url query param"
    )
