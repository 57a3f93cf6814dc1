"""
Header Security Functions
=========================

Pure helpers applied to header collections on both legs of a proxied
request. Collections are ``httpx.Headers``: case-insensitive lookup,
duplicate names allowed, iteration in insertion order with the original
casing available through ``.raw``.
"""

from typing import Dict, FrozenSet, List, Tuple

import httpx

# Header used by callers to name the target; never forwarded upstream.
TARGET_URL_HEADER = "x-target-url"

HOP_BY_HOP_HEADERS: FrozenSet[str] = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    TARGET_URL_HEADER,
})

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, PATCH, OPTIONS, HEAD",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Expose-Headers": "*",
    "Access-Control-Max-Age": "86400",
}

NO_CACHE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _filtered(headers: httpx.Headers, drop) -> httpx.Headers:
    kept: List[Tuple[bytes, bytes]] = [
        (name, value)
        for name, value in headers.raw
        if not drop(name.decode("latin-1").lower())
    ]
    return httpx.Headers(kept)


def is_hop_by_hop_header(name: str) -> bool:
    return name.lower() in HOP_BY_HOP_HEADERS


def is_upstream_cors_header(name: str) -> bool:
    name = name.lower()
    return name.startswith("access-control-") or name == "vary"


def sanitize_headers(headers: httpx.Headers) -> httpx.Headers:
    """
    Return a copy of ``headers`` without hop-by-hop headers.

    Used identically for the request sent to the target and the response
    sent back to the caller. Duplicates, casing and relative order of the
    remaining headers are preserved.

    Args:
        headers: Header collection to filter (not modified)

    Returns:
        New filtered header collection
    """
    return _filtered(headers, is_hop_by_hop_header)


def strip_upstream_cors_headers(headers: httpx.Headers) -> httpx.Headers:
    """Drop CORS headers (and Vary) set by the target itself."""
    return _filtered(headers, is_upstream_cors_header)


def decorate_headers(headers: httpx.Headers) -> httpx.Headers:
    """
    Return a copy of ``headers`` with the fixed CORS and cache-suppression
    set applied.

    Each fixed header replaces every existing value with the same name, so
    decorating twice gives the same result as decorating once.
    """
    decorated = headers.copy()
    for name, value in {**CORS_HEADERS, **NO_CACHE_HEADERS}.items():
        decorated[name] = value
    return decorated
