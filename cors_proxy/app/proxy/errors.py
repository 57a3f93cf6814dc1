"""
Proxy Errors
============

Every failure the forwarding pipeline can produce is a ``ProxyError``
subclass carrying a ``kind`` and a human-readable ``message``. The pipeline
turns each one into exactly one error response; none are retried.

Kinds:
------
- MissingTarget, InvalidScheme, MalformedURL: bad caller input
- UpstreamUnreachable, UpstreamTimeout, UpstreamProtocolError: forwarding failures
"""

from enum import Enum


class ProxyErrorKind(str, Enum):
    """Tag identifying which ProxyError variant was raised."""

    MISSING_TARGET = "MissingTarget"
    INVALID_SCHEME = "InvalidScheme"
    MALFORMED_URL = "MalformedURL"
    UPSTREAM_UNREACHABLE = "UpstreamUnreachable"
    UPSTREAM_TIMEOUT = "UpstreamTimeout"
    UPSTREAM_PROTOCOL_ERROR = "UpstreamProtocolError"


class ProxyError(Exception):
    """Base class for all classified proxy failures."""

    kind: ProxyErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class MissingTargetError(ProxyError):
    kind = ProxyErrorKind.MISSING_TARGET


class InvalidSchemeError(ProxyError):
    kind = ProxyErrorKind.INVALID_SCHEME


class MalformedURLError(ProxyError):
    kind = ProxyErrorKind.MALFORMED_URL


class UpstreamUnreachableError(ProxyError):
    kind = ProxyErrorKind.UPSTREAM_UNREACHABLE


class UpstreamTimeoutError(ProxyError):
    kind = ProxyErrorKind.UPSTREAM_TIMEOUT


class UpstreamProtocolError(ProxyError):
    kind = ProxyErrorKind.UPSTREAM_PROTOCOL_ERROR
