"""
Proxy Package
=============

This package implements the forwarding pipeline behind the single proxy
endpoint.

Main Components:
----------------
- resolver.py: Target URL resolution (x-target-url header, url query param)
- headers.py: Hop-by-hop header filtering, CORS/cache header decoration
- client.py: Outbound HTTP capability (httpx, outbound host allow-list)
- forwarder.py: Upstream call with failure classification
- pipeline.py: Orchestration and error replies
- routes.py: FastAPI router with the proxy endpoint (* /)

Usage:
------
    from cors_proxy.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .errors import ProxyError, ProxyErrorKind
from .pipeline import ProxyPipeline
from .routes import proxy_router

__all__ = ["ProxyError", "ProxyErrorKind", "ProxyPipeline", "proxy_router"]
