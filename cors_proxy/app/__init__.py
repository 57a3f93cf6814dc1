"""
CORS Proxy Application Package

FastAPI service that forwards browser requests to caller-chosen HTTP targets
and returns the replies with hop-by-hop headers removed and permissive CORS
and cache-suppression headers added.

Modules:
- config: Settings loaded from the environment (pydantic-settings)
- models: Request-scoped values passed through the pipeline
- main: Application factory, lifespan and exception handlers
- proxy: The forwarding pipeline and its HTTP route
"""
