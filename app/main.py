"""
Result Cache Service - Main FastAPI Application
Caches are owned by the application lifespan and exposed for admin use
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request

from app.cache import AsyncResultCache, CacheRegistry
from config.settings import Settings, settings

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "Result Cache"


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the application around its own cache registry."""
    logging.basicConfig(level=app_settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.caches = CacheRegistry(app_settings)
        try:
            yield
        finally:
            app.state.caches.dispose()

    app = FastAPI(
        title=APP_NAME,
        description="Async result cache with TTL, coalescing and stale-while-revalidate",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    def _get_cache(request: Request, name: str) -> AsyncResultCache:
        cache = request.app.state.caches.get(name)
        if cache is None:
            raise HTTPException(status_code=404, detail=f"Unknown cache: {name}")
        return cache

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/cache/stats")
    def cache_stats(request: Request):
        """Get statistics for every named cache."""
        return request.app.state.caches.get_stats()

    @app.post("/cache/{name}/invalidate")
    def invalidate_cache(
        name: str,
        request: Request,
        prefix: str = Query(..., min_length=1, description="Key prefix to invalidate"),
    ):
        """Invalidate entries whose keys start with the given prefix."""
        cache = _get_cache(request, name)
        count = cache.invalidate_by(lambda key: str(key).startswith(prefix))
        return {"cache": name, "invalidated": count}

    @app.delete("/cache/{name}")
    def clear_cache(name: str, request: Request):
        """Clear all entries of one cache."""
        cache = _get_cache(request, name)
        return {"cache": name, "cleared": cache.clear()}

    return app


app = create_app()
