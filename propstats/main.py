# propstats/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import logging
import time

from propstats.core import config
from propstats.core.db import close_engine, init_engine
from propstats.core.errors import DataAccessFailure
from propstats.services.analytics import PlayerAnalyticsEngine
from propstats.services.cache import TTLCache
from propstats.services.fallback import FallbackService
from propstats.services.game_logs import GameLogSource, SqlGameLogSource

# ------------ Router imports ------------
from propstats.routers import analytics_routes, system_routes

# ------------ Logging ------------
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("propstats")


# ------------ Access log middleware ------------
class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        t0 = time.perf_counter()
        try:
            response = await call_next(request)
            status = response.status_code
        except Exception:
            status = 500
            raise
        finally:
            dt = (time.perf_counter() - t0) * 1000
            logger.info(
                "ACCESS %s %s q=%s -> %s in %.1fms",
                request.method,
                request.url.path,
                request.url.query,
                status,
                dt,
            )
        return response


def create_app(source: GameLogSource | None = None) -> FastAPI:
    """
    Build the API. Without a `source`, the lifespan connects to DATABASE_URL
    and reads through SqlGameLogSource.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting player analytics API...")
        data_source = source
        if data_source is None:
            data_source = SqlGameLogSource(await init_engine())

        cache = TTLCache()
        fallback = FallbackService(cache, probe=data_source.ping)
        app.state.cache = cache
        app.state.fallback = fallback
        app.state.source = data_source
        app.state.engine = PlayerAnalyticsEngine(data_source, cache, fallback)
        cache.start_sweeper(config.CACHE_SWEEP_INTERVAL)
        logger.info("Analytics engine ready.")
        try:
            yield
        finally:
            await cache.stop_sweeper()
            await close_engine()
            logger.info("Shutting down player analytics API.")

    app = FastAPI(
        title="Player Prop Analytics API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(AccessLogMiddleware)

    # ------------ CORS (open; can tighten later) ------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------ Error handlers ------------
    @app.exception_handler(DataAccessFailure)
    async def _data_unavailable(request: Request, exc: DataAccessFailure):
        logger.error("DATA UNAVAILABLE: %s %s (%s)", request.method, request.url, exc)
        return JSONResponse(status_code=503, content={"error": "data_unavailable"})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("UNHANDLED ERROR: %s %s", request.method, request.url)
        return JSONResponse(status_code=500, content={"error": "internal_error"})

    # ------------ Health & status ------------
    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/status")
    async def status(request: Request):
        return {
            "ok": True,
            "has_database_url": bool(config.DATABASE_URL),
            "fallback": request.app.state.fallback.state().to_dict(),
            "cache": request.app.state.cache.stats().to_dict(),
        }

    # ------------ Mount routers ------------
    app.include_router(analytics_routes.router, prefix="/api")
    app.include_router(system_routes.router, prefix="/api")

    return app


app = create_app()
