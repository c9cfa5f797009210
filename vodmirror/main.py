"""
VodMirror: Main FastAPI Application

Catalog mirror and playback resolver for a remote VOD provider.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from vodmirror.core.config import get_settings
from vodmirror.core.database import init_db
from vodmirror.core.errors import CatalogError, ValidationError
from vodmirror.services.cache.url_cache import UrlCache
from vodmirror.services.remote.vod_client import RemoteCatalogClient

settings = get_settings()

# ── Logging ──────────────────────────────────────────────────────────────

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level.upper())
    ),
)
logging.basicConfig(level=settings.log_level.upper())

logger = structlog.get_logger()


# ── Lifespan ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    logger.info("Starting VodMirror", version=settings.app_version)

    await init_db()

    app.state.remote_client = RemoteCatalogClient.from_settings(settings)
    app.state.url_cache = UrlCache(ttl_seconds=settings.url_cache_ttl_seconds)
    app.state.sync_lock = asyncio.Lock()

    if not app.state.remote_client.is_configured:
        logger.warning("VOD access key not configured; remote calls will fail with auth errors")

    logger.info(
        "VodMirror ready",
        vod_endpoint=settings.vod_endpoint,
        url_cache_ttl=settings.url_cache_ttl_seconds,
    )

    yield

    logger.info("Shutting down VodMirror")


# ── App ──────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Mirror of a remote VOD asset catalog with signed playback URL resolution",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        logger.warning("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed path, query or body input renders as a catalog ValidationError."""
    error = ValidationError(
        "request validation failed",
        {"errors": jsonable_encoder(exc.errors())},
    )
    return await catalog_error_handler(request, error)


# ── Routes ───────────────────────────────────────────────────────────────

from vodmirror.api.routes import stats, sync, videos, vod

app.include_router(sync.router, prefix=settings.api_prefix)
app.include_router(videos.router, prefix=settings.api_prefix)
app.include_router(vod.router, prefix=settings.api_prefix)
app.include_router(stats.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "description": "VOD catalog mirror",
        "version": settings.app_version,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
