"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from productbazar import __version__
from productbazar.api import api_router, auth_router, views_router
from productbazar.config import get_settings
from productbazar.database import engine
from productbazar.exceptions import register_exception_handlers
from productbazar.middleware import (
    RateLimitMiddleware,
    RequestIdMiddleware,
    SecurityHeadersMiddleware,
)
from productbazar.realtime.pubsub import close_redis, init_redis
from productbazar.realtime.websocket import router as ws_router

logger = structlog.get_logger()


def configure_logging(debug: bool = False) -> None:
    """Event-style structlog output with request context merged in."""
    renderer = (
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("starting_application", env=settings.app_env, version=__version__)

    try:
        await init_redis()
        logger.info("redis_connected")
    except (aioredis.RedisError, OSError) as e:
        # Caching, rate limiting and realtime degrade gracefully without Redis
        await close_redis()
        logger.warning("redis_unavailable", error=str(e))

    yield

    logger.info("shutting_down_application")
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()
    configure_logging(settings.debug)

    app = FastAPI(
        title=settings.app_name,
        description="Product discovery, analytics and job board API",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # The last middleware added runs first
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_default_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
        trusted_proxies=settings.trusted_proxies,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(api_router, prefix="/api/v1")
    app.include_router(views_router, prefix="/api/views", tags=["views"])
    app.include_router(ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "productbazar.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
