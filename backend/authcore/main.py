"""
AuthCore FastAPI Application - Dynamic Endpoint Authorization
Main application wiring: database, endpoint matcher, middleware and routers
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import __version__
from .config import Settings, get_settings
from .database import check_database_health, create_session_factory, create_tables, get_engine
from .middleware import AuthorizationMiddleware, register_exception_handlers
from .routes import authorization, internal_authz
from .services.authorization import EndpointMatcher

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def create_app(
    session_factory: Optional[Callable[[], Session]] = None,
    settings: Optional[Settings] = None,
    matcher: Optional[EndpointMatcher] = None,
) -> FastAPI:
    """
    Build the AuthCore application.

    Args:
        session_factory: Session factory override (tests pass an in-memory one)
        settings: Settings override
        matcher: Endpoint matcher override

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    logging.getLogger("authcore").setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan management."""
        logger.info(f"Starting {settings.app_name} {settings.app_version}...")
        if session_factory is None:
            create_tables(get_engine())
        yield
        logger.info(f"Shutting down {settings.app_name}...")

    app = FastAPI(
        title=settings.app_name,
        description="Dynamic endpoint authorization and UI discovery for a multi-tenant identity service",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory or create_session_factory(get_engine())
    app.state.endpoint_matcher = matcher or EndpointMatcher(ttl_seconds=settings.endpoint_cache_ttl_seconds)

    register_exception_handlers(app)

    app.add_middleware(AuthorizationMiddleware, settings=settings)

    # CORS is added last so preflight requests are answered before authorization
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "If-None-Match", "X-Internal-Api-Key"],
        expose_headers=["ETag"],
    )

    app.include_router(authorization.me_router)
    app.include_router(authorization.meta_router)
    app.include_router(internal_authz.router)

    @app.get("/health")
    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint for container orchestration."""
        health_status = {
            "status": "healthy",
            "timestamp": time.time(),
            "version": __version__,
        }

        db_healthy = await run_in_threadpool(check_database_health, request.app.state.session_factory)
        health_status["database"] = "healthy" if db_healthy else "unhealthy"

        if not db_healthy:
            health_status["status"] = "degraded"
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=health_status)
        return JSONResponse(status_code=status.HTTP_200_OK, content=health_status)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "authcore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
        log_level=get_settings().log_level.lower(),
    )
