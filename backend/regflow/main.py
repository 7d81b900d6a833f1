"""RegFlow Backend - Main FastAPI Application

Regulatory document staging service for device-registration projects.

This module creates and configures the FastAPI application, including:
- Staging area API router
- Middleware (request ID correlation, CORS)
- Exception handlers
- Health and observability endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings, parse_seed_projects
from .database import init_db, make_engine, make_session_factory
from .dependencies import build_staging_service
from .domain.staging.errors import StagingError
from .infrastructure.canonical.sql_canonical_store import SqlCanonicalStore
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router
from .staging.router import router as staging_router
from .staging.service import StagingService

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    staging_service: Optional[StagingService] = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Application settings (defaults to environment settings)
        engine: Canonical store engine (defaults to one built from DATABASE_URL)
        staging_service: Pre-built staging service (tests inject one driven
            by a virtual scheduler)
    """
    settings = settings or get_settings()
    engine = engine or make_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    session_factory = make_session_factory(engine)
    service = staging_service or build_staging_service(settings, session_factory=session_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler.

        - Startup: create canonical store tables, seed default categories
          and the configured projects
        - Shutdown: cancel in-flight staging lifecycle tasks
        """
        logger.info("RegFlow API starting up...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        init_db(engine)
        if isinstance(service.canonical_store, SqlCanonicalStore):
            service.canonical_store.seed_default_categories()
            for project_id, name in parse_seed_projects(settings.SEED_PROJECTS):
                service.canonical_store.register_project(project_id, name)

        yield

        await service.worker.shutdown()
        logger.info("RegFlow API shutting down...")

    is_production = settings.ENVIRONMENT == "production"
    app = FastAPI(
        title="RegFlow API",
        description="Staging ingestion pipeline for regulatory device-registration documents",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.staging_service = service

    # =========================================================================
    # MIDDLEWARE CONFIGURATION
    # =========================================================================

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # =========================================================================
    # EXCEPTION HANDLERS
    # =========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return a structured error response with field-level details."""
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(StagingError)
    async def staging_exception_handler(request: Request, exc: StagingError) -> JSONResponse:
        """Domain errors a route did not map explicitly."""
        logger.warning(f"Staging error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": type(exc).__name__, "message": str(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Log the full error but return a generic message."""
        logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "database_error",
                "message": "A database error occurred. Please try again later.",
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    # =========================================================================
    # ROUTER REGISTRATION
    # =========================================================================

    app.include_router(observability_router)
    app.include_router(staging_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {
            "name": "RegFlow API",
            "version": "0.1.0",
            "status": "running",
            "docs": None if is_production else "/docs",
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation error details with non-JSON context values stringified."""
    details = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        error.pop("input", None)
        details.append(error)
    return details


_settings = get_settings()
configure_logging(level=_settings.LOG_LEVEL, json_format=_settings.LOG_JSON)

app = create_app(_settings)
