"""CAS - FastAPI Application

This module creates and configures the FastAPI application for the plugin
registry and plugin access-control service.
"""

import traceback
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.communications import router as communications_router
from .api.health import router as health_router
from .api.permissions import router as permissions_router
from .api.plugins import router as plugins_router
from .core.cache_backend import create_cache_backend
from .core.config import Settings, get_settings_instance
from .core.database import Database
from .core.exceptions import CASException
from .core.logging import get_logger, setup_logging
from .core.middleware import RequestIDMiddleware, TimingMiddleware
from .plugins.loader import PluginManifestLoader
from .services.plugin_catalog_service import PluginCatalogService
from .stores.sqlalchemy_store import (
    SQLAlchemyCommunicationStore,
    SQLAlchemyPermissionStore,
    SQLAlchemyPluginStore,
)

logger = get_logger(__name__)


def generate_error_id() -> str:
    """Generate a unique error ID for tracking."""
    return f"ERR-{uuid.uuid4().hex[:8].upper()}"


def get_request_context(request: Request) -> dict[str, Any]:
    """Extract relevant context from request for error logging."""
    return {
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "request_id": getattr(request.state, "request_id", None),
        "user_id": getattr(request.state, "user_id", None),
    }


async def seed_plugin_catalog(database: Database, settings: Settings) -> dict[str, int]:
    """Register shipped plugin manifests with their permissions and APIs."""
    manifests = PluginManifestLoader(settings.plugins_root).discover()
    async with database.get_session() as session:
        catalog = PluginCatalogService(
            SQLAlchemyPluginStore(session, settings.store_timeout_seconds),
            SQLAlchemyPermissionStore(session, settings.store_timeout_seconds),
            SQLAlchemyCommunicationStore(session, settings.store_timeout_seconds),
        )
        result = await catalog.seed(manifests)
    return result.as_dict()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    An unreachable database or a configured but unreachable Redis aborts
    startup; the service never runs on transient in-memory state.
    """
    setup_logging()
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name} v{settings.version} ({settings.environment})")

    database = Database(settings)
    try:
        await database.connect()
        app.state.database = database
        app.state.cache = await create_cache_backend(settings)
        if settings.plugins_auto_seed:
            seeded = await seed_plugin_catalog(database, settings)
            logger.info("Plugin catalog ready", extra=seeded)
    except Exception:
        logger.critical("Startup failed; shutting down")
        await database.dispose()
        raise

    try:
        yield
    finally:
        cache = getattr(app.state, "cache", None)
        close = getattr(cache, "close", None)
        if close is not None:
            await close()
        await database.dispose()
        logger.info(f"{settings.app_name} shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings_instance()
    app = FastAPI(
        title=settings.app_name,
        description="CAS plugin registry and access control API",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = None

    # Add middleware
    setup_middleware(app, settings)

    # Add exception handlers
    setup_exception_handlers(app, settings)

    # Add routes
    setup_routes(app, settings)

    logger.info("CAS FastAPI application created successfully")
    return app


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register request id, timing and CORS middleware."""
    # Request ID middleware (custom)
    app.add_middleware(RequestIDMiddleware)

    # Timing middleware (custom)
    app.add_middleware(TimingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def setup_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register handlers rendering every failure as ``{"error": {...}}``.

    Store unavailability keeps its 503 status so that clients can tell an
    infrastructure failure from an authorization denial.
    """

    @app.exception_handler(CASException)
    async def cas_exception_handler(request: Request, exc: CASException):
        """Handle custom CAS exceptions with enhanced logging."""
        # Generate error ID for tracking (for 5xx errors)
        error_id = generate_error_id() if exc.status_code >= 500 else None

        if exc.status_code >= 500:
            logger.error(
                "CAS server error",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "details": exc.details,
                    "request_context": get_request_context(request),
                },
            )
        else:
            logger.warning(
                "CAS client error",
                extra={
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "details": exc.details,
                    "request_context": get_request_context(request),
                },
            )

        error_response = {
            "error": {
                "code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            }
        }
        if error_id:
            error_response["error"]["error_id"] = error_id

        return JSONResponse(
            status_code=exc.status_code, content=error_response, headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions raised by dependencies and routes."""
        logger.warning(
            "HTTP client error",
            extra={
                "status_code": exc.status_code,
                "detail": exc.detail,
                "request_context": get_request_context(request),
            },
        )
        error_response = {
            "error": {
                "code": f"HTTP_{exc.status_code}",
                "message": exc.detail,
                "details": {},
            }
        }
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response,
            headers=getattr(exc, "headers", None) or None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Reject malformed request bodies before any service runs."""
        logger.warning(
            "Request validation failed",
            extra={"errors": exc.errors(), "request_context": get_request_context(request)},
        )
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": "REQUEST_VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": {"errors": jsonable_errors(exc)},
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions with an error id for tracking."""
        error_id = generate_error_id()
        include_traceback = settings.debug or settings.environment == "development"

        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            extra={"error_id": error_id, "request_context": get_request_context(request)},
            exc_info=exc,
        )

        error_response = {
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error",
                "error_id": error_id,
                "details": {},
            }
        }
        if include_traceback:
            error_response["error"]["details"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exception(exc),
            }

        return JSONResponse(status_code=500, content=error_response)


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Validation errors without the raw input or exception objects."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


def setup_routes(app: FastAPI, settings: Settings) -> None:
    """Configure application routes."""
    app.include_router(health_router, prefix=settings.api_v1_prefix)
    app.include_router(plugins_router, prefix=settings.api_v1_prefix)
    app.include_router(permissions_router, prefix=settings.api_v1_prefix)
    app.include_router(communications_router, prefix=settings.api_v1_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.version,
            "docs_url": "/docs" if settings.debug else None,
        }


app = create_app()
