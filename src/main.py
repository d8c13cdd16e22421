"""VideoLearn Progress API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.catalog.router import router as catalog_router
from src.catalog.service import CatalogError, CatalogService
from src.config import get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.health import router as health_router
from src.progress.router import playlists_router
from src.progress.router import router as progress_router
from src.progress.service import ProgressService
from src.progress.stats import StatsService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Services are published on ``app.state``; when Cassandra is disabled or
    unreachable they stay unset and the dependencies answer 503.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    if settings.cassandra_enabled:
        try:
            session = await init_async_cassandra()
            logger.info("cassandra_initialized")

            keyspace = settings.cassandra_keyspace
            app.state.catalog_service = CatalogService(session=session, keyspace=keyspace)
            app.state.stats_service = StatsService(
                session=session,
                keyspace=keyspace,
                catalog=app.state.catalog_service,
            )
            app.state.progress_service = ProgressService(
                session=session,
                keyspace=keyspace,
                catalog=app.state.catalog_service,
                stats=app.state.stats_service,
                max_write_attempts=settings.progress_write_max_attempts,
            )
            logger.info("progress_services_initialized")
        except Exception as e:
            logger.warning(
                "database_init_skipped",
                error=str(e),
                message="Running without database connection",
            )
    else:
        logger.info("cassandra_disabled")

    yield

    # Shutdown
    logger.info("shutting_down_application")
    progress_service = getattr(app.state, "progress_service", None)
    if progress_service is not None:
        await progress_service.wait_for_pending_refreshes()
    if settings.cassandra_enabled:
        await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug=False keeps stack traces out of responses; handlers below log them
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Video learning progress tracking and statistics API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _error_body(request: Request, status_code: int, message: str) -> dict:
        return {
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
            else "Internal server error"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors (field-level details are safe to expose)."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        content = _error_body(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error"
        )
        content["details"] = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=content,
        )

    @app.exception_handler(CatalogError)
    async def catalog_exception_handler(
        request: Request, exc: CatalogError
    ) -> ORJSONResponse:
        """Catalog store failures surface as 503."""
        logger.warning(
            "catalog_unavailable",
            code=exc.code,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_error_body(
                request, status.HTTP_503_SERVICE_UNAVAILABLE, exc.message
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred. Please try again later.",
            ),
        )

    app.include_router(health_router)
    app.include_router(catalog_router)
    app.include_router(progress_router)
    app.include_router(playlists_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "VideoLearn Progress API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
