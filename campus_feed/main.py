"""Campus Feed API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from campus_feed.audience.router import router as audience_router
from campus_feed.comments.router import router as comments_router
from campus_feed.comments.service import CommentThreadService
from campus_feed.config import Settings, get_settings
from campus_feed.core.context import get_request_id
from campus_feed.core.logging import configure_structlog, get_logger
from campus_feed.core.middleware import RequestContextMiddleware
from campus_feed.health import router as health_router


# Configure logging early (before creating logger)
configure_structlog(get_settings())

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the comment thread service for the app's lifetime."""
    settings: Settings = app.state.settings
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        cache_ttl_seconds=settings.comment_cache_ttl_seconds,
    )
    service = CommentThreadService(settings=settings)
    app.state.comment_service = service

    try:
        yield
    finally:
        logger.info("shutting_down_application", cached_threads=len(service.cache))
        service.cache.clear()
        app.state.comment_service = None


def error_response(
    request: Request,
    status_code: int,
    message: str,
    details: list[dict[str, str]] | None = None,
) -> ORJSONResponse:
    """JSON error body shared by every exception handler."""
    content: dict[str, Any] = {
        "error": True,
        "message": message,
        "status_code": status_code,
        "request_id": getattr(request.state, "request_id", None)
        or get_request_id()
        or None,
    }
    if details is not None:
        content["details"] = details
    return ORJSONResponse(status_code=status_code, content=content)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> ORJSONResponse:
    """Client errors keep their detail; server errors get a generic message."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=str(exc.detail),
        path=request.url.path,
    )
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        message = "Internal server error"
    else:
        message = str(exc.detail)
    return error_response(request, exc.status_code, message)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Report each invalid field as ``{field, message}``."""
    errors = exc.errors()
    logger.warning("validation_error", errors=len(errors), path=request.url.path)
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        }
        for err in errors
    ]
    return error_response(
        request,
        422,
        "Validation error",
        details=details,
    )


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> ORJSONResponse:
    """Log the failure in full; never expose internals to the client."""
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Audience visibility checks and comment thread assembly",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )
    # Added last so it wraps CORS and sees every request
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(audience_router)
    app.include_router(comments_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str | None]:
        return {
            "message": "Campus Feed API",
            "version": settings.app_version,
            "docs": app.docs_url,
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "campus_feed.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload,
        log_config=None,
    )


if __name__ == "__main__":
    run()
