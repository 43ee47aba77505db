"""Health check endpoints."""

from fastapi import APIRouter, Request, Response, status

from campus_feed.config import Settings, get_settings


router = APIRouter(prefix="/health", tags=["health"])


def app_settings(request: Request) -> Settings:
    """Settings the app was created with, or the process defaults."""
    return getattr(request.app.state, "settings", None) or get_settings()


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check: the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, str | bool | int]:
    """Readiness check: the comment thread service has been initialized."""
    settings = app_settings(request)
    service = getattr(request.app.state, "comment_service", None)

    if service is None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "starting", "environment": settings.environment}

    return {
        "status": "ready",
        "environment": settings.environment,
        "cached_threads": len(service.cache),
    }


@router.get("")
async def health(request: Request) -> dict[str, str]:
    """General health check endpoint."""
    settings = app_settings(request)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
