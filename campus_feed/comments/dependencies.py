"""FastAPI dependencies for comment threads."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CommentError, CommentThreadService


# Error code -> HTTP status; anything unlisted is a server error
ERROR_STATUS: dict[str, int] = {
    "comment_source_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "invalid_preview_limit": status.HTTP_400_BAD_REQUEST,
}


async def get_comment_service(request: Request) -> CommentThreadService:
    """Comment thread service created by the application lifespan."""
    service: CommentThreadService | None = getattr(
        request.app.state, "comment_service", None
    )
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comment service not available",
        )
    return service


CommentServiceDep = Annotated[CommentThreadService, Depends(get_comment_service)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert a comment error into the HTTPException a route should raise."""
    return HTTPException(
        status_code=ERROR_STATUS.get(
            error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        detail=error.message,
    )
