"""Comment thread API endpoints.

Provides routes for:
- Assembling the full reply forest of a content item
- Building the truncated preview shown on feed cards

Callers send the flat comments they already fetched; nothing is read from
storage here.
"""

import structlog
from fastapi import APIRouter

from .dependencies import CommentServiceDep, handle_comment_error
from .schemas import (
    AnomalyResponse,
    CommentNodeResponse,
    PreviewRequest,
    PreviewResponse,
    ThreadListResponse,
    ThreadsRequest,
)
from .service import CommentError


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/v1/comments", tags=["comments"])


@router.post(
    "/threads",
    response_model=ThreadListResponse,
    summary="Assemble comment threads",
)
async def assemble_comment_threads(
    data: ThreadsRequest,
    comment_service: CommentServiceDep,
) -> ThreadListResponse:
    """Assemble flat comments into threads, newest activity first.

    Dangling parent references become top-level threads. Duplicate ids,
    parent cycles and replies nested too deep to return as-is are reported in
    ``anomalies`` instead of failing.
    """
    listing = comment_service.build(data.to_comments())

    anomalies = list(listing.anomalies)
    items = [
        CommentNodeResponse.from_comment(c, anomalies=anomalies)
        for c in listing.items
    ]

    if anomalies:
        logger.warning(
            "comment_threads_anomalies",
            count=len(anomalies),
            kinds=sorted({a.kind.value for a in anomalies}),
        )

    return ThreadListResponse(
        items=items,
        total=listing.total,
        anomalies=[AnomalyResponse.from_anomaly(a) for a in anomalies],
    )


@router.post(
    "/preview",
    response_model=PreviewResponse,
    summary="Preview comment threads",
)
async def preview_comment_threads(
    data: PreviewRequest,
    comment_service: CommentServiceDep,
) -> PreviewResponse:
    """Return the newest threads with their newest replies for a feed card."""
    try:
        listing = comment_service.build(data.to_comments())
        preview = comment_service.preview(
            listing,
            max_threads=data.max_threads,
            max_replies=data.max_replies,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return PreviewResponse(
        items=[CommentNodeResponse.from_comment(c) for c in preview.items],
        total=preview.total,
        has_more=preview.has_more,
    )
