"""Audience check API endpoints.

Provides routes for:
- Checking one item's visibility (and participation) for a viewer
- Filtering a batch of items down to what a viewer may see
"""

import structlog
from fastapi import APIRouter

from .engine import can_participate, describe_audience, filter_visible, is_visible
from .models import AudienceDescriptor
from .schemas import (
    AudienceCheckRequest,
    AudienceCheckResponse,
    AudienceFilterRequest,
    AudienceFilterResponse,
    AudienceItem,
)


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/v1/audience", tags=["audience"])


@router.post(
    "/check",
    response_model=AudienceCheckResponse,
    summary="Check audience",
)
async def check_audience(data: AudienceCheckRequest) -> AudienceCheckResponse:
    """Check whether the viewer may see (and join) a single item."""
    viewer = data.viewer.to_viewer()
    descriptor = data.descriptor.to_descriptor()

    participate = None
    if data.participant is not None:
        participate = can_participate(data.participant.to_descriptor(), viewer)

    directory = None
    if data.directory is not None:
        directory = data.directory.to_directory()

    return AudienceCheckResponse(
        visible=is_visible(descriptor, viewer),
        can_participate=participate,
        label=describe_audience(descriptor, directory),
    )


@router.post(
    "/filter",
    response_model=AudienceFilterResponse,
    summary="Filter items by audience",
)
async def filter_audience(data: AudienceFilterRequest) -> AudienceFilterResponse:
    """Return the IDs of the items the viewer may see, in request order."""
    viewer = data.viewer.to_viewer()

    def descriptor_of(item: AudienceItem) -> AudienceDescriptor:
        return item.audience.to_descriptor()

    visible = filter_visible(data.items, viewer, key=descriptor_of)

    return AudienceFilterResponse(
        visible_ids=[item.id for item in visible],
        total=len(data.items),
        visible=len(visible),
    )
