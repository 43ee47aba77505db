"""Audience visibility module.

Decides who may see and who may join events, schedules and bulletins.

Routes are in campus_feed.audience.router; the rules themselves are plain
functions over frozen dataclasses.
"""

from .engine import (
    can_participate,
    describe_audience,
    describe_schedule,
    filter_visible,
    is_visible,
)
from .models import (
    AudienceDescriptor,
    AudienceDirectory,
    AudienceKind,
    ScheduleScope,
    ViewerContext,
)


__all__ = [
    "AudienceDescriptor",
    "AudienceDirectory",
    "AudienceKind",
    "ScheduleScope",
    "ViewerContext",
    "can_participate",
    "describe_audience",
    "describe_schedule",
    "filter_visible",
    "is_visible",
]
