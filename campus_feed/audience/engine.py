"""Audience visibility rules for campus content.

One predicate decides both who may see an item (its visibility descriptor)
and who may join it (its participant descriptor):

1. Admins match everything.
2. Public descriptors match every viewer.
3. Otherwise the viewer matches if ANY non-empty code set contains one of
   the viewer's codes (organization memberships, department, course).

Step 3 checks every code set regardless of ``kind``. A descriptor marked
``organization`` that also lists departments admits members of those
departments. Calendar, event and bulletin views all rely on this union.
Empty code sets never act as wildcards.
"""

from collections.abc import Callable, Iterable
from typing import TypeVar

import structlog

from .models import (
    AudienceDescriptor,
    AudienceDirectory,
    AudienceKind,
    ScheduleScope,
    ViewerContext,
    parse_scope,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


# Fallback labels when none of a descriptor's codes resolve to a name
KIND_FALLBACK_LABELS: dict[AudienceKind, str] = {
    AudienceKind.ORGANIZATION: "Organizations",
    AudienceKind.DEPARTMENT: "Departments",
    AudienceKind.COURSE: "Courses",
}
PUBLIC_LABEL = "Public Event"
RESTRICTED_LABEL = "Restricted Event"
ALL_STUDENTS_LABEL = "All Students"


def is_visible(descriptor: AudienceDescriptor, viewer: ViewerContext) -> bool:
    """Check whether a viewer may see content with the given audience.

    Args:
        descriptor: The content's audience descriptor
        viewer: The requesting viewer

    Returns:
        True if the viewer matches the audience

    Examples:
        >>> is_visible(AudienceDescriptor.public(), ViewerContext.anonymous())
        True
        >>> org_only = AudienceDescriptor.create("organization", org_codes=["A"])
        >>> is_visible(org_only, ViewerContext.create(org_memberships=["B"]))
        False
    """
    if viewer.is_admin:
        return True

    if descriptor.kind is AudienceKind.PUBLIC:
        return True

    if descriptor.org_codes and not descriptor.org_codes.isdisjoint(
        viewer.org_memberships
    ):
        return True

    if descriptor.dept_codes and viewer.department_code in descriptor.dept_codes:
        return True

    return bool(descriptor.course_codes) and viewer.course_code in descriptor.course_codes


def can_participate(descriptor: AudienceDescriptor, viewer: ViewerContext) -> bool:
    """Check whether a viewer may join an event.

    Same rule as :func:`is_visible`, applied to the event's participant
    descriptor (``participant_*`` columns).
    """
    return is_visible(descriptor, viewer)


def filter_visible(
    items: Iterable[T],
    viewer: ViewerContext,
    key: Callable[[T], AudienceDescriptor],
) -> list[T]:
    """Keep the items whose audience matches the viewer, preserving order.

    Args:
        items: Content items (events, schedules, bulletins, ...)
        viewer: The requesting viewer
        key: Extracts the audience descriptor from an item

    Returns:
        Visible items in their original order
    """
    items = list(items)
    visible = [item for item in items if is_visible(key(item), viewer)]
    logger.debug(
        "audience_filtered",
        total=len(items),
        visible=len(visible),
        is_admin=viewer.is_admin,
    )
    return visible


def describe_audience(
    descriptor: AudienceDescriptor,
    directory: AudienceDirectory | None = None,
) -> str:
    """Human-readable label for an audience, e.g. ``"CCIT, Chess Club"``.

    Codes are resolved through the directory; unknown codes are skipped.
    Organization names come first, then departments, then courses, each
    group in code order.
    """
    if descriptor.is_public:
        return PUBLIC_LABEL

    directory = directory or AudienceDirectory()
    names = [
        lookup[code]
        for codes, lookup in (
            (descriptor.org_codes, directory.organizations),
            (descriptor.dept_codes, directory.departments),
            (descriptor.course_codes, directory.courses),
        )
        for code in sorted(codes)
        if lookup.get(code)
    ]
    if names:
        return ", ".join(names)
    return KIND_FALLBACK_LABELS.get(descriptor.kind, RESTRICTED_LABEL)


def describe_schedule(
    schedule_type: ScheduleScope | str,
    target_codes: Iterable[str] | None,
    directory: AudienceDirectory | None = None,
) -> str:
    """Label for a calendar schedule's target audience.

    Schedules open to everyone read "All Students"; scoped schedules are
    labelled like any other audience. Unknown scopes stay restricted.
    """
    if parse_scope(schedule_type) is ScheduleScope.ALL:
        return ALL_STUDENTS_LABEL
    return describe_audience(
        AudienceDescriptor.from_schedule(schedule_type, target_codes), directory
    )
