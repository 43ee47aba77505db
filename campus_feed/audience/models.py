"""Audience descriptors and viewer contexts.

Events, schedules and bulletins carry an audience rule that decides who may
see them (and, for events, who may join). Backend rows are loosely shaped:
code lists may be missing or null, kinds are free-form strings. Everything is
normalized here, at the boundary, into immutable records:

- AudienceDescriptor: kind plus org/department/course code sets
- ViewerContext: admin flag plus the viewer's memberships
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog


logger = structlog.get_logger(__name__)


class AudienceKind(str, Enum):
    """Audience rule kinds stored in ``visibility_type``/``participant_type``."""

    PUBLIC = "public"
    ORGANIZATION = "organization"
    DEPARTMENT = "department"
    COURSE = "course"
    MIXED = "mixed"


class ScheduleScope(str, Enum):
    """Audience kinds used by calendar schedules (``schedule_type``)."""

    ALL = "all"
    ORGANIZATION = "organization"
    DEPARTMENT = "department"
    COURSE = "course"


def normalize_codes(codes: Iterable[Any] | None) -> frozenset[str]:
    """Turn a nullable code list into a set of non-blank strings."""
    if not codes:
        return frozenset()
    if isinstance(codes, str):
        codes = [codes]
    return frozenset(str(code).strip() for code in codes if code and str(code).strip())


def normalize_code(code: Any) -> str | None:
    """Blank or missing codes become None."""
    if code is None:
        return None
    value = str(code).strip()
    return value or None


def parse_kind(value: AudienceKind | str | None) -> AudienceKind:
    """Parse a stored kind string.

    Only an explicit "public" opens content to everyone. Missing and unknown
    kinds are treated as MIXED so they stay restricted.
    """
    if isinstance(value, AudienceKind):
        return value
    if value is None or not str(value).strip():
        return AudienceKind.MIXED
    try:
        return AudienceKind(str(value).strip().lower())
    except ValueError:
        logger.warning("audience_kind_unknown", kind=value)
        return AudienceKind.MIXED


def parse_scope(value: ScheduleScope | str | None) -> ScheduleScope | None:
    """Parse a stored ``schedule_type``; unknown values give None."""
    if isinstance(value, ScheduleScope):
        return value
    try:
        return ScheduleScope(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class AudienceDescriptor:
    """Who may see (or participate in) a piece of content."""

    kind: AudienceKind
    org_codes: frozenset[str] = field(default_factory=frozenset)
    dept_codes: frozenset[str] = field(default_factory=frozenset)
    course_codes: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def create(
        cls,
        kind: AudienceKind | str | None = None,
        org_codes: Iterable[Any] | None = None,
        dept_codes: Iterable[Any] | None = None,
        course_codes: Iterable[Any] | None = None,
    ) -> "AudienceDescriptor":
        """Build a descriptor from raw, possibly null, values."""
        return cls(
            kind=parse_kind(kind),
            org_codes=normalize_codes(org_codes),
            dept_codes=normalize_codes(dept_codes),
            course_codes=normalize_codes(course_codes),
        )

    @classmethod
    def public(cls) -> "AudienceDescriptor":
        return cls(kind=AudienceKind.PUBLIC)

    @classmethod
    def from_record(
        cls, record: Mapping[str, Any], prefix: str = "visibility"
    ) -> "AudienceDescriptor":
        """Read a descriptor from a backend row.

        Event rows carry two rules side by side, ``visibility_*`` and
        ``participant_*``; ``prefix`` selects which one.

        Args:
            record: Row as returned by the backend client.
            prefix: Column prefix, ``"visibility"`` or ``"participant"``.
        """
        return cls.create(
            kind=record.get(f"{prefix}_type"),
            org_codes=record.get(f"{prefix}_orgs"),
            dept_codes=record.get(f"{prefix}_depts"),
            course_codes=record.get(f"{prefix}_courses"),
        )

    @classmethod
    def from_schedule(
        cls,
        schedule_type: ScheduleScope | str,
        target_codes: Iterable[Any] | None,
    ) -> "AudienceDescriptor":
        """Convert a schedule's single-scope rule into a descriptor.

        Only the dimension named by ``schedule_type`` receives the target
        codes, so the union check stays scoped to that dimension.
        """
        scope = parse_scope(schedule_type)
        if scope is None:
            logger.warning("schedule_scope_unknown", schedule_type=schedule_type)
            return cls(kind=AudienceKind.MIXED)

        codes = normalize_codes(target_codes)
        if scope is ScheduleScope.ALL:
            return cls.public()
        if scope is ScheduleScope.ORGANIZATION:
            return cls(kind=AudienceKind.ORGANIZATION, org_codes=codes)
        if scope is ScheduleScope.DEPARTMENT:
            return cls(kind=AudienceKind.DEPARTMENT, dept_codes=codes)
        return cls(kind=AudienceKind.COURSE, course_codes=codes)

    @property
    def is_public(self) -> bool:
        return self.kind is AudienceKind.PUBLIC

    @property
    def has_constraints(self) -> bool:
        """True if any code set is non-empty."""
        return bool(self.org_codes or self.dept_codes or self.course_codes)


@dataclass(frozen=True)
class ViewerContext:
    """The requesting user's affiliations."""

    is_admin: bool = False
    org_memberships: frozenset[str] = field(default_factory=frozenset)
    department_code: str | None = None
    course_code: str | None = None

    @classmethod
    def create(
        cls,
        is_admin: bool = False,
        org_memberships: Iterable[Any] | None = None,
        department_code: Any = None,
        course_code: Any = None,
    ) -> "ViewerContext":
        return cls(
            is_admin=bool(is_admin),
            org_memberships=normalize_codes(org_memberships),
            department_code=normalize_code(department_code),
            course_code=normalize_code(course_code),
        )

    @classmethod
    def from_profile(
        cls,
        profile: Mapping[str, Any] | None,
        memberships: Iterable[Mapping[str, Any]] | None = None,
    ) -> "ViewerContext":
        """Build a viewer from a profile row and ``user_organizations`` rows.

        A missing profile yields an anonymous viewer with no memberships.
        """
        profile = profile or {}
        return cls.create(
            is_admin=profile.get("role") == "admin",
            org_memberships=[m.get("organization_id") for m in memberships or []],
            department_code=profile.get("department_code"),
            course_code=profile.get("course_code"),
        )

    @classmethod
    def anonymous(cls) -> "ViewerContext":
        return cls()


@dataclass(frozen=True)
class AudienceDirectory:
    """Code to display-name lookups used to label audiences."""

    organizations: Mapping[str, str] = field(default_factory=dict)
    departments: Mapping[str, str] = field(default_factory=dict)
    courses: Mapping[str, str] = field(default_factory=dict)
