"""Pydantic schemas for audience checks.

Request bodies accept the loosely shaped values the backend stores (null
lists, blank codes) and convert them to the immutable domain records.
"""

from pydantic import BaseModel, Field

from .models import AudienceDescriptor, AudienceDirectory, ViewerContext


class AudienceDescriptorSchema(BaseModel):
    """Audience rule as sent by clients."""

    kind: str | None = Field(
        None, description="public, organization, department, course or mixed"
    )
    org_codes: list[str] | None = None
    dept_codes: list[str] | None = None
    course_codes: list[str] | None = None

    def to_descriptor(self) -> AudienceDescriptor:
        return AudienceDescriptor.create(
            kind=self.kind,
            org_codes=self.org_codes,
            dept_codes=self.dept_codes,
            course_codes=self.course_codes,
        )


class ViewerContextSchema(BaseModel):
    """Viewer affiliations as sent by clients."""

    is_admin: bool = False
    org_memberships: list[str] | None = None
    department_code: str | None = None
    course_code: str | None = None

    def to_viewer(self) -> ViewerContext:
        return ViewerContext.create(
            is_admin=self.is_admin,
            org_memberships=self.org_memberships,
            department_code=self.department_code,
            course_code=self.course_code,
        )


class AudienceDirectorySchema(BaseModel):
    """Display names by code, used to label the checked audience."""

    organizations: dict[str, str] = Field(default_factory=dict)
    departments: dict[str, str] = Field(default_factory=dict)
    courses: dict[str, str] = Field(default_factory=dict)

    def to_directory(self) -> AudienceDirectory:
        return AudienceDirectory(
            organizations=dict(self.organizations),
            departments=dict(self.departments),
            courses=dict(self.courses),
        )


class AudienceCheckRequest(BaseModel):
    """Request to check one item's audience against a viewer."""

    descriptor: AudienceDescriptorSchema
    participant: AudienceDescriptorSchema | None = Field(
        None, description="Participant rule, for events that can be joined"
    )
    viewer: ViewerContextSchema
    directory: AudienceDirectorySchema | None = Field(
        None, description="Names for the descriptor's codes in the label"
    )


class AudienceCheckResponse(BaseModel):
    """Result of an audience check."""

    visible: bool
    can_participate: bool | None = None
    label: str


class AudienceItem(BaseModel):
    """Content item reference with its audience rule."""

    id: str = Field(..., min_length=1)
    audience: AudienceDescriptorSchema


class AudienceFilterRequest(BaseModel):
    """Request to filter many items for one viewer."""

    viewer: ViewerContextSchema
    items: list[AudienceItem] = Field(default_factory=list, max_length=5000)


class AudienceFilterResponse(BaseModel):
    """IDs of the items the viewer may see, in request order."""

    visible_ids: list[str]
    total: int
    visible: int
