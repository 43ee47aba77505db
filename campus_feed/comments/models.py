"""Comment records and backend row normalization.

Comments are stored flat, one row per comment, with ``parent_comment_id``
pointing at the comment being replied to (Adjacency List pattern). Rows are
converted here into :class:`Comment` records with a resolved display name;
thread assembly lives in :mod:`campus_feed.comments.tree`.

Display names depend on who the comment was posted as:
- the administration account -> configured administration name
- an organization -> the organization's name
- a user -> the author's profile name
Deleted comments show no author.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from campus_feed.config import Settings, get_settings


UNKNOWN_USER_NAME = "Unknown User"
ORGANIZATION_FALLBACK_NAME = "Organization"


class ContentType(str, Enum):
    """Kinds of content that carry comment threads."""

    POST = "post"
    ANNOUNCEMENT = "announcement"
    BULLETIN = "bulletin"
    FREE_WALL_POST = "free_wall_post"
    REPOST = "repost"
    EVENT = "event"


class PostedAsType(str, Enum):
    """Identity a comment was posted under."""

    USER = "user"
    ORGANIZATION = "organization"
    FAITH_ADMIN = "faith_admin"


def ensure_aware(value: datetime | str) -> datetime:
    """Parse a backend timestamp; naive values are taken as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(eq=False)
class Comment:
    """Comment entity.

    ``replies``, ``replying_to_name`` and ``most_recent_activity`` are derived
    by thread assembly and are empty on records built from rows. Equality is
    identity: reply lists may reference each other while a thread is built.
    """

    id: str
    created_at: datetime
    parent_id: str | None = None
    author_id: str | None = None
    author_name: str = UNKNOWN_USER_NAME
    content: str | None = None
    is_deleted: bool = False
    payload: dict[str, Any] = field(default_factory=dict)
    replies: list["Comment"] = field(default_factory=list)
    replying_to_name: str | None = None
    most_recent_activity: datetime | None = None

    def __post_init__(self) -> None:
        self.id = str(self.id)
        self.parent_id = str(self.parent_id) if self.parent_id else None
        self.created_at = ensure_aware(self.created_at)

    @property
    def activity(self) -> datetime:
        """Most recent activity, or own timestamp before assembly."""
        return self.most_recent_activity or self.created_at

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        authors: Mapping[str, Mapping[str, Any]] | None = None,
        organizations: Mapping[str, Mapping[str, Any]] | None = None,
        settings: Settings | None = None,
    ) -> "Comment":
        """Create Comment from a backend ``comments`` row.

        Args:
            row: Comment row
            authors: Profile rows by id (``first_name``, ``last_name``, ``avatar_url``)
            organizations: Organization rows by id (``name``, ``avatar_url``)
            settings: Settings providing the administration name and the
                deleted-comment placeholder
        """
        settings = settings or get_settings()
        is_deleted = is_deleted_row(row, settings.deleted_comment_placeholder)
        name, avatar = resolve_author(
            row,
            authors or {},
            organizations or {},
            admin_display_name=settings.admin_display_name,
            is_deleted=is_deleted,
        )

        return cls(
            id=row["id"],
            created_at=row["created_at"],
            parent_id=row.get("parent_comment_id"),
            author_id=str(row["author_id"]) if row.get("author_id") else None,
            author_name=name,
            content=row.get("content"),
            is_deleted=is_deleted,
            payload={
                "author_avatar": avatar,
                "image_url": row.get("image_url"),
                "likes": row.get("likes") or 0,
                "reaction_count": row.get("reaction_count") or 0,
                "posted_as_type": row.get("posted_as_type") or PostedAsType.USER.value,
                "posted_as_org_id": row.get("posted_as_org_id"),
            },
        )


def is_deleted_row(row: Mapping[str, Any], placeholder: str) -> bool:
    """Soft-deleted rows carry a flag, older ones only the placeholder text."""
    return bool(row.get("is_deleted")) or row.get("content") == placeholder


def resolve_author(
    row: Mapping[str, Any],
    authors: Mapping[str, Mapping[str, Any]],
    organizations: Mapping[str, Mapping[str, Any]],
    admin_display_name: str,
    is_deleted: bool = False,
) -> tuple[str, str | None]:
    """Resolve a comment's display name and avatar.

    Returns:
        Tuple of (display name, avatar URL or None)
    """
    if is_deleted:
        return UNKNOWN_USER_NAME, None

    posted_as = row.get("posted_as_type")
    if posted_as == PostedAsType.FAITH_ADMIN.value:
        return admin_display_name, None

    org_id = row.get("posted_as_org_id")
    if posted_as == PostedAsType.ORGANIZATION.value and org_id:
        org = organizations.get(str(org_id))
        if not org:
            return ORGANIZATION_FALLBACK_NAME, None
        return org.get("name") or ORGANIZATION_FALLBACK_NAME, org.get("avatar_url")

    profile = authors.get(str(row.get("author_id")))
    if not profile:
        return UNKNOWN_USER_NAME, None
    name = f"{profile.get('first_name') or 'Unknown'} {profile.get('last_name') or 'User'}"
    return name, profile.get("avatar_url")


def collect_author_ids(rows: Iterable[Mapping[str, Any]]) -> set[str]:
    """Author ids to batch-fetch from ``profiles`` in a single query."""
    return {str(row["author_id"]) for row in rows if row.get("author_id")}


def collect_org_ids(rows: Iterable[Mapping[str, Any]]) -> set[str]:
    """Organization ids to batch-fetch for comments posted as an organization."""
    return {
        str(row["posted_as_org_id"])
        for row in rows
        if row.get("posted_as_type") == PostedAsType.ORGANIZATION.value
        and row.get("posted_as_org_id")
    }


def comments_from_rows(
    rows: Iterable[Mapping[str, Any]],
    authors: Mapping[str, Mapping[str, Any]] | None = None,
    organizations: Mapping[str, Mapping[str, Any]] | None = None,
    settings: Settings | None = None,
) -> list[Comment]:
    """Convert a batch of rows, sharing the author/organization lookups."""
    settings = settings or get_settings()
    return [
        Comment.from_row(row, authors, organizations, settings=settings)
        for row in rows
    ]
