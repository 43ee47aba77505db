"""Pydantic schemas for comment threads.

Request/Response models for:
- Flat comment input (backend or client field names)
- Nested thread output
- Preview listings for feed cards
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .models import UNKNOWN_USER_NAME, Comment
from .tree import AnomalyKind, ThreadAnomaly, descendants


# ==============================================================================
# Constants
# ==============================================================================
MAX_COMMENTS_PER_REQUEST = 5000
MAX_PREVIEW_LIMIT = 50
# Reply nesting kept in responses; deeper replies are flattened
MAX_REPLY_DEPTH = 64

# ==============================================================================
# Request Schemas
# ==============================================================================


class CommentIn(BaseModel):
    """A flat comment record.

    Accepts both the backend column names (``parent_comment_id``) and the
    client's camelCase names.
    """

    id: str = Field(..., min_length=1)
    parent_id: str | None = Field(
        None,
        validation_alias=AliasChoices(
            "parent_id", "parent_comment_id", "parentCommentId"
        ),
    )
    created_at: datetime = Field(
        ..., validation_alias=AliasChoices("created_at", "createdAt")
    )
    author_id: str | None = Field(
        None, validation_alias=AliasChoices("author_id", "authorId")
    )
    author_name: str = Field(
        UNKNOWN_USER_NAME, validation_alias=AliasChoices("author_name", "authorName")
    )
    content: str | None = None
    is_deleted: bool = Field(
        False, validation_alias=AliasChoices("is_deleted", "isDeleted")
    )
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("parent_id")
    @classmethod
    def blank_parent_is_none(cls, v: str | None) -> str | None:
        """Empty parent ids mean top-level."""
        if v is not None and not v.strip():
            return None
        return v

    def to_comment(self) -> Comment:
        return Comment(
            id=self.id,
            created_at=self.created_at,
            parent_id=self.parent_id,
            author_id=self.author_id,
            author_name=self.author_name,
            content=self.content,
            is_deleted=self.is_deleted,
            payload=dict(self.payload),
        )


class ThreadsRequest(BaseModel):
    """Request to assemble threads from flat comments."""

    comments: list[CommentIn] = Field(
        default_factory=list, max_length=MAX_COMMENTS_PER_REQUEST
    )

    def to_comments(self) -> list[Comment]:
        return [comment.to_comment() for comment in self.comments]


class PreviewRequest(ThreadsRequest):
    """Request for a feed-card preview."""

    max_threads: int | None = Field(None, ge=1, le=MAX_PREVIEW_LIMIT)
    max_replies: int | None = Field(None, ge=0, le=MAX_PREVIEW_LIMIT)


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentNodeResponse(BaseModel):
    """A comment with its nested replies."""

    id: str
    parent_id: str | None = None
    author_id: str | None = None
    author_name: str
    content: str | None = None
    is_deleted: bool = False
    created_at: datetime
    most_recent_activity: datetime
    replying_to_name: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    replies: list["CommentNodeResponse"] = Field(default_factory=list)

    @classmethod
    def from_comment(
        cls,
        comment: Comment,
        max_depth: int = MAX_REPLY_DEPTH,
        anomalies: list[ThreadAnomaly] | None = None,
    ) -> "CommentNodeResponse":
        """Create response from an assembled Comment.

        Nesting stops ``max_depth`` levels below ``comment``: the node at
        that level lists all of its descendants as direct replies, oldest
        first. Each such flattening is appended to ``anomalies`` when a list
        is given.
        """
        if max_depth > 0:
            replies = [
                cls.from_comment(reply, max_depth - 1, anomalies)
                for reply in comment.replies
            ]
        elif any(reply.replies for reply in comment.replies):
            flattened = sorted(
                descendants(comment), key=lambda c: (c.created_at, c.id)
            )
            if anomalies is not None:
                anomalies.append(
                    ThreadAnomaly(
                        AnomalyKind.DEPTH_LIMITED,
                        comment.id,
                        tuple(c.id for c in flattened),
                    )
                )
            replies = [cls._node(c, []) for c in flattened]
        else:
            replies = [cls._node(reply, []) for reply in comment.replies]
        return cls._node(comment, replies)

    @classmethod
    def _node(
        cls, comment: Comment, replies: list["CommentNodeResponse"]
    ) -> "CommentNodeResponse":
        return cls(
            id=comment.id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            author_name=comment.author_name,
            content=comment.content,
            is_deleted=comment.is_deleted,
            created_at=comment.created_at,
            most_recent_activity=comment.activity,
            replying_to_name=comment.replying_to_name,
            payload=comment.payload,
            replies=replies,
        )


class AnomalyResponse(BaseModel):
    """Integrity problem found while assembling threads."""

    kind: AnomalyKind
    comment_id: str
    related_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_anomaly(cls, anomaly: ThreadAnomaly) -> "AnomalyResponse":
        return cls(
            kind=anomaly.kind,
            comment_id=anomaly.comment_id,
            related_ids=list(anomaly.related_ids),
        )


class ThreadListResponse(BaseModel):
    """Assembled threads, newest activity first."""

    items: list[CommentNodeResponse]
    total: int
    anomalies: list[AnomalyResponse] = Field(default_factory=list)


class PreviewResponse(BaseModel):
    """Preview of the newest threads."""

    items: list[CommentNodeResponse]
    total: int
    has_more: bool
