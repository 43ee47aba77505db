"""Comment thread module.

Provides threaded comment assembly with:
- Reply forests built from flat parent references
- Most-recent-activity ordering of threads
- Feed-card previews
- Backend row normalization and a short-lived thread cache

The HTTP routes live in campus_feed.comments.router and are mounted by
campus_feed.main; the names below have no FastAPI dependency.
"""

from .cache import CommentCache
from .models import (
    Comment,
    ContentType,
    PostedAsType,
    collect_author_ids,
    collect_org_ids,
    comments_from_rows,
)
from .service import (
    CommentError,
    CommentSourceError,
    CommentThreadService,
    InvalidPreviewLimitError,
    PreviewListing,
    ThreadListing,
)
from .tree import (
    AnomalyKind,
    ThreadAnomaly,
    ThreadAssembly,
    assemble_threads,
    build_tree,
    count_comments,
    descendants,
    has_more,
    preview_threads,
)


__all__ = [
    "AnomalyKind",
    "Comment",
    "CommentCache",
    "CommentError",
    "CommentSourceError",
    "CommentThreadService",
    "ContentType",
    "InvalidPreviewLimitError",
    "PostedAsType",
    "PreviewListing",
    "ThreadAnomaly",
    "ThreadAssembly",
    "ThreadListing",
    "assemble_threads",
    "build_tree",
    "collect_author_ids",
    "collect_org_ids",
    "comments_from_rows",
    "count_comments",
    "descendants",
    "has_more",
    "preview_threads",
]
