"""Comment thread service.

Loads the flat comments of a content item through a caller-supplied loader
(the backend client lives outside this package), assembles them into threads
and keeps the result in a short-lived cache. Preview listings for feed cards
are derived from the same assembly.
"""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

import structlog

from campus_feed.config import Settings, get_settings

from .cache import CommentCache
from .models import Comment, ContentType
from .tree import (
    ThreadAnomaly,
    ThreadAssembly,
    assemble_threads,
    has_more,
    preview_threads,
)


logger = structlog.get_logger(__name__)


CommentLoader = Callable[[], Awaitable[Iterable[Comment]]]


# ==============================================================================
# Exceptions
# ==============================================================================


class CommentError(Exception):
    """Base exception for comment errors."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentSourceError(CommentError):
    """Comments could not be loaded from the backend."""

    def __init__(self, message: str = "Comments are temporarily unavailable"):
        super().__init__(message, "comment_source_unavailable")


class InvalidPreviewLimitError(CommentError):
    """Preview limits out of range."""

    def __init__(self, message: str = "Invalid preview limits"):
        super().__init__(message, "invalid_preview_limit")


# ==============================================================================
# Listings
# ==============================================================================


@dataclass
class ThreadListing:
    """Full thread listing for a content item."""

    items: list[Comment]
    total: int
    anomalies: list[ThreadAnomaly] = field(default_factory=list)
    cached: bool = False


@dataclass
class PreviewListing:
    """Truncated listing shown on feed cards."""

    items: list[Comment]
    total: int
    has_more: bool


class CommentThreadService:
    """Service for assembling and caching comment threads."""

    def __init__(
        self,
        settings: Settings | None = None,
        cache: CommentCache | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        # An empty cache is falsy (it defines __len__), so test for None
        if cache is None:
            cache = CommentCache(ttl_seconds=self.settings.comment_cache_ttl_seconds)
        self.cache = cache

    def build(self, comments: Iterable[Comment]) -> ThreadListing:
        """Assemble threads from already-loaded comments, bypassing the cache."""
        assembly = assemble_threads(comments)
        return self._listing(assembly)

    async def get_threads(
        self,
        content_type: ContentType | str,
        content_id: str,
        loader: CommentLoader,
    ) -> ThreadListing:
        """Get the threads of a content item, loading them on a cache miss.

        Args:
            content_type: Kind of content the comments belong to
            content_id: Content item ID
            loader: Coroutine function returning the item's flat comments

        Raises:
            CommentSourceError: If the loader fails
        """
        content_type = ContentType(content_type).value

        entry = self.cache.get(content_type, content_id)
        if entry is not None:
            return self._listing(entry.assembly, total=entry.total, cached=True)

        try:
            comments = list(await loader())
        except Exception as e:
            logger.exception(
                "comment_load_failed",
                content_type=content_type,
                content_id=content_id,
                error=str(e),
            )
            raise CommentSourceError from e

        assembly = assemble_threads(comments)
        self.cache.set(content_type, content_id, assembly)

        logger.debug(
            "comment_threads_built",
            content_type=content_type,
            content_id=content_id,
            comments=len(comments),
            threads=len(assembly.threads),
            anomalies=len(assembly.anomalies),
        )
        return self._listing(assembly)

    async def get_preview(
        self,
        content_type: ContentType | str,
        content_id: str,
        loader: CommentLoader,
        max_threads: int | None = None,
        max_replies: int | None = None,
    ) -> PreviewListing:
        """Get the feed-card preview of a content item's threads."""
        listing = await self.get_threads(content_type, content_id, loader)
        return self.preview(listing, max_threads, max_replies)

    def preview(
        self,
        listing: ThreadListing,
        max_threads: int | None = None,
        max_replies: int | None = None,
    ) -> PreviewListing:
        """Derive a preview from a full listing.

        Limits default to the configured preview sizes.

        Raises:
            InvalidPreviewLimitError: If max_threads < 1 or max_replies < 0
        """
        if max_threads is None:
            max_threads = self.settings.comment_preview_threads
        if max_replies is None:
            max_replies = self.settings.comment_preview_replies

        if max_threads < 1 or max_replies < 0:
            msg = (
                "max_threads must be >= 1 and max_replies >= 0, "
                f"got {max_threads}/{max_replies}"
            )
            raise InvalidPreviewLimitError(msg)

        items = preview_threads(listing.items, max_threads, max_replies)
        return PreviewListing(
            items=items,
            total=listing.total,
            has_more=has_more(listing.items, items),
        )

    def invalidate(self, content_type: ContentType | str, content_id: str) -> None:
        """Drop the cached threads of a content item after a write."""
        self.cache.invalidate(ContentType(content_type).value, content_id)

    @staticmethod
    def _listing(
        assembly: ThreadAssembly, total: int | None = None, cached: bool = False
    ) -> ThreadListing:
        return ThreadListing(
            items=assembly.threads,
            total=assembly.total if total is None else total,
            anomalies=list(assembly.anomalies),
            cached=cached,
        )
