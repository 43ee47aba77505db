"""Comment thread assembly.

Builds the nested reply forest shown under feed items from a flat list of
comments:

- replies are attached to their parent and ordered oldest first
- each node's ``most_recent_activity`` is the newest timestamp anywhere in
  its subtree
- threads are ordered by most recent activity, newest first

Input comes straight from the backend and is not trusted. A parent id that
does not exist makes the comment top-level. Duplicate ids and parent cycles
are reported as anomalies and never raise, so one bad row cannot break a
feed render.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

import structlog

from .models import Comment


logger = structlog.get_logger(__name__)


class AnomalyKind(str, Enum):
    """Data-integrity problems found while assembling threads."""

    DUPLICATE_ID = "duplicate_id"
    CYCLE = "cycle"
    REVISITED = "revisited"
    DEPTH_LIMITED = "depth_limited"


@dataclass(frozen=True)
class ThreadAnomaly:
    """One integrity problem, with the comment ids involved."""

    kind: AnomalyKind
    comment_id: str
    related_ids: tuple[str, ...] = ()


@dataclass
class ThreadAssembly:
    """Assembled threads plus any anomalies found on the way."""

    threads: list[Comment] = field(default_factory=list)
    anomalies: list[ThreadAnomaly] = field(default_factory=list)

    @property
    def total(self) -> int:
        return count_comments(self.threads)


def _created_at(comment: Comment) -> datetime:
    return comment.created_at


def _activity(comment: Comment) -> datetime:
    return comment.activity


def _walk(roots: Iterable[Comment]) -> Iterable[Comment]:
    """Yield every node reachable from ``roots`` once, depth first."""
    seen: set[int] = set()
    stack = list(roots)
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(node.replies)


def _find_cycle(start: Comment, nodes: dict[str, Comment]) -> list[Comment]:
    """Follow parent links from ``start`` until one repeats.

    ``start`` must be unreachable from every root, which guarantees all its
    ancestors exist and the chain ends in a loop.
    """
    position: dict[str, int] = {}
    chain: list[Comment] = []
    node = start
    while node.id not in position:
        position[node.id] = len(chain)
        chain.append(node)
        node = nodes[node.parent_id]
    return chain[position[node.id] :]


def _break_cycles(
    order: list[Comment],
    nodes: dict[str, Comment],
    reachable: set[str],
    anomalies: list[ThreadAnomaly],
) -> list[Comment]:
    """Detach one member of every parent cycle and return them as new roots.

    The oldest member of the cycle (then lowest id) becomes top-level, so the
    rest of the cycle renders beneath it as far as the loop allowed.
    """
    promoted: list[Comment] = []
    for node in order:
        if node.id in reachable:
            continue

        cycle = _find_cycle(node, nodes)
        head = min(cycle, key=lambda c: (c.created_at, c.id))
        parent = nodes[head.parent_id]
        parent.replies = [reply for reply in parent.replies if reply is not head]
        head.replying_to_name = None
        promoted.append(head)

        cycle_ids = tuple(c.id for c in cycle)
        anomalies.append(ThreadAnomaly(AnomalyKind.CYCLE, head.id, cycle_ids))
        logger.warning(
            "comment_cycle_detected",
            comment_id=head.id,
            cycle=list(cycle_ids),
        )

        reachable.update(c.id for c in _walk([head]))

    return promoted


def _propagate_activity(
    roots: Sequence[Comment], anomalies: list[ThreadAnomaly]
) -> None:
    """Sort replies and compute ``most_recent_activity`` bottom-up.

    Iterative post-order walk. A node reached a second time is reported and
    not descended into again.
    """
    visited: set[str] = set()
    for root in roots:
        stack: list[tuple[Comment, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                node.most_recent_activity = max(
                    [node.created_at]
                    + [
                        reply.most_recent_activity
                        for reply in node.replies
                        if reply.most_recent_activity is not None
                    ]
                )
                continue

            if node.id in visited:
                anomalies.append(ThreadAnomaly(AnomalyKind.REVISITED, node.id))
                logger.warning("comment_revisited", comment_id=node.id)
                continue

            visited.add(node.id)
            node.replies.sort(key=_created_at)
            stack.append((node, True))
            stack.extend((reply, False) for reply in node.replies)


def assemble_threads(flat_comments: Iterable[Comment]) -> ThreadAssembly:
    """Build the reply forest and report integrity problems.

    The input records are not modified; every node in the result is a copy.

    Args:
        flat_comments: Comments in any order

    Returns:
        ThreadAssembly with threads sorted newest activity first
    """
    anomalies: list[ThreadAnomaly] = []
    nodes: dict[str, Comment] = {}
    order: list[Comment] = []

    for comment in flat_comments:
        if comment.id in nodes:
            # First occurrence wins
            anomalies.append(ThreadAnomaly(AnomalyKind.DUPLICATE_ID, comment.id))
            logger.warning("comment_duplicate_id", comment_id=comment.id)
            continue
        node = replace(
            comment, replies=[], replying_to_name=None, most_recent_activity=None
        )
        nodes[node.id] = node
        order.append(node)

    roots: list[Comment] = []
    for node in order:
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is None:
            roots.append(node)
            continue
        parent.replies.append(node)
        node.replying_to_name = parent.author_name

    reachable = {node.id for node in _walk(roots)}
    if len(reachable) < len(order):
        roots.extend(_break_cycles(order, nodes, reachable, anomalies))

    _propagate_activity(roots, anomalies)
    roots.sort(key=_activity, reverse=True)

    return ThreadAssembly(threads=roots, anomalies=anomalies)


def build_tree(flat_comments: Iterable[Comment]) -> list[Comment]:
    """Build the reply forest, newest activity first.

    Examples:
        >>> build_tree([])
        []
    """
    return assemble_threads(flat_comments).threads


def descendants(comment: Comment) -> list[Comment]:
    """Every reply below ``comment`` at any depth, ``comment`` excluded."""
    return list(_walk(comment.replies))


def count_comments(threads: Iterable[Comment]) -> int:
    """Total number of comments in a forest, replies included."""
    return sum(1 for _ in _walk(threads))


def preview_threads(
    threads: Sequence[Comment],
    max_threads: int = 3,
    max_replies: int = 3,
) -> list[Comment]:
    """Truncated view of an assembled forest for feed cards.

    Keeps the first ``max_threads`` threads (already in activity order) and,
    in each, the ``max_replies`` newest direct replies, shown oldest first.
    Deeper replies of kept replies are left as they are. The input forest is
    not modified.
    """
    preview: list[Comment] = []
    for thread in threads[: max(max_threads, 0)]:
        # Replies are already sorted oldest first
        replies = thread.replies
        if len(replies) > max_replies:
            replies = replies[len(replies) - max(max_replies, 0) :]
        preview.append(replace(thread, replies=list(replies)))
    return preview


def has_more(full: Iterable[Comment], preview: Iterable[Comment]) -> bool:
    """True if the preview hides at least one comment of the full forest."""
    return count_comments(full) > count_comments(preview)
