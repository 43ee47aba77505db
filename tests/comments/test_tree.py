"""Tests for comment thread assembly."""

import pytest

from campus_feed.comments.models import Comment
from campus_feed.comments.tree import (
    AnomalyKind,
    _propagate_activity,
    assemble_threads,
    build_tree,
    count_comments,
    has_more,
    preview_threads,
)


def ids(comments: list[Comment]) -> list[str]:
    return [c.id for c in comments]


class TestBuildTree:
    """Tests for build_tree."""

    def test_empty(self) -> None:
        assert build_tree([]) == []

    def test_nested_replies(self, make_comment, ts) -> None:
        """Replies attach to their parents, oldest first."""
        comments = [
            make_comment("1", 0),
            make_comment("3", 5, parent_id="1"),
            make_comment("2", 2, parent_id="1"),
            make_comment("4", 7, parent_id="2"),
            make_comment("5", 1),
        ]

        threads = build_tree(comments)
        by_id = {c.id: c for c in threads}
        first = by_id["1"]
        second = first.replies[0]

        assert ids(threads) == ["1", "5"]
        assert ids(first.replies) == ["2", "3"]
        assert ids(second.replies) == ["4"]
        assert first.most_recent_activity == max(ts(0), ts(2), ts(5), ts(7))
        assert second.most_recent_activity == ts(7)
        assert by_id["5"].most_recent_activity == ts(1)

    def test_replying_to_name(self, make_comment) -> None:
        comments = [
            make_comment("1", 0, author_name="Ana Cruz"),
            make_comment("2", 1, parent_id="1", author_name="Ben Reyes"),
            make_comment("3", 2, parent_id="2"),
        ]

        thread = build_tree(comments)[0]

        assert thread.replying_to_name is None
        assert thread.replies[0].replying_to_name == "Ana Cruz"
        assert thread.replies[0].replies[0].replying_to_name == "Ben Reyes"

    def test_threads_ordered_by_most_recent_activity(self, make_comment) -> None:
        """Threads A, B, C with activity 10, 30, 20 come out as B, C, A."""
        comments = [
            make_comment("A", 10),
            make_comment("B", 5),
            make_comment("B1", 30, parent_id="B"),
            make_comment("C", 20),
        ]

        assert ids(build_tree(comments)) == ["B", "C", "A"]

    def test_activity_propagates_through_whole_subtree(self, make_comment) -> None:
        """A deep reply lifts its root thread above newer roots."""
        comments = [
            make_comment("old", 0),
            make_comment("r1", 1, parent_id="old"),
            make_comment("r2", 2, parent_id="r1"),
            make_comment("r3", 50, parent_id="r2"),
            make_comment("new", 40),
        ]

        threads = build_tree(comments)

        assert ids(threads) == ["old", "new"]
        assert threads[0].most_recent_activity == threads[0].replies[0].most_recent_activity

    def test_dangling_parent_is_top_level(self, make_comment) -> None:
        comments = [
            make_comment("1", 0),
            make_comment("orphan", 5, parent_id="deleted-comment"),
        ]

        threads = build_tree(comments)

        assert ids(threads) == ["orphan", "1"]
        assert threads[0].replying_to_name is None

    def test_equal_timestamps_keep_input_order(self, make_comment) -> None:
        comments = [
            make_comment("a", 0),
            make_comment("b", 0),
            make_comment("c", 0),
        ]
        assert ids(build_tree(comments)) == ["a", "b", "c"]

    def test_input_not_mutated(self, make_comment) -> None:
        parent = make_comment("1", 0)
        reply = make_comment("2", 1, parent_id="1")

        build_tree([parent, reply])

        assert parent.replies == []
        assert parent.most_recent_activity is None
        assert reply.replying_to_name is None

    def test_naive_timestamps_are_utc(self, make_comment, ts) -> None:
        naive = Comment(id="n", created_at=ts(3).replace(tzinfo=None))
        threads = build_tree([make_comment("a", 1), naive])
        assert ids(threads) == ["n", "a"]


class TestMalformedInput:
    """Malformed parent references never hang or raise."""

    def test_duplicate_ids_first_wins(self, make_comment) -> None:
        first = make_comment("1", 0)
        duplicate = make_comment("1", 9)

        assembly = assemble_threads([first, duplicate])

        assert len(assembly.threads) == 1
        assert assembly.threads[0].created_at == first.created_at
        assert [a.kind for a in assembly.anomalies] == [AnomalyKind.DUPLICATE_ID]

    def test_self_parent(self, make_comment) -> None:
        comments = [make_comment("x", 0, parent_id="x")]

        assembly = assemble_threads(comments)

        assert ids(assembly.threads) == ["x"]
        assert assembly.threads[0].replies == []
        assert assembly.anomalies[0].kind is AnomalyKind.CYCLE

    def test_two_node_cycle_surfaces_oldest(self, make_comment) -> None:
        comments = [
            make_comment("x", 5, parent_id="y"),
            make_comment("y", 1, parent_id="x"),
            make_comment("ok", 3),
        ]

        assembly = assemble_threads(comments)
        by_id = {c.id: c for c in assembly.threads}

        assert set(by_id) == {"y", "ok"}
        assert ids(by_id["y"].replies) == ["x"]
        assert by_id["y"].replying_to_name is None
        assert assembly.total == 3

        anomaly = assembly.anomalies[0]
        assert anomaly.kind is AnomalyKind.CYCLE
        assert anomaly.comment_id == "y"
        assert set(anomaly.related_ids) == {"x", "y"}

    def test_descendants_of_cycle_are_kept(self, make_comment) -> None:
        comments = [
            make_comment("a", 0, parent_id="c"),
            make_comment("b", 1, parent_id="a"),
            make_comment("c", 2, parent_id="b"),
            make_comment("leaf", 9, parent_id="b"),
        ]

        assembly = assemble_threads(comments)

        assert ids(assembly.threads) == ["a"]
        assert assembly.total == 4
        assert assembly.threads[0].most_recent_activity == comments[3].created_at

    def test_long_chain_does_not_recurse(self, make_comment) -> None:
        """Deep reply chains are walked iteratively."""
        comments = [make_comment("0", 0)]
        comments += [
            make_comment(str(i), i, parent_id=str(i - 1)) for i in range(1, 3000)
        ]

        assembly = assemble_threads(comments)

        assert assembly.total == 3000
        assert assembly.threads[0].most_recent_activity == comments[-1].created_at

    def test_revisited_node_stops_propagation(self, make_comment) -> None:
        """The activity walk terminates even on a hand-made reply loop."""
        a = make_comment("a", 0)
        b = make_comment("b", 1)
        a.replies = [b]
        b.replies = [a]
        anomalies = []

        _propagate_activity([a], anomalies)

        assert [x.kind for x in anomalies] == [AnomalyKind.REVISITED]
        assert a.most_recent_activity == b.created_at


class TestPreview:
    """Tests for preview_threads, count_comments and has_more."""

    @pytest.fixture
    def threads(self, make_comment) -> list[Comment]:
        comments = [make_comment(f"t{i}", i * 10) for i in range(5)]
        comments += [
            make_comment(f"t4-r{i}", 100 + i, parent_id="t4") for i in range(5)
        ]
        comments.append(make_comment("t4-r0-deep", 101, parent_id="t4-r0"))
        return build_tree(comments)

    def test_top_threads_in_activity_order(self, threads) -> None:
        preview = preview_threads(threads, max_threads=3, max_replies=3)
        assert ids(preview) == ["t4", "t3", "t2"]

    def test_newest_replies_kept_chronologically(self, threads) -> None:
        preview = preview_threads(threads, max_threads=3, max_replies=3)
        assert ids(preview[0].replies) == ["t4-r2", "t4-r3", "t4-r4"]

    def test_full_tree_untouched(self, threads) -> None:
        preview_threads(threads, max_threads=1, max_replies=1)
        assert len(threads[0].replies) == 5

    def test_nested_replies_of_kept_reply_untouched(self, threads) -> None:
        preview = preview_threads(threads, max_threads=1, max_replies=5)
        assert ids(preview[0].replies[0].replies) == ["t4-r0-deep"]

    def test_counts(self, threads) -> None:
        preview = preview_threads(threads, max_threads=3, max_replies=3)

        assert count_comments(threads) == 11
        assert has_more(threads, preview) is True
        assert has_more(threads, preview_threads(threads, 10, 10)) is False

    def test_small_forest_has_no_more(self, make_comment) -> None:
        threads = build_tree(
            [make_comment("1", 0), make_comment("2", 1, parent_id="1")]
        )
        assert has_more(threads, preview_threads(threads)) is False
