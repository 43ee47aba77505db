"""Tests for comment thread API endpoints."""

from fastapi.testclient import TestClient

from campus_feed.comments.schemas import MAX_REPLY_DEPTH


def comment(comment_id: str, minute: int, **extra) -> dict:
    return {
        "id": comment_id,
        "created_at": f"2025-10-03T12:{minute:02d}:00Z",
        "author_name": f"Author {comment_id}",
        "content": f"Comment {comment_id}",
        **extra,
    }


class TestAssembleThreads:
    """Tests for POST /v1/comments/threads."""

    def test_nested_threads(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads",
            json={
                "comments": [
                    comment("1", 0),
                    comment("2", 5, parent_comment_id="1"),
                    comment("3", 2),
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["anomalies"] == []
        assert [t["id"] for t in data["items"]] == ["1", "3"]

        reply = data["items"][0]["replies"][0]
        assert reply["id"] == "2"
        assert reply["parent_id"] == "1"
        assert reply["replying_to_name"] == "Author 1"
        assert data["items"][0]["most_recent_activity"].startswith(
            "2025-10-03T12:05:00"
        )

    def test_camel_case_fields(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads",
            json={
                "comments": [
                    {"id": "1", "createdAt": "2025-10-03T12:00:00Z"},
                    {
                        "id": "2",
                        "createdAt": "2025-10-03T12:01:00Z",
                        "parentCommentId": "1",
                        "isDeleted": True,
                    },
                ]
            },
        )

        assert response.status_code == 200
        reply = response.json()["items"][0]["replies"][0]
        assert reply["is_deleted"] is True
        assert reply["author_name"] == "Unknown User"

    def test_blank_parent_is_top_level(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads",
            json={"comments": [comment("1", 0, parent_id="")]},
        )

        assert response.json()["items"][0]["parent_id"] is None

    def test_cycle_reported(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads",
            json={
                "comments": [
                    comment("x", 5, parent_id="y"),
                    comment("y", 1, parent_id="x"),
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert [t["id"] for t in data["items"]] == ["y"]
        assert data["anomalies"][0]["kind"] == "cycle"
        assert sorted(data["anomalies"][0]["related_ids"]) == ["x", "y"]

    def test_empty_list(self, client: TestClient) -> None:
        response = client.post("/v1/comments/threads", json={"comments": []})
        assert response.json() == {"items": [], "total": 0, "anomalies": []}

    def test_missing_created_at(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads", json={"comments": [{"id": "1"}]}
        )

        assert response.status_code == 422
        assert response.json()["error"] is True


class TestPreviewThreads:
    """Tests for POST /v1/comments/preview."""

    def test_preview_truncates(self, client: TestClient) -> None:
        comments = [comment(f"t{i}", i) for i in range(4)]
        comments += [
            comment(f"r{i}", 10 + i, parent_comment_id="t0") for i in range(4)
        ]

        response = client.post(
            "/v1/comments/preview",
            json={"comments": comments, "max_threads": 2, "max_replies": 2},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 8
        assert data["has_more"] is True
        assert [t["id"] for t in data["items"]] == ["t0", "t3"]
        assert [r["id"] for r in data["items"][0]["replies"]] == ["r2", "r3"]

    def test_default_limits(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/preview",
            json={"comments": [comment("1", 0), comment("2", 1)]},
        )

        data = response.json()
        assert len(data["items"]) == 2
        assert data["has_more"] is False

    def test_limit_out_of_range(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/preview",
            json={"comments": [], "max_threads": 0},
        )

        assert response.status_code == 422


def reply_chain(length: int) -> list[dict]:
    """Comments each replying to the previous one, one second apart."""
    return [
        comment(
            str(i),
            0,
            created_at=f"2025-10-03T12:{i // 60:02d}:{i % 60:02d}Z",
            **({"parent_comment_id": str(i - 1)} if i else {}),
        )
        for i in range(length)
    ]


def nesting_depth(node: dict) -> int:
    """Levels of nested replies below and including ``node``."""
    depth = 0
    level = [node]
    while level:
        depth += 1
        level = [reply for n in level for reply in n["replies"]]
    return depth


class TestDeepReplyChains:
    """Reply chains deeper than the response nesting limit."""

    def test_threads_flattens_below_limit(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads", json={"comments": reply_chain(1000)}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1000
        assert nesting_depth(data["items"][0]) == MAX_REPLY_DEPTH + 2

        [anomaly] = data["anomalies"]
        assert anomaly["kind"] == "depth_limited"
        assert anomaly["comment_id"] == str(MAX_REPLY_DEPTH)
        assert len(anomaly["related_ids"]) == 1000 - MAX_REPLY_DEPTH - 1

    def test_flattened_replies_oldest_first(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads", json={"comments": reply_chain(200)}
        )

        node = response.json()["items"][0]
        while node["id"] != str(MAX_REPLY_DEPTH):
            node = node["replies"][0]
        flattened = node["replies"]
        assert [r["id"] for r in flattened] == [
            str(i) for i in range(MAX_REPLY_DEPTH + 1, 200)
        ]
        assert all(r["replies"] == [] for r in flattened)
        assert flattened[-1]["replying_to_name"] == "Author 198"

    def test_preview_of_deep_chain(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/preview", json={"comments": reply_chain(1000)}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1000
        assert data["has_more"] is False
        assert nesting_depth(data["items"][0]) == MAX_REPLY_DEPTH + 2

    def test_chain_within_limit_keeps_nesting(self, client: TestClient) -> None:
        response = client.post(
            "/v1/comments/threads", json={"comments": reply_chain(20)}
        )

        data = response.json()
        assert data["anomalies"] == []
        assert nesting_depth(data["items"][0]) == 20
