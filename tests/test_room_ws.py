"""
tests.test_room_ws
~~~~~~~~~~~~~~~~~~

房间 WebSocket 端到端测试：推流、点赞、匹配、结束与离开。
"""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tests.conftest import make_movie


def _room_with_two(client: TestClient) -> str:
    room_id = client.post("/api/rooms", json={"host_id": "alice"}).json()["room_id"]
    client.post(f"/api/rooms/{room_id}/join", json={"participant_id": "bob"})
    return room_id


def _like(participant_id: str, imdb_id: str) -> dict:
    return {"type": "MovieLiked", "participant_id": participant_id, "imdb_id": imdb_id}


class TestRoomWebSocket:
    """测试 ``/api/rooms/{room_id}/ws``。"""

    def test_unknown_room_gets_error_then_close(self, client: TestClient) -> None:
        with client.websocket_connect("/api/rooms/nope/ws") as ws:
            message = ws.receive_json()
            assert message == {"type": "Error", "message": "Room not found"}

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 1008

    def test_full_matching_flow(self, client: TestClient) -> None:
        room_id = _room_with_two(client)

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            assert client.post(f"/api/rooms/{room_id}/start").status_code == 200

            assert ws.receive_json() == {"type": "MatchingStarted"}
            streamed = [ws.receive_json() for _ in range(3)]
            assert [m["type"] for m in streamed] == ["NewMovie"] * 3
            assert [m["movie"]["imdb_id"] for m in streamed] == ["tt1", "tt2", "tt3"]
            assert ws.receive_json() == {"type": "StreamingEnded"}

            for participant_id in ("alice", "bob"):
                for imdb_id in ("tt1", "tt2", "tt3"):
                    ws.send_json(_like(participant_id, imdb_id))

            updates = [ws.receive_json() for _ in range(6)]
            assert all(m["type"] == "LikesUpdated" for m in updates)
            assert [len(m["common_likes"]) for m in updates] == [0, 0, 0, 1, 2, 3]

            match = ws.receive_json()
            assert match["type"] == "MatchFound"
            assert [m["imdb_id"] for m in match["common_likes"]] == ["tt1", "tt2", "tt3"]
            assert [e["participant_id"] for e in match["all_likes"]] == ["alice", "bob"]

            # 匹配成功后房间仍在匹配中
            assert client.get(f"/api/rooms/{room_id}").json()["is_active"] is True

            ws.send_json({"type": "EndMatching"})
            ended = ws.receive_json()
            assert ended["type"] == "MatchingEnded"
            assert len(ended["common_likes"]) == 3

            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

        assert client.get(f"/api/rooms/{room_id}").json()["is_active"] is False

    def test_binary_frame_fills_catalog(self, client: TestClient) -> None:
        room_id = _room_with_two(client)
        movies = [make_movie("tt7", title="Seven"), make_movie("tt8")]

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            ws.send_bytes(json.dumps([m.model_dump() for m in movies]).encode())
            ws.send_json(_like("alice", "tt7"))

            update = ws.receive_json()
            assert update["type"] == "LikesUpdated"
            alice = update["all_likes"][0]
            assert alice["participant_id"] == "alice"
            assert [m["title"] for m in alice["liked_movies"]] == ["Seven"]

    def test_legacy_like_and_garbage_frames(self, client: TestClient) -> None:
        room_id = _room_with_two(client)

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            ws.send_bytes(json.dumps([make_movie("tt1").model_dump()]).encode())
            ws.send_bytes(b"not json")
            ws.send_text("garbage")
            ws.send_json({"type": "Unknown"})
            ws.send_json({"type": "Liked", "participant_id": "bob", "item_id": "tt1"})

            update = ws.receive_json()
            assert update["type"] == "LikesUpdated"
            bob = update["all_likes"][1]
            assert [m["imdb_id"] for m in bob["liked_movies"]] == ["tt1"]

    def test_likes_from_strangers_are_ignored(self, client: TestClient) -> None:
        room_id = _room_with_two(client)

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            ws.send_json(_like("mallory", "tt1"))

            update = ws.receive_json()
            assert [e["participant_id"] for e in update["all_likes"]] == ["alice", "bob"]

        state = client.get(f"/api/rooms/{room_id}/state").json()
        assert state["participants"] == ["alice", "bob"]

    def test_leave_room(self, client: TestClient) -> None:
        room_id = _room_with_two(client)

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            ws.send_json({"type": "LeaveRoom", "participant_id": "bob"})

            assert ws.receive_json() == {"type": "ParticipantLeft", "participant_id": "bob"}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

        info = client.get(f"/api/rooms/{room_id}").json()
        assert info["participants_count"] == 1

    def test_broadcast_reaches_every_connection(self, client: TestClient) -> None:
        room_id = client.post("/api/rooms", json={"host_id": "alice"}).json()["room_id"]

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as first, \
                client.websocket_connect(f"/api/rooms/{room_id}/ws") as second:
            client.post(f"/api/rooms/{room_id}/join", json={"participant_id": "bob"})

            expected = {"type": "ParticipantJoined", "participant_id": "bob"}
            assert first.receive_json() == expected
            assert second.receive_json() == expected

    def test_last_guest_leaving_ends_session(self, client: TestClient) -> None:
        room_id = _room_with_two(client)

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            client.post(f"/api/rooms/{room_id}/start")
            assert ws.receive_json() == {"type": "MatchingStarted"}
            for _ in range(3):
                assert ws.receive_json()["type"] == "NewMovie"
            assert ws.receive_json() == {"type": "StreamingEnded"}

            ws.send_json(_like("alice", "tt2"))
            assert ws.receive_json()["type"] == "LikesUpdated"

            ws.send_json({"type": "LeaveRoom", "participant_id": "bob"})

            assert ws.receive_json() == {"type": "ParticipantLeft", "participant_id": "bob"}
            ended = ws.receive_json()
            assert ended["type"] == "MatchingEnded"
            assert [e["participant_id"] for e in ended["all_likes"]] == ["alice"]
            assert [m["imdb_id"] for m in ended["all_likes"][0]["liked_movies"]] == ["tt2"]
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

        info = client.get(f"/api/rooms/{room_id}").json()
        assert info["participants_count"] == 1
        assert info["is_active"] is False

    def test_end_matching_on_inactive_room_is_silent(self, client: TestClient) -> None:
        room_id = _room_with_two(client)

        with client.websocket_connect(f"/api/rooms/{room_id}/ws") as ws:
            ws.send_json({"type": "EndMatching"})

            # 未开始的房间不会再广播 MatchingEnded，连接直接关闭
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

        assert client.get(f"/api/rooms/{room_id}").json()["is_active"] is False
