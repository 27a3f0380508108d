"""Integration tests for conversations, messages, groups and the offline queue."""
from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from sqlalchemy import delete, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_loopin.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_BACKGROUND_TASKS", "true")

from loopin.config import get_settings  # noqa: E402
from loopin.constants import DELETED_MESSAGE_PLACEHOLDER  # noqa: E402
from loopin.database import Base, SessionLocal, engine  # noqa: E402
from loopin.main import app  # noqa: E402
from loopin.models import Follow, Message, Notification, Post, User  # noqa: E402
from loopin.services import create_access_token, offline_queue  # noqa: E402
from loopin.services import get_current_user, network_status  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    network_status.reset()
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(delete(table))
        session.commit()
    yield
    network_status.reset()


@pytest.fixture
def user_factory() -> Callable[..., User]:
    def _factory(username: str, **fields) -> User:
        with SessionLocal() as session:
            user = User(username=username, email=f"{username}@example.com", hashed_password="test-hash", **fields)
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
    return _factory


@pytest.fixture
def authed_client() -> Iterator[Callable[[User], TestClient]]:
    with TestClient(app) as client:
        def _with_user(user: User) -> TestClient:
            def _override() -> User:
                return user
            app.dependency_overrides[get_current_user] = _override
            return client
        yield _with_user
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def queue_file(tmp_path, monkeypatch):
    path = tmp_path / "offline_queue.json"
    monkeypatch.setattr(offline_queue, "_queue_path", lambda: path)
    return path


def _notifications(user: User, category: str) -> list[Notification]:
    with SessionLocal() as session:
        stmt = select(Notification).where(Notification.recipient_id == user.id, Notification.category == category)
        return list(session.scalars(stmt))


def _direct(client: TestClient, other: User) -> str:
    response = client.post("/conversations/direct", json={"user_id": str(other.id)})
    assert response.status_code == 200
    return response.json()["id"]


def test_direct_conversation_is_found_or_created(authed_client, user_factory):
    alice = user_factory("alice")
    bob = user_factory("bob")
    client = authed_client(alice)

    missing = client.post("/conversations/direct", json={"user_id": str(bob.id), "find_only": True})
    assert missing.status_code == 404

    conversation_id = _direct(client, bob)
    assert _direct(client, bob) == conversation_id
    assert _direct(authed_client(bob), alice) == conversation_id

    [request] = _notifications(bob, "message_request")
    assert request.actor_id == alice.id

    listing = authed_client(alice).get("/conversations").json()["items"]
    assert [item["id"] for item in listing] == [conversation_id]
    assert sorted(listing[0]["participant_ids"]) == sorted([str(alice.id), str(bob.id)])
    assert listing[0]["is_group"] is False


def test_no_message_request_when_following(authed_client, user_factory):
    alice = user_factory("alice_f")
    bob = user_factory("bob_f")
    with SessionLocal() as session:
        session.add(Follow(follower_id=alice.id, following_id=bob.id))
        session.commit()

    response = authed_client(alice).post(
        "/conversations", json={"participant_ids": [str(bob.id)], "is_group": False}
    )
    assert response.status_code == 201
    assert _notifications(bob, "message_request") == []


def test_direct_conversation_needs_two_participants(authed_client, user_factory):
    alice = user_factory("alice_d")
    bob = user_factory("bob_d")
    carol = user_factory("carol_d")

    response = authed_client(alice).post(
        "/conversations", json={"participant_ids": [str(bob.id), str(carol.id)], "is_group": False}
    )
    assert response.status_code == 400

    unknown = authed_client(alice).post("/conversations", json={"participant_ids": [str(uuid.uuid4())]})
    assert unknown.status_code == 404


def test_messages_update_preview_and_unread_counts(authed_client, user_factory):
    alice = user_factory("alice_m")
    bob = user_factory("bob_m")
    conversation_id = _direct(authed_client(alice), bob)

    sent = authed_client(alice).post(f"/conversations/{conversation_id}/messages", json={"content": "Hi Bob"})
    assert sent.status_code == 201
    message = sent.json()
    assert message["type"] == "text"
    assert message["content"] == "Hi Bob"
    assert message["is_read"] is False

    client = authed_client(bob)
    conversation = client.get(f"/conversations/{conversation_id}").json()
    assert conversation["unread_count"] == 1
    assert conversation["last_message"]["content"] == "Hi Bob"
    assert conversation["last_message"]["sender_id"] == str(alice.id)
    assert client.get("/conversations/unread-count").json() == {"unread_count": 1}

    assert client.post(f"/conversations/{conversation_id}/read").status_code == 204
    assert client.get("/conversations/unread-count").json() == {"unread_count": 0}
    messages = client.get(f"/conversations/{conversation_id}/messages").json()["items"]
    assert [item["is_read"] for item in messages] == [True]

    sender_view = authed_client(alice).get(f"/conversations/{conversation_id}").json()
    assert sender_view["unread_count"] == 0


def test_structured_message_validation(authed_client, user_factory):
    alice = user_factory("alice_v")
    bob = user_factory("bob_v")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)
    url = f"/conversations/{conversation_id}/messages"

    located = client.post(
        url, json={"message_type": "location_share", "content": {"latitude": 51.5, "longitude": -0.12}}
    )
    assert located.status_code == 201
    preview = client.get(f"/conversations/{conversation_id}").json()["last_message"]
    assert preview["content"] == "[location_share]"

    assert client.post(url, json={"message_type": "location_share", "content": {"latitude": 200}}).status_code == 422
    assert client.post(url, json={"content": "   "}).status_code == 422
    assert client.post(url, json={"message_type": "image", "content": {"name": "x.png"}}).status_code == 422


def test_message_pagination_returns_newest_first_page_in_order(authed_client, user_factory):
    alice = user_factory("alice_p")
    bob = user_factory("bob_p")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)
    ids = [
        client.post(f"/conversations/{conversation_id}/messages", json={"content": f"m{index}"}).json()["id"]
        for index in range(5)
    ]

    page = client.get(f"/conversations/{conversation_id}/messages", params={"limit": 2}).json()["items"]
    assert [item["content"] for item in page] == ["m3", "m4"]

    older = client.get(
        f"/conversations/{conversation_id}/messages", params={"limit": 2, "before": ids[3]}
    ).json()["items"]
    assert [item["content"] for item in older] == ["m1", "m2"]

    bad_anchor = client.get(f"/conversations/{conversation_id}/messages", params={"before": str(uuid.uuid4())})
    assert bad_anchor.status_code == 404


def test_pagination_keeps_messages_sharing_a_timestamp(authed_client, user_factory):
    alice = user_factory("alice_t")
    bob = user_factory("bob_t")
    client = authed_client(alice)
    conversation_id = uuid.UUID(_direct(client, bob))
    stamp = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    ids = [uuid.UUID(int=index + 1) for index in range(4)]
    with SessionLocal() as session:
        for index, message_id in enumerate(ids):
            session.add(
                Message(
                    id=message_id,
                    conversation_id=conversation_id,
                    sender_id=alice.id,
                    content=f"same{index}",
                    created_at=stamp,
                )
            )
        session.commit()

    older = client.get(
        f"/conversations/{conversation_id}/messages", params={"limit": 10, "before": str(ids[2])}
    ).json()["items"]
    assert [item["content"] for item in older] == ["same0", "same1"]


def test_delete_message_under_another_conversation_leaves_it_intact(authed_client, user_factory):
    alice = user_factory("alice_w")
    bob = user_factory("bob_w")
    carol = user_factory("carol_w")
    client = authed_client(alice)
    first = _direct(client, bob)
    second = _direct(client, carol)
    message_id = client.post(f"/conversations/{first}/messages", json={"content": "keep me"}).json()["id"]

    wrong = client.delete(f"/conversations/{second}/messages/{message_id}")
    assert wrong.status_code == 404

    with SessionLocal() as session:
        stored = session.get(Message, uuid.UUID(message_id))
        assert stored.is_deleted is False
        assert stored.content == "keep me"


def test_outsiders_cannot_read_or_post(authed_client, user_factory):
    alice = user_factory("alice_o")
    bob = user_factory("bob_o")
    eve = user_factory("eve_o")
    conversation_id = _direct(authed_client(alice), bob)

    client = authed_client(eve)
    assert client.get(f"/conversations/{conversation_id}").status_code == 403
    assert client.get(f"/conversations/{conversation_id}/messages").status_code == 403
    assert client.post(f"/conversations/{conversation_id}/messages", json={"content": "hi"}).status_code == 403
    assert client.get(f"/conversations/{uuid.uuid4()}").status_code == 404


def test_delete_message_only_by_sender(authed_client, user_factory):
    alice = user_factory("alice_x")
    bob = user_factory("bob_x")
    conversation_id = _direct(authed_client(alice), bob)
    message_id = authed_client(alice).post(
        f"/conversations/{conversation_id}/messages", json={"content": "oops"}
    ).json()["id"]

    assert authed_client(bob).delete(f"/conversations/{conversation_id}/messages/{message_id}").status_code == 403

    deleted = authed_client(alice).delete(f"/conversations/{conversation_id}/messages/{message_id}")
    assert deleted.status_code == 200
    assert deleted.json()["is_deleted"] is True
    assert deleted.json()["content"] == DELETED_MESSAGE_PLACEHOLDER
    assert deleted.json()["deleted_at"] is not None


def test_offline_messages_are_queued_and_replayed(authed_client, user_factory):
    alice = user_factory("alice_q")
    bob = user_factory("bob_q")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)

    network_status.set_offline(True)
    queued = client.post(f"/conversations/{conversation_id}/messages", json={"content": "sent offline"})
    assert queued.status_code == 202
    assert queued.json() == {"status": "queued-offline"}

    queued_group = client.post(
        "/conversations", json={"participant_ids": [str(bob.id)], "is_group": True, "name": "Later"}
    )
    assert queued_group.status_code == 202

    assert client.post(f"/conversations/{conversation_id}/read").status_code == 204
    assert client.delete(f"/conversations/{conversation_id}/messages/{uuid.uuid4()}").status_code == 503
    assert client.patch(f"/conversations/{conversation_id}", json={"is_muted": True}).status_code == 503

    queue = client.get("/system/offline-queue").json()
    assert queue["count"] == 2
    assert [item["action_type"] for item in queue["items"]] == ["send_message", "create_conversation"]

    network_status.set_offline(False)
    flushed = client.post("/system/offline-queue/flush")
    assert flushed.json() == {"replayed": 2, "remaining": 0}

    messages = client.get(f"/conversations/{conversation_id}/messages").json()["items"]
    assert [item["content"] for item in messages] == ["sent offline"]
    groups = [item for item in client.get("/conversations").json()["items"] if item["is_group"]]
    assert [group["name"] for group in groups] == ["Later"]


def test_replay_drops_actions_rejected_by_the_backend(authed_client, user_factory):
    alice = user_factory("alice_r")
    client = authed_client(alice)

    network_status.set_offline(True)
    stale = client.post(f"/conversations/{uuid.uuid4()}/messages", json={"content": "nobody home"})
    assert stale.status_code == 202
    network_status.set_offline(False)

    assert client.post("/system/offline-queue/flush").json() == {"replayed": 1, "remaining": 0}
    assert client.get("/system/offline-queue").json()["count"] == 0


def test_conversation_settings(authed_client, user_factory):
    alice = user_factory("alice_s")
    bob = user_factory("bob_s")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)

    updated = client.patch(f"/conversations/{conversation_id}", json={"is_muted": True, "is_pinned": True})
    assert updated.status_code == 200
    assert updated.json()["is_muted"] is True
    assert updated.json()["is_pinned"] is True


def test_group_roles_and_membership(authed_client, user_factory):
    admin = user_factory("admin_g")
    helper = user_factory("helper_g")
    member = user_factory("member_g")
    newcomer = user_factory("newcomer_g")

    created = authed_client(admin).post(
        "/conversations",
        json={"participant_ids": [str(helper.id), str(member.id)], "is_group": True, "name": "Crew"},
    )
    assert created.status_code == 201
    group = created.json()
    group_id = group["id"]
    assert group["admin_ids"] == [str(admin.id)]
    assert group["name"] == "Crew"

    assert authed_client(helper).patch(f"/conversations/{group_id}", json={"name": "Mine"}).status_code == 403
    assert authed_client(helper).post(
        f"/conversations/{group_id}/members", json={"user_ids": [str(newcomer.id)]}
    ).status_code == 403

    promoted = authed_client(admin).patch(f"/conversations/{group_id}/members/{helper.id}", json={"role": "co_admin"})
    assert promoted.json()["co_admin_ids"] == [str(helper.id)]

    client = authed_client(helper)
    renamed = client.patch(f"/conversations/{group_id}", json={"name": "Crew 2"})
    assert renamed.json()["name"] == "Crew 2"
    added = client.post(f"/conversations/{group_id}/members", json={"user_ids": [str(newcomer.id)]})
    assert str(newcomer.id) in added.json()["participant_ids"]
    assert client.delete(f"/conversations/{group_id}/members/{member.id}").status_code == 403

    client = authed_client(admin)
    assert client.delete(f"/conversations/{group_id}/members/{admin.id}").status_code == 400
    assert client.patch(f"/conversations/{group_id}/members/{admin.id}", json={"role": "member"}).status_code == 400
    removed = client.delete(f"/conversations/{group_id}/members/{member.id}")
    assert str(member.id) not in removed.json()["participant_ids"]

    assert client.post(f"/conversations/{group_id}/leave").status_code == 204
    remaining = authed_client(helper).get(f"/conversations/{group_id}").json()
    assert remaining["admin_ids"] == [str(helper.id)]
    assert str(admin.id) not in remaining["participant_ids"]


def test_admin_handover_and_group_deletion(authed_client, user_factory):
    admin = user_factory("admin_h")
    other = user_factory("other_h")
    group_id = authed_client(admin).post(
        "/conversations", json={"participant_ids": [str(other.id)], "is_group": True, "name": "Pair"}
    ).json()["id"]

    handed = authed_client(admin).patch(f"/conversations/{group_id}/members/{other.id}", json={"role": "admin"})
    assert handed.json()["admin_ids"] == [str(other.id)]
    assert handed.json()["co_admin_ids"] == [str(admin.id)]

    assert authed_client(admin).delete(f"/conversations/{group_id}").status_code == 403
    assert authed_client(other).delete(f"/conversations/{group_id}").status_code == 204
    assert authed_client(other).get(f"/conversations/{group_id}").status_code == 404


def test_last_member_leaving_removes_group(authed_client, user_factory):
    admin = user_factory("admin_l")
    group_id = authed_client(admin).post(
        "/conversations", json={"participant_ids": [], "is_group": True, "name": "Solo"}
    )
    assert group_id.status_code == 422

    other = user_factory("other_l")
    group_id = authed_client(admin).post(
        "/conversations", json={"participant_ids": [str(other.id)], "is_group": True, "name": "Duo"}
    ).json()["id"]
    assert authed_client(other).post(f"/conversations/{group_id}/leave").status_code == 204
    assert authed_client(admin).post(f"/conversations/{group_id}/leave").status_code == 204
    assert authed_client(admin).get(f"/conversations/{group_id}").status_code == 404


def test_share_post_in_direct_message(authed_client, user_factory):
    author = user_factory("author_s")
    sharer = user_factory("sharer_s")
    friend = user_factory("friend_s")
    with SessionLocal() as session:
        post = Post(user_id=author.id, content="Worth sharing", media=[], tagged_user_ids=[])
        session.add(post)
        session.commit()
        post_id = post.id

    response = authed_client(sharer).post(
        "/conversations/share-post",
        json={"recipient_id": str(friend.id), "post_id": str(post_id), "note": "Look at this"},
    )
    assert response.status_code == 201
    base_url = get_settings().public_base_url.rstrip("/")
    expected_link = f"{base_url}/chat/profile/{author.id}/posts?post={post_id}"
    assert response.json()["content"] == f"Look at this\nShared a post: {expected_link}"

    [notification] = [n for n in _notifications(friend, "message") if n.title == "Post Shared with You"]
    assert notification.actor_id == sharer.id
    assert 'Message: "Look at this"' in notification.message

    missing = authed_client(sharer).post(
        "/conversations/share-post", json={"recipient_id": str(friend.id), "post_id": str(uuid.uuid4())}
    )
    assert missing.status_code == 404


def test_attachment_upload_posts_file_message(authed_client, user_factory, monkeypatch):
    from loopin.routers import conversations as conversations_router

    alice = user_factory("alice_a")
    bob = user_factory("bob_a")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)
    monkeypatch.setattr(
        conversations_router, "upload_file", lambda upload, folder: f"https://cdn.example.com/{folder}/photo.png"
    )

    response = client.post(
        f"/conversations/{conversation_id}/attachments",
        files={"file": ("photo.png", b"\x89PNG fake", "image/png")},
        data={"caption": "Look"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "image"
    assert body["content"]["url"] == f"https://cdn.example.com/chat/{conversation_id}/photo.png"
    assert body["content"]["text"] == "Look"


def test_websocket_receives_snapshot_and_new_messages(authed_client, user_factory):
    alice = user_factory("alice_w")
    bob = user_factory("bob_w")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)
    client.post(f"/conversations/{conversation_id}/messages", json={"content": "before socket"})

    token = create_access_token(bob.id)
    with client.websocket_connect(f"/conversations/{conversation_id}/ws?token={token}") as websocket:
        snapshot = websocket.receive_json()
        assert snapshot["type"] == "snapshot"
        assert [item["content"] for item in snapshot["messages"]] == ["before socket"]

        websocket.send_text("ping")
        assert websocket.receive_json()["type"] == "pong"

        client.post(f"/conversations/{conversation_id}/messages", json={"content": "live"})
        event = websocket.receive_json()
        assert event["type"] == "message.created"
        assert event["message"]["content"] == "live"



def test_websocket_rejects_outsiders(authed_client, user_factory):
    alice = user_factory("alice_z")
    bob = user_factory("bob_z")
    eve = user_factory("eve_z")
    client = authed_client(alice)
    conversation_id = _direct(client, bob)

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/conversations/{conversation_id}/ws?token={create_access_token(eve.id)}") as ws:
            ws.receive_text()
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/conversations/{conversation_id}/ws?token=not-a-token") as ws:
            ws.receive_text()
