"""Integration tests for follows, follow requests and blocking."""
from __future__ import annotations

import os
import uuid
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_loopin.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_BACKGROUND_TASKS", "true")

from loopin.database import Base, SessionLocal, engine  # noqa: E402
from loopin.main import app  # noqa: E402
from loopin.models import Follow, Notification, User  # noqa: E402
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


def _notifications_for(user: User) -> list[Notification]:
    with SessionLocal() as session:
        return list(session.scalars(select(Notification).where(Notification.recipient_id == user.id)))


def test_follow_and_unfollow_public_account(authed_client, user_factory):
    fan = user_factory("fan")
    star = user_factory("star")
    client = authed_client(fan)

    followed = client.post(f"/follows/{star.id}", json={"action": "follow"})
    assert followed.status_code == 200
    body = followed.json()
    assert body["status"] == "followed"
    assert body["followers_count"] == 1
    assert body["is_following"] is True

    again = client.post(f"/follows/{star.id}", json={"action": "follow"})
    assert again.json()["status"] == "noop"
    assert again.json()["followers_count"] == 1

    [notification] = _notifications_for(star)
    assert notification.category == "follow"
    assert notification.title == "New Follower"
    assert notification.actor_id == fan.id

    followers = client.get(f"/follows/{star.id}/followers").json()["items"]
    assert [item["username"] for item in followers] == ["fan"]
    following = client.get(f"/follows/{fan.id}/following").json()["items"]
    assert [item["username"] for item in following] == ["star"]

    unfollowed = client.delete(f"/follows/{star.id}")
    assert unfollowed.json()["status"] == "unfollowed"
    assert unfollowed.json()["followers_count"] == 0

    stats = client.get(f"/follows/stats/{star.id}").json()
    assert stats == {"user_id": str(star.id), "followers_count": 0, "following_count": 0, "is_following": False}


def test_follow_guards(authed_client, user_factory):
    me = user_factory("me_user")
    private = user_factory("private_user", is_private=True)
    client = authed_client(me)

    assert client.post(f"/follows/{me.id}", json={"action": "follow"}).status_code == 400
    assert client.post(f"/follows/{private.id}", json={"action": "follow"}).status_code == 400
    assert client.post(f"/follows/{uuid.uuid4()}", json={"action": "follow"}).status_code == 404
    assert client.post(f"/follows/{private.id}", json={"action": "wave"}).status_code == 422


def test_follow_request_accept_flow(authed_client, user_factory):
    requester = user_factory("requester")
    owner = user_factory("owner", is_private=True)

    sent = authed_client(requester).post(f"/friend-requests/{owner.id}")
    assert sent.status_code == 201
    assert sent.json()["status"] == "pending"

    duplicate = authed_client(requester).post(f"/friend-requests/{owner.id}")
    assert duplicate.status_code == 409

    status_response = authed_client(requester).get(f"/friend-requests/status/{owner.id}")
    assert status_response.json() == {"status": "pending"}

    client = authed_client(owner)
    pending = client.get("/friend-requests/pending").json()["items"]
    assert [item["from_user_id"] for item in pending] == [str(requester.id)]
    assert client.get("/follows/requests/pending-count").json() == {"pending_count": 1}
    assert [n.category for n in _notifications_for(owner)] == ["follow_request"]

    accepted = client.post(f"/friend-requests/{requester.id}/accept")
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert client.get("/follows/requests/pending-count").json() == {"pending_count": 0}

    with SessionLocal() as session:
        assert session.get(Follow, (requester.id, owner.id)) is not None
    accepted_notes = [n.title for n in _notifications_for(requester)]
    assert accepted_notes == ["Follow Request Accepted"]

    # Already following now.
    assert authed_client(requester).post(f"/friend-requests/{owner.id}").status_code == 409


def test_rejected_request_can_be_sent_again(authed_client, user_factory):
    requester = user_factory("hopeful")
    owner = user_factory("picky", is_private=True)

    authed_client(requester).post(f"/friend-requests/{owner.id}")
    rejected = authed_client(owner).post(f"/friend-requests/{requester.id}/reject")
    assert rejected.json()["status"] == "rejected"
    assert authed_client(owner).post(f"/friend-requests/{requester.id}/accept").status_code == 404

    resent = authed_client(requester).post(f"/friend-requests/{owner.id}")
    assert resent.status_code == 201
    assert resent.json()["status"] == "pending"


def test_cancel_request_is_idempotent(authed_client, user_factory):
    requester = user_factory("shy")
    owner = user_factory("busy_owner", is_private=True)
    client = authed_client(requester)

    client.post(f"/friend-requests/{owner.id}")
    assert client.delete(f"/friend-requests/{owner.id}").status_code == 204
    assert client.get(f"/friend-requests/status/{owner.id}").json() == {"status": "none"}
    assert client.delete(f"/friend-requests/{owner.id}").status_code == 204


def test_friend_request_guards(authed_client, user_factory):
    me = user_factory("solo")
    client = authed_client(me)

    assert client.post(f"/friend-requests/{me.id}").status_code == 400
    assert client.post(f"/friend-requests/{uuid.uuid4()}").status_code == 404
    assert client.post(f"/friend-requests/{uuid.uuid4()}/accept").status_code == 404


def test_blocking_removes_follows_and_prevents_contact(authed_client, user_factory):
    blocker = user_factory("blocker")
    pest = user_factory("pest")
    authed_client(blocker).post(f"/follows/{pest.id}", json={"action": "follow"})
    authed_client(pest).post(f"/follows/{blocker.id}", json={"action": "follow"})

    client = authed_client(blocker)
    blocked = client.post(f"/blocks/{pest.id}")
    assert blocked.json() == {"user_id": str(pest.id), "is_blocked": True}
    assert client.get("/blocks").json() == {"blocked_user_ids": [str(pest.id)]}
    assert client.get(f"/blocks/{pest.id}").json()["is_blocked"] is True

    with SessionLocal() as session:
        assert session.scalars(select(Follow)).all() == []

    pest_client = authed_client(pest)
    assert pest_client.post(f"/follows/{blocker.id}", json={"action": "follow"}).status_code == 403
    assert pest_client.post("/conversations/direct", json={"user_id": str(blocker.id)}).status_code == 403

    client = authed_client(blocker)
    unblocked = client.delete(f"/blocks/{pest.id}")
    assert unblocked.json()["is_blocked"] is False
    assert client.get("/blocks").json() == {"blocked_user_ids": []}


def test_block_guards(authed_client, user_factory):
    me = user_factory("guarded")
    client = authed_client(me)

    assert client.post(f"/blocks/{me.id}").status_code == 400
    assert client.post(f"/blocks/{uuid.uuid4()}").status_code == 404
