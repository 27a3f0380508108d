"""Integration tests for registration, profiles, search and account removal."""
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

from loopin.constants import DEFAULT_BIO  # noqa: E402
from loopin.database import Base, SessionLocal, engine  # noqa: E402
from loopin.main import app  # noqa: E402
from loopin.models import Conversation, ConversationParticipant, Post, User  # noqa: E402
from loopin.services import get_current_user, network_status  # noqa: E402
from loopin.config import get_settings  # noqa: E402
from loopin.services import email_service, user_service  # noqa: E402


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
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def authed_client(client) -> Iterator[Callable[[User], TestClient]]:
    def _with_user(user: User) -> TestClient:
        def _override() -> User:
            return user
        app.dependency_overrides[get_current_user] = _override
        return client
    yield _with_user
    app.dependency_overrides.clear()


def test_register_login_and_me(client):
    response = client.post(
        "/auth/register",
        json={"username": "nova", "email": "nova@example.com", "password": "stardust"},
    )
    assert response.status_code == 201
    assert response.json()["username"] == "nova"

    login = client.post("/auth/login", json={"identifier": "NOVA@example.com", "password": "stardust"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    profile = me.json()
    assert profile["username"] == "nova"
    assert profile["bio"] == DEFAULT_BIO
    assert profile["status"] == "online"
    assert profile["is_private"] is False

    bad = client.post("/auth/login", json={"identifier": "nova", "password": "wrong-password"})
    assert bad.status_code == 401


def test_register_sends_welcome_and_admin_emails(client, monkeypatch):
    sent: list[tuple[str, str, str]] = []
    monkeypatch.setattr(email_service, "email_delivery_configured", lambda: True)
    monkeypatch.setattr(email_service, "send_email", lambda to, subject, body: sent.append((to, subject, body)) or True)
    monkeypatch.setattr(get_settings(), "admin_email", "admin@example.com")

    response = client.post(
        "/auth/register",
        json={"username": "echo", "email": "echo@example.com", "password": "stardust"},
    )
    assert response.status_code == 201

    assert [recipient for recipient, _, _ in sent] == ["echo@example.com", "admin@example.com"]
    assert sent[0][1].startswith("Welcome to")
    assert "Hi echo!" in sent[0][2]
    assert "Username: echo" in sent[1][2]


def test_register_succeeds_when_email_delivery_fails(client, monkeypatch):
    def _failing_send(to, subject, body):
        raise email_service.EmailDeliveryError("smtp down")

    monkeypatch.setattr(email_service, "email_delivery_configured", lambda: True)
    monkeypatch.setattr(email_service, "send_email", _failing_send)

    response = client.post(
        "/auth/register",
        json={"username": "fox", "email": "fox@example.com", "password": "stardust"},
    )
    assert response.status_code == 201
    with SessionLocal() as session:
        assert session.scalar(select(User).where(User.username == "fox")) is not None


def test_signup_emails_are_skipped_without_a_transport(monkeypatch):
    monkeypatch.setattr(email_service, "email_delivery_configured", lambda: False)
    result = email_service.send_signup_emails("quiet@example.com", "quiet")
    assert result == email_service.SignupEmailResult(welcome_sent=False, admin_notified=False)


def test_register_rejects_bad_and_duplicate_usernames(client, user_factory):
    user_factory("taken")

    short = client.post("/auth/register", json={"username": "ab", "email": "ab@example.com", "password": "secret1"})
    assert short.status_code == 400
    assert short.json()["detail"] == "Username must be at least 3 characters."

    duplicate = client.post(
        "/auth/register", json={"username": "taken", "email": "other@example.com", "password": "secret1"}
    )
    assert duplicate.status_code == 409


def test_validate_username_rules():
    assert user_service.validate_username("good_name.1") == "good_name.1"
    for name, message in [
        ("a" * 21, "Username must be no more than 20 characters."),
        ("Upper", "Username must be all lowercase."),
        ("has space", "Username cannot contain spaces."),
        ("bad-dash", "Username can only contain lowercase letters, numbers, '.', and '_'."),
    ]:
        with pytest.raises(ValueError) as excinfo:
            user_service.validate_username(name)
        assert str(excinfo.value) == message


def test_check_username_availability(client, user_factory):
    user_factory("orbit")

    taken = client.get("/users/check-username", params={"username": "orbit"}).json()
    assert taken["available"] is False

    invalid = client.get("/users/check-username", params={"username": "Orbit"}).json()
    assert invalid["available"] is False
    assert invalid["error"] == "Username must be all lowercase."

    free = client.get("/users/check-username", params={"username": "comet"}).json()
    assert free == {"username": "comet", "available": True, "error": None}


def test_update_profile(authed_client, user_factory):
    user = user_factory("mira")
    user_factory("vega")
    client = authed_client(user)

    response = client.patch("/users/me", json={"bio": "Stargazer", "is_private": True, "status": "busy"})
    assert response.status_code == 200
    body = response.json()
    assert body["bio"] == "Stargazer"
    assert body["is_private"] is True
    assert body["status"] == "busy"

    conflict = client.patch("/users/me", json={"username": "vega"})
    assert conflict.status_code == 409

    renamed = client.patch("/users/me", json={"username": "mira_2"})
    assert renamed.status_code == 200
    assert renamed.json()["username"] == "mira_2"


def test_search_ranks_exact_matches_first(authed_client, user_factory):
    viewer = user_factory("viewer")
    user_factory("samuel", full_name="Samuel Adams")
    user_factory("sam", full_name="Sam Stone")
    user_factory("bob", full_name="Bob Samson")
    client = authed_client(viewer)

    response = client.get("/users/search", params={"q": "Sam"})
    assert response.status_code == 200
    usernames = [item["username"] for item in response.json()["items"]]
    assert usernames[:2] == ["sam", "samuel"]
    assert "bob" in usernames
    assert "viewer" not in usernames


def test_get_users_by_ids(authed_client, user_factory):
    first = user_factory("first")
    second = user_factory("second")
    user_factory("third")
    client = authed_client(first)

    response = client.get("/users", params={"ids": [str(first.id), str(second.id)]})
    assert response.status_code == 200
    assert sorted(item["username"] for item in response.json()["items"]) == ["first", "second"]

    missing = client.get(f"/users/{uuid.uuid4()}")
    assert missing.status_code == 404


def test_toggle_saved_posts(authed_client, user_factory):
    author = user_factory("author")
    reader = user_factory("reader")
    with SessionLocal() as session:
        post = Post(user_id=author.id, content="Saved for later", media=[], tagged_user_ids=[])
        session.add(post)
        session.commit()
        post_id = post.id
    client = authed_client(reader)

    saved = client.post(f"/users/me/saved-posts/{post_id}")
    assert saved.json() == {"post_id": str(post_id), "saved": True}
    listing = client.get("/users/me/saved-posts").json()["items"]
    assert [item["id"] for item in listing] == [str(post_id)]

    unsaved = client.post(f"/users/me/saved-posts/{post_id}")
    assert unsaved.json()["saved"] is False
    assert client.get("/users/me/saved-posts").json()["items"] == []


def test_avatar_upload_and_removal(authed_client, user_factory, monkeypatch):
    user = user_factory("pixel")
    uploads: list[tuple[str, str]] = []

    def _fake_upload(data_url: str, folder: str) -> str:
        uploads.append((data_url, folder))
        return "https://cdn.example.com/avatars/pixel.png"

    monkeypatch.setattr(user_service, "upload_data_url", _fake_upload)
    client = authed_client(user)

    response = client.put("/users/me/avatar", json={"avatar": "data:image/png;base64,iVBORw0KGgo="})
    assert response.status_code == 200
    assert response.json()["profile_image"] == "https://cdn.example.com/avatars/pixel.png"
    assert uploads[0][1] == f"avatars/{user.id}"

    cleared = client.put("/users/me/avatar", json={"avatar": None})
    assert cleared.json()["profile_image"] is None


def test_delete_account_removes_direct_conversations(authed_client, user_factory):
    leaving = user_factory("leaving")
    friend = user_factory("friend")
    with SessionLocal() as session:
        conversation = Conversation(is_group=False, created_by_id=leaving.id)
        conversation.participants = [
            ConversationParticipant(user_id=leaving.id),
            ConversationParticipant(user_id=friend.id),
        ]
        session.add(conversation)
        session.add(Post(user_id=leaving.id, content="bye", media=[], tagged_user_ids=[]))
        session.commit()

    client = authed_client(leaving)
    response = client.delete("/users/me")
    assert response.status_code == 204

    with SessionLocal() as session:
        assert session.get(User, leaving.id) is None
        assert session.get(User, friend.id) is not None
        assert session.scalars(select(Conversation)).all() == []
        assert session.scalars(select(Post)).all() == []


def test_delete_account_hands_over_group_admin(authed_client, user_factory):
    leaving = user_factory("group_owner")
    deputy = user_factory("deputy")
    member = user_factory("member_g")
    with SessionLocal() as session:
        shared = Conversation(is_group=True, name="Shared", created_by_id=leaving.id)
        shared.participants = [
            ConversationParticipant(user_id=leaving.id, role="admin"),
            ConversationParticipant(user_id=member.id, role="member"),
            ConversationParticipant(user_id=deputy.id, role="co_admin"),
        ]
        solo = Conversation(is_group=True, name="Solo", created_by_id=leaving.id)
        solo.participants = [ConversationParticipant(user_id=leaving.id, role="admin")]
        session.add_all([shared, solo])
        session.commit()
        shared_id, solo_id = shared.id, solo.id

    assert authed_client(leaving).delete("/users/me").status_code == 204

    with SessionLocal() as session:
        assert session.get(Conversation, solo_id) is None
        remaining = session.get(Conversation, shared_id)
        roles = {participant.user_id: participant.role for participant in remaining.participants}
        assert roles == {deputy.id: "admin", member.id: "member"}
