"""Integration tests for posts, likes, comments and media handling."""
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
from loopin.models import Notification, User  # noqa: E402
from loopin.services import post_service  # noqa: E402
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


def _notification_categories(user: User) -> list[str]:
    with SessionLocal() as session:
        stmt = select(Notification.category).where(Notification.recipient_id == user.id)
        return sorted(session.scalars(stmt))


def test_create_post_with_tags_notifies_tagged_users(authed_client, user_factory):
    author = user_factory("writer")
    tagged = user_factory("tagged")
    client = authed_client(author)

    response = client.post(
        "/posts",
        json={"content": "Hello LoopIn", "tagged_user_ids": [str(tagged.id), str(author.id)]},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["content"] == "Hello LoopIn"
    assert body["username"] == "writer"
    assert body["like_user_ids"] == []
    assert body["comments"] == []
    assert _notification_categories(tagged) == ["post_tag"]
    assert _notification_categories(author) == []

    fetched = client.get(f"/posts/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]


def test_data_url_media_is_uploaded(authed_client, user_factory, monkeypatch):
    author = user_factory("photographer")
    folders: list[str] = []

    def _fake_upload(data_url: str, folder: str) -> str:
        folders.append(folder)
        return "https://cdn.example.com/posts/photo.png"

    monkeypatch.setattr(post_service, "upload_data_url", _fake_upload)
    client = authed_client(author)

    response = client.post(
        "/posts",
        json={
            "content": "Sunset",
            "media": [
                {"url": "data:image/png;base64,iVBORw0KGgo=", "type": "image"},
                {"url": "https://videos.example.com/clip.mp4", "type": "video"},
            ],
        },
    )
    assert response.status_code == 201
    media = response.json()["media"]
    assert [item["url"] for item in media] == [
        "https://cdn.example.com/posts/photo.png",
        "https://videos.example.com/clip.mp4",
    ]
    assert folders == [f"posts/{author.id}"]


def test_invalid_data_url_is_rejected(authed_client, user_factory):
    client = authed_client(user_factory("broken"))

    response = client.post(
        "/posts",
        json={"content": "oops", "media": [{"url": "data:image/png;base64,***", "type": "image"}]},
    )
    assert response.status_code == 400


def test_feed_includes_own_and_followed_posts(authed_client, user_factory):
    reader = user_factory("reader")
    followed = user_factory("followed")
    stranger = user_factory("stranger")

    authed_client(followed).post("/posts", json={"content": "from followed"})
    authed_client(stranger).post("/posts", json={"content": "from stranger"})
    authed_client(reader).post("/posts", json={"content": "from reader"})

    client = authed_client(reader)
    client.post(f"/follows/{followed.id}", json={"action": "follow"})
    feed = client.get("/posts/feed").json()["items"]
    assert [item["content"] for item in feed] == ["from reader", "from followed"]

    by_user = client.get(f"/posts/user/{stranger.id}").json()["items"]
    assert [item["content"] for item in by_user] == ["from stranger"]


def test_likes_and_comments(authed_client, user_factory):
    author = user_factory("poster")
    fan = user_factory("liker")
    post_id = authed_client(author).post("/posts", json={"content": "Like me"}).json()["id"]

    client = authed_client(fan)
    assert client.post(f"/posts/{post_id}/like").json() == {"liked": True}
    assert _notification_categories(author) == ["post_like"]
    assert client.get(f"/posts/{post_id}").json()["like_user_ids"] == [str(fan.id)]
    assert client.post(f"/posts/{post_id}/like").json() == {"liked": False}
    assert client.post(f"/posts/{uuid.uuid4()}/like").json() == {"liked": False}

    comment = client.post(f"/posts/{post_id}/comments", json={"content": "Nice post"})
    assert comment.status_code == 201
    comment_id = comment.json()["id"]
    assert comment.json()["username"] == "liker"
    assert _notification_categories(author) == ["post_comment", "post_like"]

    liked = authed_client(author).post(f"/posts/{post_id}/comments/{comment_id}/like")
    assert liked.json() == {"liked": True}
    comments = authed_client(author).get(f"/posts/{post_id}").json()["comments"]
    assert comments[0]["like_user_ids"] == [str(author.id)]

    assert client.post(f"/posts/{uuid.uuid4()}/comments", json={"content": "lost"}).status_code == 404
    assert client.post(f"/posts/{post_id}/comments/{uuid.uuid4()}/like").status_code == 404


def test_delete_post_owner_only(authed_client, user_factory, monkeypatch):
    author = user_factory("owner_poster")
    other = user_factory("other_poster")
    deleted_urls: list[str] = []
    monkeypatch.setattr(post_service, "delete_object_by_url", deleted_urls.append)

    post_id = authed_client(author).post(
        "/posts",
        json={"content": "temporary", "media": [{"url": "https://cdn.example.com/posts/a.png", "type": "image"}]},
    ).json()["id"]

    assert authed_client(other).delete(f"/posts/{post_id}").status_code == 403

    client = authed_client(author)
    assert client.delete(f"/posts/{post_id}").status_code == 204
    assert client.get(f"/posts/{post_id}").status_code == 404
    assert deleted_urls == ["https://cdn.example.com/posts/a.png"]


def test_posts_by_ids(authed_client, user_factory):
    author = user_factory("collector")
    client = authed_client(author)
    first = client.post("/posts", json={"content": "first"}).json()["id"]
    client.post("/posts", json={"content": "second"})

    response = client.get("/posts", params={"ids": [first]})
    assert [item["id"] for item in response.json()["items"]] == [first]
