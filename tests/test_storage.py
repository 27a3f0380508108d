"""Tests for mapping media URLs back to bucket objects."""
from __future__ import annotations

import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_loopin.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_BACKGROUND_TASKS", "true")

from loopin.services import storage_service  # noqa: E402
from loopin.services.storage_service import StorageConfig  # noqa: E402


class _RecordingClient:
    def __init__(self) -> None:
        self.deleted: list[dict[str, str]] = []

    def delete_object(self, **kwargs) -> None:
        self.deleted.append(kwargs)


def _config(**overrides) -> StorageConfig:
    values = {
        "key": "test-key",
        "secret": "test-secret",
        "bucket": "loopin-media",
        "region": "us-east-1",
        "endpoint_url": "https://storage.example.net",
        "public_base_url": "https://cdn.loopin.test/media",
    }
    values.update(overrides)
    return StorageConfig(**values)


@pytest.fixture
def storage_client(monkeypatch) -> _RecordingClient:
    client = _RecordingClient()
    monkeypatch.setattr(storage_service, "load_storage_config", lambda: _config())
    monkeypatch.setattr(storage_service, "get_storage_client", lambda: client)
    return client


def test_key_from_url_accepts_our_hosts(storage_client):
    assert storage_service.key_from_url("https://cdn.loopin.test/media/posts/u1/a.png") == "posts/u1/a.png"
    assert (
        storage_service.key_from_url("https://loopin-media.s3.us-east-1.amazonaws.com/avatars/u1/b.png")
        == "avatars/u1/b.png"
    )
    assert (
        storage_service.key_from_url("https://storage.example.net/loopin-media/chat/c1/c.pdf") == "chat/c1/c.pdf"
    )


def test_key_from_url_rejects_foreign_hosts(storage_client):
    assert storage_service.key_from_url("https://attacker.example/posts/victim-id/photo.png") is None
    assert storage_service.key_from_url("https://attacker.example/loopin-media/posts/victim-id/photo.png") is None
    assert storage_service.key_from_url("https://storage.example.net/other-bucket/posts/x.png") is None


def test_delete_object_by_url_ignores_foreign_urls(storage_client):
    storage_service.delete_object_by_url("https://attacker.example/posts/victim-id/photo.png")
    assert storage_client.deleted == []

    storage_service.delete_object_by_url("https://cdn.loopin.test/media/posts/owner/photo.png")
    assert storage_client.deleted == [{"Bucket": "loopin-media", "Key": "posts/owner/photo.png"}]
