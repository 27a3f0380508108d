"""S3-compatible blob storage for avatars, post media and chat attachments."""
from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterable
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from ..config import get_settings
from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)

_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w-]+=[^;,]+)*)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class StorageConfig:
    key: str
    secret: str
    bucket: str
    region: str | None
    endpoint_url: str | None
    public_base_url: str


class StorageConfigurationError(RuntimeError):
    """Raised when the blob storage settings are missing or invalid."""


class StorageUploadError(RuntimeError):
    """Raised when an object cannot be written to or removed from storage."""


@lru_cache(maxsize=1)
def load_storage_config() -> StorageConfig:
    settings = get_settings()
    bucket = (settings.storage_bucket or "").strip()
    if is_placeholder(bucket):
        raise StorageConfigurationError("STORAGE_BUCKET must be set to the target bucket name")

    try:
        key = require_secret("STORAGE_ACCESS_KEY_ID")
        secret = require_secret("STORAGE_SECRET_ACCESS_KEY")
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    endpoint_url = (settings.storage_endpoint_url or "").strip() or None
    public_base_url = (settings.storage_public_base_url or "").strip()
    if not public_base_url:
        if endpoint_url:
            public_base_url = f"{endpoint_url.rstrip('/')}/{bucket}"
        elif settings.storage_region:
            public_base_url = f"https://{bucket}.s3.{settings.storage_region}.amazonaws.com"
        else:
            public_base_url = f"https://{bucket}.s3.amazonaws.com"

    return StorageConfig(
        key=key,
        secret=secret,
        bucket=bucket,
        region=settings.storage_region,
        endpoint_url=endpoint_url,
        public_base_url=public_base_url.rstrip("/"),
    )


@lru_cache(maxsize=1)
def get_storage_client() -> BaseClient:
    """Create a singleton boto3 S3 client."""

    config = load_storage_config()
    session = Session()
    return session.client(
        "s3",
        region_name=config.region,
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.key,
        aws_secret_access_key=config.secret,
    )


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def _object_key(folder: str, extension: str) -> str:
    if extension and not re.fullmatch(r"\.[A-Za-z0-9]{1,10}", extension):
        extension = ""
    safe_folder = "/".join(_sanitize_segments((folder or "uploads").replace("\\", "/").split("/"))) or "uploads"
    return f"{safe_folder}/{uuid.uuid4().hex}{extension.lower()}"


def build_public_url(key: str) -> str:
    config = load_storage_config()
    return f"{config.public_base_url}/{key.lstrip('/')}"


def _bucket_hosts(config: StorageConfig) -> set[str]:
    hosts = {f"{config.bucket}.s3.amazonaws.com"}
    if config.region:
        hosts.add(f"{config.bucket}.s3.{config.region}.amazonaws.com")
    return hosts


def key_from_url(url: str) -> str | None:
    """Return the object key for a URL served from the configured bucket.

    URLs on any other host map to ``None``.
    """

    config = load_storage_config()
    prefix = f"{config.public_base_url}/"
    if url.startswith(prefix):
        return url[len(prefix):] or None

    parsed = urlparse(url)
    host = parsed.netloc.lower()
    path = parsed.path.lstrip("/")
    if host in _bucket_hosts(config):
        return path or None
    if config.endpoint_url and host == urlparse(config.endpoint_url).netloc.lower():
        bucket_prefix = f"{config.bucket}/"
        if path.startswith(bucket_prefix):
            return path[len(bucket_prefix):] or None
    return None


def is_data_url(value: str | None) -> bool:
    return bool(value) and value.startswith("data:")


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """Split a base64 ``data:`` URL into raw bytes and its content type."""

    match = _DATA_URL_PATTERN.match(data_url.strip())
    if match is None or not match.group("b64"):
        raise ValueError("Expected a base64 encoded data URL")
    content_type = match.group("mime") or "application/octet-stream"
    try:
        payload = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Data URL payload is not valid base64") from exc
    return payload, content_type


def _put_object(file_obj: BinaryIO, key: str, content_type: str) -> str:
    config = load_storage_config()
    client = get_storage_client()
    try:
        client.upload_fileobj(
            file_obj,
            config.bucket,
            key,
            ExtraArgs={"ACL": "public-read", "ContentType": content_type},
        )
    except (ClientError, BotoCoreError) as exc:
        logger.exception("Upload of %s to storage failed", key)
        raise StorageUploadError("Upload to storage failed") from exc
    return build_public_url(key)


def upload_data_url(data_url: str, folder: str) -> str:
    """Upload a base64 ``data:`` URL and return the public URL of the object."""

    payload, content_type = decode_data_url(data_url)
    extension = mimetypes.guess_extension(content_type) or ""
    key = _object_key(folder, extension)
    url = _put_object(BytesIO(payload), key, content_type)
    logger.info("Uploaded %s bytes to %s", len(payload), key)
    return url


def upload_file(upload: UploadFile, folder: str) -> str:
    """Upload a multipart ``UploadFile`` and return the public URL."""

    file_obj = getattr(upload, "file", None)
    if file_obj is None:
        raise StorageUploadError("Upload is missing its file buffer")
    content_type = (upload.content_type or "").strip() or "application/octet-stream"
    key = _object_key(folder, Path(upload.filename or "").suffix)
    file_obj.seek(0)
    return _put_object(file_obj, key, content_type)


def delete_object_by_url(url: str) -> None:
    """Remove the object behind ``url`` from the bucket."""

    if not url or is_data_url(url):
        return
    key = key_from_url(url)
    if not key:
        return
    config = load_storage_config()
    try:
        get_storage_client().delete_object(Bucket=config.bucket, Key=key)
    except (ClientError, BotoCoreError) as exc:
        logger.exception("Failed to delete storage object %s", key)
        raise StorageUploadError("Unable to delete media from storage") from exc


__all__ = [
    "StorageConfig",
    "StorageConfigurationError",
    "StorageUploadError",
    "load_storage_config",
    "get_storage_client",
    "build_public_url",
    "key_from_url",
    "is_data_url",
    "decode_data_url",
    "upload_data_url",
    "upload_file",
    "delete_object_by_url",
]
