"""Application entry point for the FastAPI backend."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Iterable

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import create_session, init_db
from .routers import (
    auth_router,
    blocks_router,
    conversations_router,
    follows_router,
    friend_requests_router,
    notifications_router,
    posts_router,
    system_router,
    users_router,
)
from .services import (
    BackendOfflineError,
    StorageConfigurationError,
    StorageUploadError,
    check_backend_connectivity,
    conversation_stream,
    flush_offline_queue,
    get_offline_queue,
    notification_stream,
    offline_replay_handlers,
)

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version
DISABLE_BACKGROUND_TASKS = (
    os.getenv("DISABLE_BACKGROUND_TASKS", "").lower() == "true" or os.getenv("PYTEST_CURRENT_TEST") is not None
)

app = FastAPI(title=APP_NAME, version=API_VERSION)

cors_origins = os.getenv("CORS_ORIGINS")
if cors_origins:
    origins: Iterable[str] = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(follows_router)
app.include_router(friend_requests_router)
app.include_router(blocks_router)
app.include_router(posts_router)
app.include_router(conversations_router)
app.include_router(notifications_router)
app.include_router(system_router)


@app.exception_handler(BackendOfflineError)
async def _backend_offline_handler(request: Request, exc: BackendOfflineError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.exception_handler(StorageConfigurationError)
async def _storage_config_handler(request: Request, exc: StorageConfigurationError) -> JSONResponse:
    logger.error("Storage is not configured: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Media storage is not configured"},
    )


@app.exception_handler(StorageUploadError)
async def _storage_upload_handler(request: Request, exc: StorageUploadError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


_poll_task: asyncio.Task[None] | None = None
_poll_stop = asyncio.Event()


def _replay_offline_queue() -> None:
    session = create_session()
    try:
        result = flush_offline_queue(offline_replay_handlers(session))
    finally:
        session.close()
    if result.replayed or result.remaining:
        logger.info("Offline queue replay (replayed=%d, remaining=%d)", result.replayed, result.remaining)


async def _poll_once() -> None:
    """Probe the backend and replay queued actions once it is reachable."""

    try:
        connected = await asyncio.to_thread(check_backend_connectivity)
        if connected and get_offline_queue():
            await asyncio.to_thread(_replay_offline_queue)
    except Exception:
        logger.exception("Connectivity poll failed")


async def _poll_loop() -> None:
    while not _poll_stop.is_set():
        await _poll_once()
        try:
            await asyncio.wait_for(_poll_stop.wait(), timeout=settings.connectivity_poll_seconds)
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def _startup() -> None:
    """Ensure the schema exists and start the connectivity poller."""

    try:
        init_db()
    except Exception:
        logger.exception("Database initialisation failed")
        raise

    loop = asyncio.get_running_loop()
    conversation_stream.bind_loop(loop)
    notification_stream.bind_loop(loop)

    if DISABLE_BACKGROUND_TASKS:
        logger.info("Connectivity polling disabled")
        return

    global _poll_task
    if _poll_task is None or _poll_task.done():
        _poll_stop.clear()
        _poll_task = asyncio.create_task(_poll_loop())


@app.on_event("shutdown")
async def _shutdown() -> None:
    conversation_stream.bind_loop(None)
    notification_stream.bind_loop(None)

    if DISABLE_BACKGROUND_TASKS:
        return

    _poll_stop.set()
    if _poll_task is not None:
        try:
            await _poll_task
        except asyncio.CancelledError:
            logger.debug("Connectivity poller cancelled")


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
def healthcheck() -> dict[str, object]:
    connected = check_backend_connectivity()
    return {"status": "ok" if connected else "degraded", "backend_connected": connected}
