"""WebSocket fan-out for conversation and notification events."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class StreamHub:
    """Tracks WebSocket connections per channel and broadcasts payloads.

    Services run inside the threadpool, so :meth:`publish` hands the
    broadcast over to the event loop bound at startup.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._channels: dict[str, set[WebSocket]] = {}
        self._connections: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task[None]] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        self._loop = loop

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        async with self._lock:
            group = self._channels.setdefault(channel, set())
            group.add(websocket)
            self._connections[websocket] = channel

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            channel = self._connections.pop(websocket, None)
            if not channel:
                return
            group = self._channels.get(channel)
            if group is None:
                return
            group.discard(websocket)
            if not group:
                self._channels.pop(channel, None)

    def has_listeners(self, channel: str) -> bool:
        return bool(self._channels.get(channel))

    async def broadcast(self, channels: str | Iterable[str], payload: dict[str, Any]) -> None:
        if not channels:
            return
        if isinstance(channels, str):
            target_channels = [channels]
        else:
            target_channels = [channel for channel in channels if channel]
        serialized = json.dumps(payload, default=str)
        async with self._lock:
            targets: list[WebSocket] = []
            for channel in target_channels:
                targets.extend(self._channels.get(channel, ()))
        for ws in targets:
            try:
                await ws.send_text(serialized)
            except Exception:
                logger.debug("Dropping closed %s socket", self.name)
                await self.disconnect(ws)

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        """Schedule a broadcast from synchronous code."""

        if not self.has_listeners(channel):
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None:
            task = running.create_task(self.broadcast(channel, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(channel, payload), loop)


conversation_stream = StreamHub("conversation")
notification_stream = StreamHub("notification")


__all__ = ["StreamHub", "conversation_stream", "notification_stream"]
