"""File-backed queue of write actions deferred while the backend is unreachable."""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from ..config import get_settings

logger = logging.getLogger(__name__)

ReplayHandler = Callable[[dict[str, Any]], Any]

_queue_lock = threading.RLock()


@dataclass(slots=True)
class FlushResult:
    replayed: int
    remaining: int


def _queue_path() -> Path:
    return Path(get_settings().offline_queue_path)


def _read_queue(path: Path) -> list[dict[str, Any]]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except OSError:
        logger.exception("Unable to read offline queue at %s", path)
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Offline queue at %s is corrupt; treating it as empty", path)
        return []
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _write_queue(path: Path, items: list[dict[str, Any]]) -> None:
    if not items:
        path.unlink(missing_ok=True)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(items, default=str), encoding="utf-8")
    tmp_path.replace(path)


def _owned_by(item: Mapping[str, Any], owner_id: Any) -> bool:
    return owner_id is None or item.get("owner_id") == str(owner_id)


def queue_offline_action(
    action_type: str,
    payload: Mapping[str, Any],
    *,
    owner_id: Any = None,
) -> dict[str, Any]:
    """Append an action to the queue and return the stored entry."""

    entry = {
        "action_type": action_type,
        "owner_id": str(owner_id) if owner_id is not None else None,
        # Round-trip through JSON so UUIDs and datetimes are stored as strings.
        "payload": json.loads(json.dumps(dict(payload), default=str)),
        "timestamp": int(time.time() * 1000),
    }
    path = _queue_path()
    with _queue_lock:
        items = _read_queue(path)
        items.append(entry)
        _write_queue(path, items)
    logger.info("Queued offline action %s (%s pending)", action_type, len(items))
    return entry


def get_offline_queue(owner_id: Any = None) -> list[dict[str, Any]]:
    """Queued actions, limited to one owner when ``owner_id`` is given."""

    with _queue_lock:
        return [item for item in _read_queue(_queue_path()) if _owned_by(item, owner_id)]


def clear_offline_queue(owner_id: Any = None) -> int:
    """Drop queued actions (only those of ``owner_id`` when given) and return how many went."""

    path = _queue_path()
    with _queue_lock:
        items = _read_queue(path)
        kept = [item for item in items if not _owned_by(item, owner_id)]
        _write_queue(path, kept)
    return len(items) - len(kept)


def flush_offline_queue(handlers: Mapping[str, ReplayHandler], *, owner_id: Any = None) -> FlushResult:
    """Replay queued actions in order, stopping at the first failure.

    Actions that were not replayed stay queued: the one that failed, all
    actions after it, and any action without a registered handler. With
    ``owner_id`` only that owner's actions are replayed; the rest stay put.
    """

    path = _queue_path()
    with _queue_lock:
        items = _read_queue(path)
        if not items:
            return FlushResult(replayed=0, remaining=0)

        remaining: list[dict[str, Any]] = []
        replayed = 0
        for index, item in enumerate(items):
            if not _owned_by(item, owner_id):
                remaining.append(item)
                continue
            handler = handlers.get(str(item.get("action_type")))
            if handler is None:
                logger.warning("No replay handler for offline action %s", item.get("action_type"))
                remaining.append(item)
                continue
            try:
                handler(dict(item.get("payload") or {}))
            except Exception:
                logger.exception("Replaying offline action %s failed", item.get("action_type"))
                remaining.extend(items[index:])
                break
            replayed += 1

        _write_queue(path, remaining)

    left = sum(1 for item in remaining if _owned_by(item, owner_id))
    if replayed:
        logger.info("Replayed %s offline actions, %s remaining", replayed, left)
    return FlushResult(replayed=replayed, remaining=left)


__all__ = [
    "FlushResult",
    "ReplayHandler",
    "queue_offline_action",
    "get_offline_queue",
    "clear_offline_queue",
    "flush_offline_queue",
]
