"""Connectivity tracking and retry helpers wrapped around every backend call."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_OFFLINE_MESSAGE = "Backend is offline. Please check your connection."
ONLINE_WAIT_TIMEOUT_MESSAGE = "Timeout waiting for network connection"

TRANSIENT_ERROR_CODES = frozenset(
    {"failed-precondition", "unavailable", "resource-exhausted", "deadline-exceeded"}
)
_TRANSIENT_MESSAGE_MARKERS = ("offline", "network", "failed to get")
_TRANSIENT_OPERATIONAL_MARKERS = (
    "connection",
    "connect",
    "timeout",
    "timed out",
    "server closed",
    "database is locked",
    "lock",
)


class BackendOfflineError(RuntimeError):
    """Raised when the backend cannot be reached after the allowed retries."""


@dataclass(slots=True, frozen=True)
class NetworkState:
    is_online: bool = True
    backend_connected: bool = True
    last_checked: float = 0.0


Listener = Callable[[NetworkState], None]


class NetworkStatus:
    """Observable connectivity state shared by the whole process."""

    def __init__(self) -> None:
        self._state = NetworkState()
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @property
    def state(self) -> NetworkState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    @property
    def backend_connected(self) -> bool:
        return self._state.backend_connected

    @property
    def last_checked(self) -> float:
        return self._state.last_checked

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and call it once with the current state.

        Returns a callable that removes the listener again.
        """

        with self._lock:
            self._listeners.append(listener)
        self._call(listener, self._state)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update_status(self, **changes: Any) -> None:
        self._merge(changes)
        self._notify()

    def update_status_silently(self, **changes: Any) -> None:
        self._merge(changes)

    def set_offline(self, offline: bool) -> None:
        self.update_status(is_online=not offline, backend_connected=not offline)

    def reset(self) -> None:
        with self._lock:
            self._state = NetworkState()
            self._listeners.clear()

    def _merge(self, changes: dict[str, Any]) -> None:
        with self._lock:
            self._state = replace(self._state, **{**changes, "last_checked": time.time()})

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            snapshot = self._state
        for listener in listeners:
            self._call(listener, snapshot)

    @staticmethod
    def _call(listener: Listener, state: NetworkState) -> None:
        try:
            listener(state)
        except Exception:
            logger.exception("Network status listener failed")


network_status = NetworkStatus()

_probe_lock = threading.Lock()


def check_backend_connectivity() -> bool:
    """Probe the database, reusing a recent result when one is available."""

    settings = get_settings()
    if settings.emulator_mode:
        network_status.update_status_silently(is_online=True, backend_connected=True)
        return True

    if not network_status.is_online:
        return False

    if time.time() - network_status.last_checked < settings.connectivity_cache_seconds:
        return network_status.backend_connected

    if not _probe_lock.acquire(blocking=False):
        # Another thread is already probing.
        return network_status.backend_connected
    try:
        previous = network_status.backend_connected
        try:
            with get_engine().connect() as connection:
                connection.execute(text("SELECT 1"))
            connected = True
        except SQLAlchemyError as exc:
            logger.warning("Backend connectivity probe failed: %s", exc)
            connected = False

        network_status.update_status_silently(backend_connected=connected)
        if connected != previous:
            logger.info("Backend connectivity changed: connected=%s", connected)
            network_status.update_status()
        return connected
    finally:
        _probe_lock.release()


def is_transient_error(exc: BaseException) -> bool:
    """Return ``True`` for failures that are worth retrying."""

    if isinstance(exc, BackendOfflineError):
        return False
    if isinstance(exc, (DisconnectionError, PoolTimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, OperationalError):
        detail = str(exc.orig if exc.orig is not None else exc).lower()
        if any(marker in detail for marker in _TRANSIENT_OPERATIONAL_MARKERS):
            return True
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    if getattr(exc, "code", None) in TRANSIENT_ERROR_CODES:
        return True
    if isinstance(exc, SQLAlchemyError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


def execute_with_retry(
    operation: Callable[[], T],
    max_retries: int | None = None,
    delay_ms: int | None = None,
    offline_error_msg: str = DEFAULT_OFFLINE_MESSAGE,
    session: Session | None = None,
) -> T:
    """Run ``operation`` and retry transient failures with linear backoff.

    While the process is offline the operation is attempted exactly once.
    Non-transient errors are re-raised untouched; transient ones surface as
    :class:`BackendOfflineError` once retries run out.
    """

    settings = get_settings()
    if max_retries is None:
        max_retries = settings.retry_max_attempts
    if delay_ms is None:
        delay_ms = settings.retry_delay_ms

    if not network_status.is_online:
        try:
            return operation()
        except Exception as exc:
            if is_transient_error(exc):
                raise BackendOfflineError(offline_error_msg) from exc
            raise

    retries = 0
    while True:
        try:
            return operation()
        except Exception as exc:
            if not network_status.is_online:
                raise BackendOfflineError(offline_error_msg) from exc
            if not is_transient_error(exc):
                raise
            if retries >= max_retries:
                logger.warning("Giving up after %s retries: %s", retries, exc)
                raise BackendOfflineError(offline_error_msg) from exc

            retries += 1
            logger.info("Retrying backend operation (%s/%s) after: %s", retries, max_retries, exc)
            if session is not None:
                session.rollback()
            _sleep(delay_ms * (1 + retries * 0.5) / 1000)
            if not network_status.is_online:
                raise BackendOfflineError(offline_error_msg) from exc


def execute_when_online(task: Callable[[], T], timeout_seconds: float | None = None) -> T:
    """Run ``task`` once the process is online and the backend is reachable."""

    if timeout_seconds is None:
        timeout_seconds = get_settings().online_wait_timeout_seconds

    if network_status.is_online and not network_status.backend_connected:
        check_backend_connectivity()
    if network_status.is_online and network_status.backend_connected:
        return task()

    ready = threading.Event()

    def _listener(state: NetworkState) -> None:
        if state.is_online and state.backend_connected:
            ready.set()

    unsubscribe = network_status.subscribe(_listener)
    try:
        if not ready.wait(timeout_seconds):
            raise BackendOfflineError(ONLINE_WAIT_TIMEOUT_MESSAGE)
    finally:
        unsubscribe()
    return task()


def toggle_backend_network(enable: bool) -> None:
    """Switch the process between online and offline mode."""

    if enable:
        network_status.update_status(is_online=True, backend_connected=True)
        logger.info("Backend network enabled")
        return

    network_status.update_status(is_online=False, backend_connected=False)
    get_engine().dispose()
    logger.info("Backend network disabled")


__all__ = [
    "BackendOfflineError",
    "NetworkState",
    "NetworkStatus",
    "network_status",
    "check_backend_connectivity",
    "is_transient_error",
    "execute_with_retry",
    "execute_when_online",
    "toggle_backend_network",
    "DEFAULT_OFFLINE_MESSAGE",
]
