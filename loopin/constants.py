"""Project-wide constant values."""
from __future__ import annotations

DEFAULT_BIO = "Welcome to LoopIn!"

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20

DELETED_MESSAGE_PLACEHOLDER = "[Message deleted]"

# Marker returned by write services when the action was deferred to the offline queue.
QUEUED_OFFLINE = "queued-offline"

__all__ = [
    "DEFAULT_BIO",
    "USERNAME_MIN_LENGTH",
    "USERNAME_MAX_LENGTH",
    "DELETED_MESSAGE_PLACEHOLDER",
    "QUEUED_OFFLINE",
]
