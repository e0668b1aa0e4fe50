"""Session storage and per-conversation locking."""

from messenger_gateway.session.locks import KeyedLockRegistry
from messenger_gateway.session.store import (
    DEFAULT_SESSION_TTL_SECONDS,
    InMemorySessionStore,
    SessionRecord,
    SessionStore,
)

__all__ = [
    "DEFAULT_SESSION_TTL_SECONDS",
    "InMemorySessionStore",
    "KeyedLockRegistry",
    "SessionRecord",
    "SessionStore",
]
