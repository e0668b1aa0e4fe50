"""Session records and the key-value store interface they persist through."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60

_KNOWN_KEYS = {"userId", "pageId", "lastEventTimestamp"}


@dataclass
class SessionRecord:
    """
    Lightweight per-conversation metadata.

    Unknown fields found in storage are kept in ``extra`` and written back
    untouched.
    """

    user_id: str | None = None
    page_id: str | None = None
    last_event_timestamp: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def merged(
        self,
        *,
        user_id: str | None = None,
        page_id: str | None = None,
        last_event_timestamp: int | None = None,
    ) -> "SessionRecord":
        """Return a copy where provided values win and absent ones are inherited."""
        return SessionRecord(
            user_id=user_id or self.user_id,
            page_id=page_id or self.page_id,
            last_event_timestamp=(
                last_event_timestamp if last_event_timestamp is not None else self.last_event_timestamp
            ),
            extra=dict(self.extra),
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.page_id is not None:
            data["pageId"] = self.page_id
        data["lastEventTimestamp"] = int(self.last_event_timestamp or 0)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        try:
            last_ts = int(data.get("lastEventTimestamp") or 0)
        except (TypeError, ValueError):
            last_ts = 0
        return cls(
            user_id=str(data["userId"]) if data.get("userId") else None,
            page_id=str(data["pageId"]) if data.get("pageId") else None,
            last_event_timestamp=last_ts,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


class SessionStore(ABC):
    """Async key-value map with per-entry TTL."""

    @abstractmethod
    async def read(self, key: str) -> SessionRecord | None:
        pass

    @abstractmethod
    async def write(self, key: str, record: SessionRecord, ttl_seconds: int | None = None) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    async def close(self) -> None:
        return None


class InMemorySessionStore(SessionStore):
    """Process-local store; entries expire lazily on read."""

    def __init__(self, prefix: str = "session:", default_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS):
        self.prefix = prefix
        self.default_ttl_seconds = default_ttl_seconds
        self._entries: dict[str, tuple[dict[str, Any], float]] = {}

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def read(self, key: str) -> SessionRecord | None:
        namespaced = self._key(key)
        entry = self._entries.get(namespaced)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() > expires_at:
            self._entries.pop(namespaced, None)
            return None
        return SessionRecord.from_dict(dict(value))

    async def write(self, key: str, record: SessionRecord, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        self._entries[self._key(key)] = (record.to_dict(), time.monotonic() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(self._key(key), None)

    def __len__(self) -> int:
        return len(self._entries)
