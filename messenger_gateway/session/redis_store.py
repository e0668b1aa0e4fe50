"""Redis-backed session store."""

from __future__ import annotations

import json

from loguru import logger
from redis.asyncio import Redis

from messenger_gateway.errors import SessionPersistenceError
from messenger_gateway.session.store import DEFAULT_SESSION_TTL_SECONDS, SessionRecord, SessionStore


class RedisSessionStore(SessionStore):
    """Store session records as JSON strings with ``SET ... EX ttl``."""

    def __init__(
        self,
        *,
        url: str | None = None,
        client: Redis | None = None,
        prefix: str = "session:",
        default_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
    ):
        if client is None and not url:
            raise ValueError("RedisSessionStore requires either a client or a url.")
        self._owns_client = client is None
        self.redis: Redis = client if client is not None else Redis.from_url(url, decode_responses=True)
        self.prefix = prefix
        self.default_ttl_seconds = default_ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def read(self, key: str) -> SessionRecord | None:
        raw = await self.redis.get(self._key(key))
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            await self.redis.delete(self._key(key))
            raise SessionPersistenceError(f"Failed to parse session payload for key {key}: {e}") from e
        if not isinstance(data, dict):
            logger.warning(f"Discarding non-object session payload for {key}")
            await self.redis.delete(self._key(key))
            return None
        return SessionRecord.from_dict(data)

    async def write(self, key: str, record: SessionRecord, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        await self.redis.set(self._key(key), json.dumps(record.to_dict()), ex=int(ttl))

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def close(self) -> None:
        if self._owns_client:
            await self.redis.aclose()
