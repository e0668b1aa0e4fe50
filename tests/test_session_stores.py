import asyncio
import json

import pytest

from messenger_gateway.errors import SessionPersistenceError
from messenger_gateway.session.locks import KeyedLockRegistry
from messenger_gateway.session.redis_store import RedisSessionStore
from messenger_gateway.session.store import InMemorySessionStore, SessionRecord


class _FakeRedis:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, key):
        self.data.pop(key, None)

    async def aclose(self):
        self.closed = True


def test_record_merge_keeps_known_values() -> None:
    record = SessionRecord(user_id="u1", page_id="p1", last_event_timestamp=5, extra={"locale": "en"})

    merged = record.merged(user_id=None, page_id=None, last_event_timestamp=9)

    assert (merged.user_id, merged.page_id, merged.last_event_timestamp) == ("u1", "p1", 9)
    assert merged.extra == {"locale": "en"}
    assert record.merged(page_id="p2").page_id == "p2"


def test_record_round_trips_camel_case() -> None:
    data = {"userId": "u1", "pageId": "p1", "lastEventTimestamp": 7, "custom": [1]}
    record = SessionRecord.from_dict(data)

    assert record.user_id == "u1"
    assert record.extra == {"custom": [1]}
    assert record.to_dict() == data


async def test_memory_store_ttl_and_delete() -> None:
    store = InMemorySessionStore()
    await store.write("u1", SessionRecord(user_id="u1"))
    await store.write("u2", SessionRecord(user_id="u2"), ttl_seconds=-1)

    assert (await store.read("u1")).user_id == "u1"
    assert await store.read("u2") is None

    await store.delete("u1")
    assert await store.read("u1") is None
    assert len(store) == 0


async def test_redis_store_uses_prefix_and_ttl() -> None:
    redis = _FakeRedis()
    store = RedisSessionStore(client=redis, prefix="messenger:", default_ttl_seconds=60)

    await store.write("u1", SessionRecord(user_id="u1", page_id="p1", last_event_timestamp=3))

    assert json.loads(redis.data["messenger:u1"]) == {"userId": "u1", "pageId": "p1", "lastEventTimestamp": 3}
    assert redis.expiry["messenger:u1"] == 60
    assert (await store.read("u1")).page_id == "p1"

    await store.write("u1", SessionRecord(user_id="u1"), ttl_seconds=5)
    assert redis.expiry["messenger:u1"] == 5

    await store.close()
    assert redis.closed is False


async def test_redis_store_discards_corrupt_payload() -> None:
    redis = _FakeRedis()
    redis.data["session:u1"] = "{broken"
    store = RedisSessionStore(client=redis)

    with pytest.raises(SessionPersistenceError):
        await store.read("u1")
    assert "session:u1" not in redis.data


def test_redis_store_requires_connection_details() -> None:
    with pytest.raises(ValueError):
        RedisSessionStore()


async def test_lock_registry_is_fifo_and_prunes_entries() -> None:
    locks = KeyedLockRegistry()
    order: list[int] = []

    async def worker(n: int) -> None:
        async with locks.hold("k"):
            order.append(n)
            await asyncio.sleep(0)

    async with locks.hold("k"):
        tasks = [asyncio.create_task(worker(n)) for n in range(5)]
        await asyncio.sleep(0)
        assert locks.is_locked("k")
        assert locks.waiting("k") == 6

    await asyncio.gather(*tasks)

    assert order == [0, 1, 2, 3, 4]
    assert "k" not in locks
    assert len(locks) == 0


async def test_lock_released_when_body_raises() -> None:
    locks = KeyedLockRegistry()

    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")

    assert len(locks) == 0
    async with locks.hold("k"):
        assert locks.is_locked("k")
