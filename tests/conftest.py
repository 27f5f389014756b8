"""
Shared test fixtures for the annotation test suite.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from annotator.labeling.registry import LabelTypeRegistry
from annotator.labeling.renderer import LabelingSession
from annotator.labeling.workspace import Workspace
from annotator.persistence.redis_bridge import RedisPersistenceBridge

BARACK_TEXT = "Barack Obama visited Paris."


# ==========================================================================
# Redis stub
# ==========================================================================

class InMemoryAsyncRedis:
    """Minimal in-memory stand-in for redis.asyncio.Redis (no server).

    ``fail_on`` names commands that raise ConnectionError. With
    ``yield_calls`` every command yields to the event loop first, so
    concurrent callers interleave the way they would over a socket.
    """

    def __init__(self):
        self._strings: Dict[str, str] = {}
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._lists: Dict[str, List[str]] = {}
        self._versions: Dict[str, int] = {}
        self.fail_on: set = set()
        self.yield_calls: bool = False

    async def _enter(self, op: str) -> None:
        if self.yield_calls:
            await asyncio.sleep(0)
        if op in self.fail_on:
            raise RedisConnectionError(f"stub: {op} unavailable")

    def _touch(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    # --- synchronous cores, shared with the pipeline ---

    def _set(self, key: str, value: str) -> bool:
        self._strings[key] = value
        self._touch(key)
        return True

    def _hset(self, name: str, key: str = None, value: str = None, mapping: dict = None) -> int:
        target = self._hashes.setdefault(name, {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = sum(1 for k in items if k not in target)
        target.update(items)
        self._touch(name)
        return added

    def _hdel(self, name: str, *keys: str) -> int:
        target = self._hashes.get(name, {})
        removed = sum(1 for k in keys if target.pop(k, None) is not None)
        self._touch(name)
        return removed

    # --- commands ---

    async def get(self, key: str) -> Optional[str]:
        await self._enter("get")
        return self._strings.get(key)

    async def set(self, key: str, value: str, **kwargs) -> bool:  # noqa: ARG002
        await self._enter("set")
        return self._set(key, value)

    async def incr(self, key: str) -> int:
        await self._enter("incr")
        value = int(self._strings.get(key, "0")) + 1
        self._set(key, str(value))
        return value

    async def delete(self, *keys: str) -> int:
        await self._enter("delete")
        deleted = 0
        for k in keys:
            for store in (self._strings, self._hashes, self._lists):
                if k in store:
                    del store[k]
                    deleted += 1
            self._touch(k)
        return deleted

    async def hset(self, name: str, key: str = None, value: str = None, mapping: dict = None) -> int:
        await self._enter("hset")
        return self._hset(name, key, value, mapping)

    async def hget(self, name: str, key: str) -> Optional[str]:
        await self._enter("hget")
        return self._hashes.get(name, {}).get(key)

    async def hgetall(self, name: str) -> Dict[str, str]:
        await self._enter("hgetall")
        return dict(self._hashes.get(name, {}))

    async def hlen(self, name: str) -> int:
        await self._enter("hlen")
        return len(self._hashes.get(name, {}))

    async def hdel(self, name: str, *keys: str) -> int:
        await self._enter("hdel")
        return self._hdel(name, *keys)

    async def lpush(self, name: str, *values: str) -> int:
        await self._enter("lpush")
        target = self._lists.setdefault(name, [])
        for v in values:
            target.insert(0, v)
        self._touch(name)
        return len(target)

    async def lrange(self, name: str, start: int, end: int) -> List[str]:
        await self._enter("lrange")
        items = self._lists.get(name, [])
        return items[start:] if end == -1 else items[start:end + 1]

    def pipeline(self, transaction: bool = True) -> "InMemoryPipeline":  # noqa: ARG002
        return InMemoryPipeline(self)

    def keys_matching(self, prefix: str) -> List[str]:
        keys = list(self._strings) + list(self._hashes) + list(self._lists)
        return [k for k in keys if k.startswith(prefix)]


class InMemoryPipeline:
    """MULTI/EXEC pipeline over InMemoryAsyncRedis, with WATCH.

    As in redis-py: after ``watch()`` commands run immediately until
    ``multi()``; otherwise they are queued and applied all-or-nothing by
    ``execute()``.
    """

    def __init__(self, client: InMemoryAsyncRedis):
        self._client = client
        self._watched: Dict[str, int] = {}
        self._immediate = False
        self._queued: List[tuple] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.reset()

    async def reset(self) -> None:
        self._watched = {}
        self._immediate = False
        self._queued = []

    async def watch(self, *keys: str) -> None:
        await self._client._enter("watch")
        self._watched = {k: self._client._versions.get(k, 0) for k in keys}
        self._immediate = True

    def multi(self) -> None:
        self._immediate = False

    def hlen(self, name: str):
        return self._client.hlen(name)

    def _queue(self, op: str, *args, **kwargs):
        if self._immediate:
            return getattr(self._client, op)(*args, **kwargs)
        self._queued.append((op, args, kwargs))
        return self

    def set(self, key: str, value: str):
        return self._queue("set", key, value)

    def hset(self, name: str, key: str = None, value: str = None, mapping: dict = None):
        return self._queue("hset", name, key, value, mapping=mapping)

    def hdel(self, name: str, *keys: str):
        return self._queue("hdel", name, *keys)

    async def execute(self) -> list:
        await self._client._enter("execute")
        queued, self._queued = self._queued, []
        for op, _args, _kwargs in queued:
            if op in self._client.fail_on:
                raise RedisConnectionError(f"stub: {op} unavailable")
        if any(self._client._versions.get(k, 0) != v for k, v in self._watched.items()):
            raise WatchError("watched key changed")
        return [getattr(self._client, f"_{op}")(*args, **kwargs) for op, args, kwargs in queued]


@pytest.fixture
def redis_stub():
    return InMemoryAsyncRedis()


@pytest.fixture
def bridge(redis_stub):
    return RedisPersistenceBridge(redis_stub, prefix="test")


# ==========================================================================
# Documents & sessions
# ==========================================================================

@pytest.fixture
def barack_text():
    return BARACK_TEXT


@pytest.fixture
def barack_document(bridge):
    return asyncio.run(bridge.upload_file(1, "news.txt", BARACK_TEXT))


@pytest.fixture
def registry(bridge):
    registry = LabelTypeRegistry(bridge, project_id=1)
    asyncio.run(registry.list_types())
    return registry


@pytest.fixture
def session(bridge, registry, barack_document):
    session = LabelingSession(bridge, registry)
    session.load(barack_document, [])
    return session


@pytest.fixture
def workspace(bridge):
    return Workspace(bridge)


@pytest.fixture
def type_id(registry):
    """Lookup of a seeded type id by key, e.g. type_id("PER")."""
    def _lookup(key: str) -> int:
        return next(t.id for t in registry.types if t.key == key)
    return _lookup
