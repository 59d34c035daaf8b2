"""Shared fixtures for the test suite."""

import asyncio
from typing import Any, Dict, List, Optional, Set

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from ward_planner.main import create_app
from ward_planner.sync.notifications import LocalChangeChannel
from ward_planner.tenants.seed import load_seed_wards
from ward_planner.tenants.sqlite_tenant_store import SQLiteTenantStore


TEST_SEED_ENTRIES = [
    {"id": "primavera", "name": "Barrio Primavera"},
    {"id": "jardines", "name": "Barrio Jardines", "passphrase": "Jardines-2024"},
    {"id": "san_martin", "name": "Barrio San Martín", "passphrase": "martin"},
]


# ---------------------------------------------------------------------------
# Fake Redis client (no real server needed)
# ---------------------------------------------------------------------------

class FakePubSub:
    """Minimal stand-in for redis.asyncio.client.PubSub."""

    def __init__(self, server: "FakeRedis"):
        self._server = server
        self.channels: Set[str] = set()
        self.queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels: str) -> None:
        for channel in channels:
            self.channels.add(channel)
            self._server.pubsubs.append(self)
            await self.queue.put({"type": "subscribe", "channel": channel, "data": 1})

    async def unsubscribe(self, *channels: str) -> None:
        for channel in channels or list(self.channels):
            self.channels.discard(channel)

    async def aclose(self) -> None:
        self.closed = True
        if self in self._server.pubsubs:
            self._server.pubsubs.remove(self)

    async def listen(self):
        while True:
            yield await self.queue.get()


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis with decode_responses=True."""

    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.sets: Dict[str, Set[str]] = {}
        self.published: List[tuple] = []
        self.pubsubs: List[FakePubSub] = []
        self.closed = False

    async def sadd(self, key: str, *members: str) -> int:
        bucket = self.sets.setdefault(key, set())
        added = len(set(members) - bucket)
        bucket.update(members)
        return added

    async def smembers(self, key: str) -> Set[str]:
        return set(self.sets.get(key, set()))

    async def hsetnx(self, key: str, field: str, value: str) -> int:
        # Yield like a network round trip so concurrent seeders interleave
        await asyncio.sleep(0)
        bucket = self.hashes.setdefault(key, {})
        if field in bucket:
            return 0
        bucket[field] = value
        return 1

    async def hset(self, key: str, field: str, value: str) -> int:
        bucket = self.hashes.setdefault(key, {})
        created = field not in bucket
        bucket[field] = value
        return int(created)

    async def hget(self, key: str, field: str) -> Optional[str]:
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self.hashes.get(key, {}))

    async def exists(self, key: str) -> int:
        return int(key in self.hashes or key in self.sets)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        receivers = [p for p in self.pubsubs if channel in p.channels]
        for pubsub in receivers:
            await pubsub.queue.put({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def aclose(self) -> None:
        self.closed = True


class BrokenRedis(FakeRedis):
    """Every command fails as if the server went away."""

    async def _fail(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    sadd = smembers = hsetnx = hset = hget = hgetall = exists = publish = _fail


class FlakyRedis(FakeRedis):
    """Drops the connection once, on the n-th HSETNX."""

    def __init__(self, fail_on_call: int):
        super().__init__()
        self.fail_on_call = fail_on_call
        self.hsetnx_calls = 0

    async def hsetnx(self, key: str, field: str, value: str) -> int:
        self.hsetnx_calls += 1
        if self.hsetnx_calls == self.fail_on_call:
            raise RedisConnectionError("Connection reset by peer")
        return await super().hsetnx(key, field, value)


class DroppingPubSub(FakePubSub):
    """Subscription whose connection drops as soon as it starts listening."""

    async def listen(self):
        raise RedisConnectionError("Connection closed by server")
        yield  # unreachable, makes this an async generator


class DroppingPubSubRedis(FakeRedis):
    def __init__(self):
        super().__init__()
        self.opened: List[FakePubSub] = []

    def pubsub(self) -> FakePubSub:
        pubsub = DroppingPubSub(self)
        self.opened.append(pubsub)
        return pubsub


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def seeds():
    return load_seed_wards(TEST_SEED_ENTRIES)


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "wards.sqlite3")


@pytest.fixture()
async def sqlite_store(db_path, seeds):
    store = SQLiteTenantStore(db_path=db_path)
    await store.initialize(seeds)
    yield store
    await store.teardown()


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def change_channel():
    return LocalChangeChannel()


@pytest.fixture()
async def api_app(sqlite_store, change_channel):
    """App wired to the seeded test store, with its lifespan running."""
    app = create_app(tenant_store=sqlite_store, change_channel=change_channel)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture()
async def client(api_app):
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
