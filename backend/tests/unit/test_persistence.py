import json
from contextlib import asynccontextmanager

import pytest

from chatcore.core import ChatCore
from chatcore.infra.persistence import (
    FileBackend,
    MemoryBackend,
    PostgresBackend,
    RedisBackend,
    SnapshotCorrupt,
    build_backend,
)
from chatcore.infra import postgres
from chatcore.settings import Settings


SNAPSHOT = {
    "users": [{"id": "u1", "name": "Alice", "email": "a@example.com", "credentialHash": "$argon2id$x"}],
    "conversations": [],
    "groups": [],
}


class FakeConnection:
    def __init__(self, rows: dict) -> None:
        self.rows = rows
        self.statements: list[str] = []

    async def execute(self, sql, *args):
        self.statements.append(sql)

    async def fetch(self, sql, *args):
        return [{"collection": name, "payload": payload} for name, payload in self.rows.items()]

    async def executemany(self, sql, records):
        for name, payload in records:
            self.rows[name] = payload

    @asynccontextmanager
    async def transaction(self):
        yield


class FakePool:
    def __init__(self) -> None:
        self.conn = FakeConnection({})
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_file_backend_round_trip(tmp_path):
    backend = FileBackend(tmp_path / "nested" / "store.json")

    assert await backend.load() is None
    await backend.commit(SNAPSHOT)

    assert await backend.load() == SNAPSHOT
    assert [p.name for p in backend.path.parent.iterdir()] == ["store.json"]


@pytest.mark.asyncio
async def test_file_backend_rejects_corrupt_document(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SnapshotCorrupt):
        await FileBackend(path).load()

    core = ChatCore(FileBackend(path))
    await core.start()
    assert core.store.state.users == {}


@pytest.mark.asyncio
async def test_redis_backend_uses_store_keys(fake_redis):
    backend = RedisBackend(fake_redis, prefix="t:")

    assert await backend.load() is None
    await backend.commit(SNAPSHOT)

    assert json.loads(await fake_redis.get("t:storeUsers")) == SNAPSHOT["users"]
    assert await fake_redis.get("t:storeConversations") == "[]"
    assert await backend.load() == SNAPSHOT

    await fake_redis.set("t:storeGroups", "{oops")
    with pytest.raises(SnapshotCorrupt):
        await backend.load()


@pytest.mark.asyncio
async def test_postgres_backend_upserts_one_row_per_collection():
    pool = FakePool()
    backend = PostgresBackend(pool)

    assert await backend.load() is None
    await backend.commit(SNAPSHOT)

    assert set(pool.conn.rows) == {"users", "conversations", "groups"}
    assert await backend.load() == SNAPSHOT
    assert sum("CREATE TABLE" in sql for sql in pool.conn.statements) == 1


@pytest.mark.asyncio
async def test_build_backend_follows_settings(tmp_path):
    memory = await build_backend(Settings(store_backend="memory"))
    file_backend = await build_backend(Settings(store_backend="file", store_path=str(tmp_path / "s.json")))

    assert isinstance(memory, MemoryBackend)
    assert isinstance(file_backend, FileBackend)
    with pytest.raises(ValueError):
        await build_backend(Settings(store_backend="carrier-pigeon"))


@pytest.mark.asyncio
async def test_postgres_backend_from_settings_owns_the_pool():
    pool = FakePool()
    postgres.set_pool(pool)
    try:
        backend = await build_backend(Settings(store_backend="postgres"))
        assert isinstance(backend, PostgresBackend)
        await backend.commit(SNAPSHOT)
        await backend.close()
    finally:
        postgres.set_pool(None)

    assert pool.closed
    assert set(pool.conn.rows) == {"users", "conversations", "groups"}


@pytest.mark.asyncio
async def test_postgres_pool_is_created_once_and_closed(monkeypatch):
    created = []

    async def fake_create_pool(**kwargs):
        created.append(kwargs)
        return FakePool()

    monkeypatch.setattr(postgres.asyncpg, "create_pool", fake_create_pool)
    postgres.set_pool(None)
    config = Settings(postgres_url="postgresql://db.test/chat", postgres_max_pool_size=3)

    first = await postgres.get_pool(config)
    second = await postgres.get_pool(config)
    await postgres.close_pool()

    assert first is second
    assert first.closed
    assert created == [{"dsn": "postgresql://db.test/chat", "min_size": 0, "max_size": 3}]


@pytest.mark.asyncio
async def test_postgres_pool_creation_failure_is_explicit(monkeypatch):
    async def no_pool(**kwargs):
        return None

    monkeypatch.setattr(postgres.asyncpg, "create_pool", no_pool)
    postgres.set_pool(None)

    with pytest.raises(RuntimeError):
        await postgres.get_pool(Settings())
    await postgres.close_pool()
