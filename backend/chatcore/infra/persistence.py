"""Snapshot persistence backends.

A snapshot is the full store state as three JSON arrays (``users``,
``conversations``, ``groups``). Backends only move snapshots; validation and
fail-soft loading live in :mod:`chatcore.domain.store`.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import asyncpg

from chatcore.settings import Settings

Snapshot = Dict[str, list]

COLLECTIONS = ("users", "conversations", "groups")

# Key names used by the browser store's local storage.
REDIS_KEYS = {
	"users": "storeUsers",
	"conversations": "storeConversations",
	"groups": "storeGroups",
}


class SnapshotCorrupt(ValueError):
	"""Raised when a stored snapshot cannot be decoded."""


class SnapshotBackend(Protocol):
	name: str

	async def load(self) -> Optional[Snapshot]:
		...

	async def commit(self, snapshot: Snapshot) -> None:
		...

	async def close(self) -> None:
		...


def empty_snapshot() -> Snapshot:
	return {name: [] for name in COLLECTIONS}


def _decode_collection(name: str, raw: Any) -> list:
	if raw is None:
		return []
	if isinstance(raw, (bytes, str)):
		try:
			raw = json.loads(raw)
		except json.JSONDecodeError as exc:
			raise SnapshotCorrupt(f"{name}: {exc}") from exc
	if not isinstance(raw, list):
		raise SnapshotCorrupt(f"{name}: expected a JSON array")
	return raw


class MemoryBackend:
	"""Keeps the last committed snapshot in memory (tests, ephemeral runs)."""

	name = "memory"

	def __init__(self, initial: Optional[Snapshot] = None) -> None:
		self._data: Optional[str] = json.dumps(initial) if initial is not None else None
		self.commits = 0

	async def load(self) -> Optional[Snapshot]:
		if self._data is None:
			return None
		return json.loads(self._data)

	async def commit(self, snapshot: Snapshot) -> None:
		self._data = json.dumps(snapshot)
		self.commits += 1

	async def close(self) -> None:
		return None


class FileBackend:
	"""Single JSON document on disk, replaced atomically on every commit."""

	name = "file"

	def __init__(self, path: str | os.PathLike[str]) -> None:
		self._path = Path(path)

	@property
	def path(self) -> Path:
		return self._path

	def _read(self) -> Optional[Snapshot]:
		if not self._path.exists():
			return None
		text = self._path.read_text(encoding="utf-8")
		if not text.strip():
			return None
		try:
			document = json.loads(text)
		except json.JSONDecodeError as exc:
			raise SnapshotCorrupt(str(exc)) from exc
		if not isinstance(document, dict):
			raise SnapshotCorrupt("expected a JSON object")
		return {name: _decode_collection(name, document.get(name)) for name in COLLECTIONS}

	def _write(self, snapshot: Snapshot) -> None:
		self._path.parent.mkdir(parents=True, exist_ok=True)
		fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=str(self._path.parent))
		try:
			with os.fdopen(fd, "w", encoding="utf-8") as fh:
				json.dump(snapshot, fh, ensure_ascii=False, separators=(",", ":"))
				fh.flush()
				os.fsync(fh.fileno())
			os.replace(tmp_name, self._path)
		except BaseException:
			Path(tmp_name).unlink(missing_ok=True)
			raise

	async def load(self) -> Optional[Snapshot]:
		return await asyncio.to_thread(self._read)

	async def commit(self, snapshot: Snapshot) -> None:
		await asyncio.to_thread(self._write, snapshot)

	async def close(self) -> None:
		return None


class RedisBackend:
	"""Three string keys, written together in one MULTI/EXEC pipeline."""

	name = "redis"

	def __init__(self, client, *, prefix: str = "") -> None:
		self._client = client
		self._keys = {name: f"{prefix}{key}" for name, key in REDIS_KEYS.items()}

	async def load(self) -> Optional[Snapshot]:
		values = await self._client.mget([self._keys[name] for name in COLLECTIONS])
		if all(value is None for value in values):
			return None
		return {name: _decode_collection(name, value) for name, value in zip(COLLECTIONS, values)}

	async def commit(self, snapshot: Snapshot) -> None:
		async with self._client.pipeline(transaction=True) as pipe:
			for name in COLLECTIONS:
				pipe.set(self._keys[name], json.dumps(snapshot.get(name, []), separators=(",", ":")))
			await pipe.execute()

	async def close(self) -> None:
		return None


_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS chat_snapshots (
	collection TEXT PRIMARY KEY,
	payload JSONB NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


class PostgresBackend:
	"""One JSONB row per collection, replaced in a single transaction."""

	name = "postgres"

	def __init__(self, pool: asyncpg.Pool, *, owns_pool: bool = False) -> None:
		self._pool = pool
		self._owns_pool = owns_pool
		self._schema_ready = False

	async def _ensure_schema(self, conn) -> None:
		if self._schema_ready:
			return
		await conn.execute(_CREATE_TABLE_SQL)
		self._schema_ready = True

	async def load(self) -> Optional[Snapshot]:
		async with self._pool.acquire() as conn:
			await self._ensure_schema(conn)
			rows = await conn.fetch("SELECT collection, payload FROM chat_snapshots")
		if not rows:
			return None
		found = {row["collection"]: row["payload"] for row in rows}
		return {name: _decode_collection(name, found.get(name)) for name in COLLECTIONS}

	async def commit(self, snapshot: Snapshot) -> None:
		async with self._pool.acquire() as conn:
			await self._ensure_schema(conn)
			async with conn.transaction():
				await conn.executemany(
					"""
					INSERT INTO chat_snapshots (collection, payload)
					VALUES ($1, $2::jsonb)
					ON CONFLICT (collection)
					DO UPDATE SET payload = EXCLUDED.payload, updated_at = NOW()
					""",
					[(name, json.dumps(snapshot.get(name, []))) for name in COLLECTIONS],
				)

	async def close(self) -> None:
		if self._owns_pool:
			from chatcore.infra import postgres

			await postgres.close_pool()


async def build_backend(settings: Settings) -> SnapshotBackend:
	"""Construct the backend named by ``settings.store_backend``."""
	kind = settings.store_backend
	if kind == "memory":
		return MemoryBackend()
	if kind == "file":
		return FileBackend(settings.store_path)
	if kind == "redis":
		from chatcore.infra.redis import redis_client

		return RedisBackend(redis_client, prefix=settings.store_redis_prefix)
	if kind == "postgres":
		from chatcore.infra import postgres

		return PostgresBackend(await postgres.get_pool(settings), owns_pool=True)
	raise ValueError(f"unknown store backend: {kind}")
