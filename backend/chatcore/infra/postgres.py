"""Process-wide asyncpg pool backing the Postgres snapshot store."""

from __future__ import annotations

import logging
from typing import Optional

import asyncpg

from chatcore.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None


async def get_pool(config: Optional[Settings] = None) -> asyncpg.Pool:
	"""Return the shared pool, connecting on first use.

	Snapshot commits are single upserts, so the pool never keeps idle
	connections around.
	"""
	global _pool
	if _pool is not None:
		return _pool
	config = config or default_settings
	pool = await asyncpg.create_pool(
		dsn=config.postgres_url,
		min_size=0,
		max_size=config.postgres_max_pool_size,
	)
	if pool is None:
		raise RuntimeError("asyncpg returned no pool for the snapshot store")
	_pool = pool
	logger.info("postgres_pool_opened", extra={"max_size": config.postgres_max_pool_size})
	return pool


def set_pool(pool: Optional[asyncpg.Pool]) -> None:
	"""Install an existing pool (or clear it) without connecting."""
	global _pool
	_pool = pool


async def close_pool() -> None:
	global _pool
	pool, _pool = _pool, None
	if pool is not None:
		await pool.close()
		logger.info("postgres_pool_closed")
