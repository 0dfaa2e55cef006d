import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

# Settings are built at import time and refuse to start without a signing key.
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from chatcore.core import ChatCore
from chatcore.infra.persistence import MemoryBackend
from chatcore.main import create_app
from chatcore.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from chatcore.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate with bearer tokens or X-User-Id, which only dev accepts."""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture
def backend():
	return MemoryBackend()


@pytest_asyncio.fixture
async def core(backend):
	chat_core = ChatCore(backend)
	await chat_core.start()
	try:
		yield chat_core
	finally:
		await chat_core.close()


@pytest.fixture
def published(core):
	"""Events delivered by the core's bus, in publish order."""
	seen = []

	async def _listener(event):
		seen.append(event)

	unsubscribe = core.bus.subscribe(_listener)
	yield seen
	unsubscribe()


@pytest.fixture
def make_user(core):
	async def _make(name: str, email: str | None = None, credential: str = "pw"):
		result = await core.identity.register(name, email or f"{name.lower()}@example.com", credential)
		return result.unwrap()

	return _make


@pytest_asyncio.fixture
async def api_client(backend):
	app = create_app(ChatCore(backend))
	async with app.router.lifespan_context(app):
		transport = ASGITransport(app=app)
		async with AsyncClient(transport=transport, base_url="http://testserver") as client:
			yield client
