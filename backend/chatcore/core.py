"""Explicit chat core context wiring the store, event bus and services."""

from __future__ import annotations

import logging
from typing import Optional

from chatcore.domain.conversations import ConversationService
from chatcore.domain.events import EventBus
from chatcore.domain.identity import IdentityService
from chatcore.domain.messages import MessageService
from chatcore.domain.social import RelationshipService
from chatcore.domain.store import ChatStore
from chatcore.infra.persistence import SnapshotBackend, build_backend
from chatcore.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ChatCore:
	"""One store, one lock, one set of services.

	Nothing is loaded until :meth:`start`; :meth:`close` releases the backend.
	"""

	def __init__(self, backend: SnapshotBackend, *, bus: Optional[EventBus] = None) -> None:
		self.bus = bus or EventBus()
		self.store = ChatStore(backend, bus=self.bus)
		self.identity = IdentityService(self.store)
		self.relationships = RelationshipService(self.store)
		self.conversations = ConversationService(self.store)
		self.messages = MessageService(self.store)
		self._started = False

	@classmethod
	async def from_settings(cls, config: Optional[Settings] = None, *, bus: Optional[EventBus] = None) -> "ChatCore":
		backend = await build_backend(config or default_settings)
		return cls(backend, bus=bus)

	@property
	def started(self) -> bool:
		return self._started

	async def start(self) -> None:
		if self._started:
			return
		await self.store.load()
		self._started = True
		logger.info("chat_core_started", extra={"backend": getattr(self.store.backend, "name", "unknown")})

	async def close(self) -> None:
		if not self._started:
			return
		await self.store.close()
		self._started = False
		logger.info("chat_core_closed")

	async def __aenter__(self) -> "ChatCore":
		await self.start()
		return self

	async def __aexit__(self, exc_type, exc, tb) -> None:
		await self.close()
