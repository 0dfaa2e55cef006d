"""In-process event bus for live UI notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

CHAT_SELECT = "chat:select"
FRIEND_UPDATE = "friend:update"
FRIEND_REQUEST = "friend:request"
GROUP_UPDATE = "group:update"
MESSAGE_NEW = "message:new"
MESSAGE_UPDATE = "message:update"


@dataclass(frozen=True, slots=True)
class Event:
	"""A notification addressed to a set of users."""

	name: str
	user_ids: Tuple[str, ...]
	payload: Dict[str, object] = field(default_factory=dict)


Listener = Callable[[Event], Awaitable[None]]


class EventBus:
	def __init__(self) -> None:
		self._listeners: List[Listener] = []

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	async def publish(self, event: Event) -> None:
		for listener in list(self._listeners):
			try:
				await listener(event)
			except Exception:
				# A broken subscriber must not fail an already committed operation.
				logger.exception("event_listener_failed", extra={"event": event.name})

	async def publish_all(self, events: List[Event]) -> None:
		for event in events:
			await self.publish(event)
