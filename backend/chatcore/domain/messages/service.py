"""Message log: ordered appends, reactions, read receipts and paging."""

from __future__ import annotations

import logging
from typing import Optional

import ulid

from chatcore.domain import events
from chatcore.domain.conversations import policy
from chatcore.domain.errors import CoreError, InvalidInput, NotFound
from chatcore.domain.messages.cursor import decode_cursor, encode_cursor
from chatcore.domain.messages.reactions import toggle_reaction
from chatcore.domain.messages.schemas import MessagePage, MessagePayload, ReactionOutcome
from chatcore.domain.models import Container, Message, utcnow
from chatcore.domain.results import OpResult
from chatcore.domain.store import ChatStore, StoreState, Transaction
from chatcore.obs import metrics as obs_metrics
from chatcore.settings import settings

logger = logging.getLogger(__name__)


def _validate_content(content: str) -> str:
	if not str(content or "").strip():
		raise InvalidInput("content_required")
	if len(content) > settings.max_message_length:
		raise InvalidInput("content_too_long")
	return content


def _locate(state: StoreState, message_id: str, user_id: str) -> tuple[Container, Message]:
	container, message = state.find_message(message_id)
	if container is None or message is None:
		raise NotFound("message_missing")
	policy.require_participant(container, user_id)
	return container, message


def _message_update(tx: Transaction, container: Container, message: Message) -> None:
	tx.emit(
		events.MESSAGE_UPDATE,
		container.participant_ids(),
		{"message": MessagePayload.from_model(message).model_dump(mode="json")},
	)


class MessageService:
	def __init__(self, store: ChatStore) -> None:
		self._store = store

	async def append(self, container_id: str, sender_id: str, content: str) -> OpResult[MessagePayload]:
		try:
			body = _validate_content(content)
			async with self._store.transaction() as tx:
				container = policy.require_container(tx.state, container_id)
				policy.require_participant(container, sender_id)
				policy.guard_can_post(tx.state, container)
				previous = container.messages[-1] if container.messages else None
				now = utcnow()
				# Timestamps never go backwards within a container; seq breaks ties.
				timestamp = max(now, previous.timestamp) if previous else now
				message = Message(
					id=str(ulid.new()),
					container_id=container.id,
					seq=(previous.seq + 1) if previous else 1,
					sender_id=sender_id,
					content=body,
					timestamp=timestamp,
					read_by={sender_id},
				)
				tx.touch()
				tx.state.append_message(container, message)
				container.last_activity = max(container.last_activity, timestamp)
				payload = MessagePayload.from_model(message)
				tx.emit(
					events.MESSAGE_NEW,
					container.participant_ids() - {sender_id},
					{"message": payload.model_dump(mode="json")},
				)
				kind = container.kind
		except CoreError as exc:
			return OpResult.failure(exc)
		obs_metrics.inc_message_sent(kind)
		logger.info("message_appended", extra={"container_id": container_id, "seq": payload.seq})
		return OpResult.success(payload)

	async def react(self, message_id: str, user_id: str, emoji: str) -> OpResult[ReactionOutcome]:
		"""Toggle a reaction; reacting twice with the same emoji removes it."""
		try:
			emoji = str(emoji or "").strip()
			if not emoji:
				raise InvalidInput("emoji_required")
			async with self._store.transaction() as tx:
				container, message = _locate(tx.state, message_id, user_id)
				tx.touch()
				added = toggle_reaction(message, user_id, emoji)
				_message_update(tx, container, message)
				outcome = ReactionOutcome(message=MessagePayload.from_model(message), added=added)
		except CoreError as exc:
			return OpResult.failure(exc)
		obs_metrics.inc_reaction("added" if outcome.added else "removed")
		return OpResult.success(outcome)

	async def mark_read(self, message_id: str, user_id: str) -> OpResult[bool]:
		try:
			async with self._store.transaction() as tx:
				container, message = _locate(tx.state, message_id, user_id)
				if user_id in message.read_by:
					return OpResult.success(False)
				tx.touch()
				message.read_by.add(user_id)
				_message_update(tx, container, message)
		except CoreError as exc:
			return OpResult.failure(exc)
		return OpResult.success(True)

	async def list_since(
		self,
		container_id: str,
		user_id: str,
		cursor: Optional[str] = None,
		limit: Optional[int] = None,
	) -> OpResult[MessagePage]:
		"""Return messages after ``cursor`` in append order.

		``next_cursor`` is set only when more messages remain past this page.
		"""
		size = limit or settings.default_page_size
		size = max(1, min(int(size), settings.max_page_size))
		try:
			async with self._store.read() as state:
				container = policy.require_container(state, container_id)
				policy.require_participant(container, user_id)
				after = decode_cursor(cursor, container_id=container.id) if cursor else 0
				remaining = [m for m in container.messages if m.seq > after]
				page = remaining[:size]
				next_cursor = encode_cursor(container.id, page[-1].seq) if len(remaining) > size else None
				return OpResult.success(
					MessagePage(items=[MessagePayload.from_model(m) for m in page], next_cursor=next_cursor)
				)
		except CoreError as exc:
			return OpResult.failure(exc)
