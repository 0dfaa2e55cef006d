"""In-memory store state with write-through snapshot commits.

Every operation runs inside ``ChatStore.transaction()`` or ``ChatStore.read()``,
both of which hold the store lock. A transaction that marks itself dirty is
committed to the backend before the lock is released; if the commit fails the
state is restored from the last committed snapshot. Events collected by a
transaction are published only after its commit returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Tuple

from chatcore.domain.errors import StorageError
from chatcore.domain.events import Event, EventBus
from chatcore.domain.models import Container, Conversation, Group, Message, User, normalize_email
from chatcore.infra import password
from chatcore.infra.persistence import Snapshot, SnapshotBackend, empty_snapshot
from chatcore.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class StoreState:
	"""Entity maps plus the secondary indexes rebuilt on every load."""

	def __init__(self) -> None:
		self.users: Dict[str, User] = {}
		self.conversations: Dict[str, Conversation] = {}
		self.groups: Dict[str, Group] = {}
		self._emails: Dict[str, str] = {}
		self._pairs: Dict[frozenset, str] = {}
		self._messages: Dict[str, Tuple[str, int]] = {}

	# users

	def add_user(self, user: User) -> None:
		self.users[user.id] = user
		self._emails.setdefault(normalize_email(user.email), user.id)

	def user_by_email(self, email: str) -> Optional[User]:
		user_id = self._emails.get(normalize_email(email))
		return self.users.get(user_id) if user_id else None

	# containers

	def add_conversation(self, conversation: Conversation) -> None:
		self.conversations[conversation.id] = conversation
		self._pairs[conversation.key] = conversation.id
		for position, message in enumerate(conversation.messages):
			self._messages[message.id] = (conversation.id, position)

	def conversation_for_pair(self, user_one: str, user_two: str) -> Optional[Conversation]:
		conversation_id = self._pairs.get(Conversation.pair_key(user_one, user_two))
		return self.conversations.get(conversation_id) if conversation_id else None

	def add_group(self, group: Group) -> None:
		self.groups[group.id] = group
		for position, message in enumerate(group.messages):
			self._messages[message.id] = (group.id, position)

	def container(self, container_id: str) -> Optional[Container]:
		return self.conversations.get(container_id) or self.groups.get(container_id)

	def containers_for_user(self, user_id: str) -> List[Container]:
		items: List[Container] = [c for c in self.conversations.values() if c.is_participant(user_id)]
		items.extend(g for g in self.groups.values() if g.is_participant(user_id))
		return items

	# messages

	def append_message(self, container: Container, message: Message) -> None:
		container.messages.append(message)
		self._messages[message.id] = (container.id, len(container.messages) - 1)

	def find_message(self, message_id: str) -> Tuple[Optional[Container], Optional[Message]]:
		located = self._messages.get(message_id)
		if located is None:
			return None, None
		container = self.container(located[0])
		if container is None:
			return None, None
		return container, container.messages[located[1]]

	# snapshots

	def to_snapshot(self) -> Snapshot:
		return {
			"users": [user.to_record() for user in self.users.values()],
			"conversations": [c.to_record() for c in self.conversations.values()],
			"groups": [g.to_record() for g in self.groups.values()],
		}

	@classmethod
	def from_snapshot(cls, snapshot: Snapshot) -> Tuple["StoreState", bool]:
		"""Rebuild state from a snapshot.

		Malformed records are skipped, dangling references pruned, duplicate
		direct conversations merged and plaintext credentials hashed. The
		returned flag is True when any of that changed the data, so the caller
		can commit the repaired state.
		"""
		state = cls()
		changed = False

		for record in snapshot.get("users") or []:
			try:
				user = User.from_record(_as_record(record))
			except (KeyError, TypeError, ValueError):
				logger.warning("snapshot_user_skipped", extra={"record_id": _record_id(record)})
				changed = True
				continue
			if user.credential_hash and not password.looks_hashed(user.credential_hash):
				user.credential_hash = password.hash_password(user.credential_hash)
				changed = True
			if state.user_by_email(user.email) is not None:
				logger.warning("snapshot_duplicate_email", extra={"user_id": user.id})
			state.add_user(user)

		for record in snapshot.get("conversations") or []:
			try:
				conversation = Conversation.from_record(_as_record(record))
			except (KeyError, TypeError, ValueError):
				logger.warning("snapshot_conversation_skipped", extra={"record_id": _record_id(record)})
				changed = True
				continue
			existing = state.conversation_for_pair(*conversation.participants)
			if existing is not None:
				_merge_conversations(existing, conversation)
				state.add_conversation(existing)
				logger.warning(
					"snapshot_duplicate_conversation",
					extra={"kept": existing.id, "merged": conversation.id},
				)
				changed = True
				continue
			state.add_conversation(conversation)

		for record in snapshot.get("groups") or []:
			try:
				group = Group.from_record(_as_record(record))
			except (KeyError, TypeError, ValueError):
				logger.warning("snapshot_group_skipped", extra={"record_id": _record_id(record)})
				changed = True
				continue
			state.add_group(group)

		changed = state._repair() or changed
		return state, changed

	def _repair(self) -> bool:
		"""Restore relationship invariants after a load."""
		changed = False
		known = set(self.users)
		for user in self.users.values():
			before = (
				set(user.friend_ids),
				set(user.incoming_requests),
				set(user.outgoing_requests),
				set(user.blocked_ids),
				set(user.group_ids),
			)
			user.blocked_ids &= known - {user.id}
			user.friend_ids = {
				fid
				for fid in user.friend_ids & known
				if fid != user.id and user.id in self.users[fid].friend_ids
			}
			user.incoming_requests = {
				rid
				for rid in user.incoming_requests & known
				if rid != user.id and user.id in self.users[rid].outgoing_requests
			}
			user.outgoing_requests = {
				tid
				for tid in user.outgoing_requests & known
				if tid != user.id and user.id in self.users[tid].incoming_requests
			}
			# Friendship wins over any stale pending entry.
			user.incoming_requests -= user.friend_ids
			user.outgoing_requests -= user.friend_ids
			user.group_ids = {g.id for g in self.groups.values() if user.id in g.members}
			after = (
				user.friend_ids,
				user.incoming_requests,
				user.outgoing_requests,
				user.blocked_ids,
				user.group_ids,
			)
			if before != after:
				changed = True
		return changed


def _as_record(record: object) -> dict:
	if not isinstance(record, dict):
		raise TypeError(f"expected a record, got {type(record).__name__}")
	return record


def _record_id(record: object) -> Optional[str]:
	if isinstance(record, dict) and record.get("id") is not None:
		return str(record["id"])
	return None


def _merge_conversations(target: Conversation, duplicate: Conversation) -> None:
	"""Fold a duplicate pair conversation into ``target`` keeping time order."""
	merged = sorted(
		list(target.messages) + list(duplicate.messages),
		key=lambda message: message.timestamp,
	)
	for seq, message in enumerate(merged, start=1):
		message.seq = seq
		message.container_id = target.id
	target.messages = merged
	target.last_activity = max(target.last_activity, duplicate.last_activity)


@dataclass
class Transaction:
	state: StoreState
	dirty: bool = False
	events: List[Event] = field(default_factory=list)

	def touch(self) -> None:
		self.dirty = True

	def emit(self, name: str, user_ids, payload: Dict[str, object]) -> None:
		self.events.append(Event(name=name, user_ids=tuple(sorted(set(user_ids))), payload=payload))


class ChatStore:
	def __init__(self, backend: SnapshotBackend, *, bus: Optional[EventBus] = None) -> None:
		self._backend = backend
		self._bus = bus
		self._lock = asyncio.Lock()
		self.state = StoreState()
		self._committed: Snapshot = empty_snapshot()

	@property
	def backend(self) -> SnapshotBackend:
		return self._backend

	async def load(self) -> None:
		"""Restore state from the backend; any failure leaves an empty store."""
		backend_name = getattr(self._backend, "name", "unknown")
		async with self._lock:
			try:
				snapshot = await self._backend.load()
				if snapshot is None:
					state, changed = StoreState(), False
					obs_metrics.inc_store_load(backend_name, "empty")
				else:
					state, changed = StoreState.from_snapshot(snapshot)
					obs_metrics.inc_store_load(backend_name, "ok")
			except Exception:
				logger.warning("snapshot_load_failed", exc_info=True, extra={"backend": backend_name})
				obs_metrics.inc_store_load(backend_name, "corrupt")
				state, changed = StoreState(), False
			self.state = state
			self._committed = state.to_snapshot()
			logger.info(
				"snapshot_loaded",
				extra={
					"backend": backend_name,
					"users": len(state.users),
					"conversations": len(state.conversations),
					"groups": len(state.groups),
				},
			)
			if changed:
				try:
					await self._flush()
				except StorageError:
					logger.warning("snapshot_repair_not_persisted", extra={"backend": backend_name})

	@asynccontextmanager
	async def read(self) -> AsyncIterator[StoreState]:
		async with self._lock:
			yield self.state

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator[Transaction]:
		async with self._lock:
			tx = Transaction(state=self.state)
			try:
				yield tx
			except BaseException:
				if tx.dirty:
					self._rollback()
				raise
			if tx.dirty:
				await self._flush()
		if tx.events and self._bus is not None:
			await self._bus.publish_all(tx.events)

	async def _flush(self) -> None:
		backend_name = getattr(self._backend, "name", "unknown")
		snapshot = self.state.to_snapshot()
		start = time.perf_counter()
		try:
			await self._backend.commit(snapshot)
		except Exception as exc:
			obs_metrics.observe_commit(backend_name, "error", time.perf_counter() - start)
			logger.error("snapshot_commit_failed", exc_info=True, extra={"backend": backend_name})
			self._rollback()
			raise StorageError("snapshot commit failed") from exc
		except BaseException:
			# Cancelled mid-commit: the backend may or may not hold the write, memory must not.
			obs_metrics.observe_commit(backend_name, "cancelled", time.perf_counter() - start)
			logger.warning("snapshot_commit_cancelled", extra={"backend": backend_name})
			self._rollback()
			raise
		obs_metrics.observe_commit(backend_name, "ok", time.perf_counter() - start)
		self._committed = snapshot

	def _rollback(self) -> None:
		self.state, _ = StoreState.from_snapshot(self._committed)

	async def close(self) -> None:
		async with self._lock:
			await self._backend.close()
