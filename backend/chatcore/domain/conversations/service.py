"""Conversation engine: direct conversations, groups and admin roles."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import ulid

from chatcore.domain import events
from chatcore.domain.conversations import policy
from chatcore.domain.conversations.schemas import ConversationSummary, GroupSummary, MembershipChange
from chatcore.domain.errors import CoreError
from chatcore.domain.models import Conversation, Group, utcnow
from chatcore.domain.results import OpResult
from chatcore.domain.store import ChatStore, Transaction
from chatcore.obs import metrics as obs_metrics
from chatcore.settings import optional_str

logger = logging.getLogger(__name__)


def ensure_direct(tx: Transaction, user_a: str, user_b: str) -> Conversation:
	"""Return the direct conversation for a pair, creating it inside ``tx``.

	Callers must already hold the transaction; this is how friend acceptance
	opens the conversation in the same commit.
	"""
	policy.guard_not_self(user_a, user_b)
	policy.require_users(tx.state, (user_a, user_b))
	existing = tx.state.conversation_for_pair(user_a, user_b)
	if existing is not None:
		return existing
	policy.guard_direct_not_blocked(tx.state, user_a, user_b)
	ordered = sorted((str(user_a), str(user_b)))
	conversation = Conversation(id=str(ulid.new()), participants=(ordered[0], ordered[1]))
	tx.touch()
	tx.state.add_conversation(conversation)
	logger.info("direct_created", extra={"conversation_id": conversation.id})
	return conversation


def _group_event(tx: Transaction, group: Group, action: str, **extra: object) -> None:
	payload = {"action": action, "group": GroupSummary.from_model(group).model_dump(mode="json")}
	payload.update(extra)
	tx.emit(events.GROUP_UPDATE, group.members, payload)


class ConversationService:
	def __init__(self, store: ChatStore) -> None:
		self._store = store

	async def get_or_create_direct(self, user_a: str, user_b: str) -> OpResult[ConversationSummary]:
		try:
			async with self._store.transaction() as tx:
				conversation = ensure_direct(tx, user_a, user_b)
				return OpResult.success(ConversationSummary.from_model(conversation))
		except CoreError as exc:
			return OpResult.failure(exc)

	async def create_group(
		self,
		name: str,
		creator_id: str,
		initial_member_ids: Iterable[str] = (),
		*,
		description: Optional[str] = None,
		image: Optional[str] = None,
	) -> OpResult[GroupSummary]:
		try:
			async with self._store.transaction() as tx:
				cleaned = policy.clean_group_name(name)
				member_ids = {str(creator_id)} | {str(m) for m in initial_member_ids if m}
				users = policy.require_users(tx.state, sorted(member_ids))
				group = Group(
					id=str(ulid.new()),
					name=cleaned,
					creator_id=str(creator_id),
					admins={str(creator_id)},
					members=member_ids,
					description=optional_str(description),
					image=optional_str(image),
				)
				tx.touch()
				tx.state.add_group(group)
				for user in users:
					user.group_ids.add(group.id)
				_group_event(tx, group, "created")
				summary = GroupSummary.from_model(group)
		except CoreError as exc:
			return OpResult.failure(exc)
		obs_metrics.inc_group_event("created")
		logger.info("group_created", extra={"group_id": summary.id, "members": len(summary.member_ids)})
		return OpResult.success(summary)

	async def add_member(self, group_id: str, acting_admin_id: str, new_member_id: str) -> OpResult[MembershipChange]:
		"""Add a member. Returns ``changed=False`` when they already belong."""
		try:
			async with self._store.transaction() as tx:
				group = policy.require_group(tx.state, group_id)
				policy.require_admin(group, acting_admin_id)
				user = policy.require_user(tx.state, new_member_id)
				if user.id in group.members:
					return OpResult.success(MembershipChange(group=GroupSummary.from_model(group), changed=False))
				tx.touch()
				group.members.add(user.id)
				user.group_ids.add(group.id)
				group.last_activity = max(group.last_activity, utcnow())
				_group_event(tx, group, "member_added", user_id=user.id)
				change = MembershipChange(group=GroupSummary.from_model(group), changed=True)
		except CoreError as exc:
			return OpResult.failure(exc)
		obs_metrics.inc_group_event("member_added")
		return OpResult.success(change)

	async def promote_admin(self, group_id: str, acting_admin_id: str, target_member_id: str) -> OpResult[MembershipChange]:
		try:
			async with self._store.transaction() as tx:
				group = policy.require_group(tx.state, group_id)
				policy.require_admin(group, acting_admin_id)
				policy.require_member(group, target_member_id)
				if group.is_admin(target_member_id):
					return OpResult.success(MembershipChange(group=GroupSummary.from_model(group), changed=False))
				tx.touch()
				group.admins.add(target_member_id)
				_group_event(tx, group, "admin_promoted", user_id=target_member_id)
				change = MembershipChange(group=GroupSummary.from_model(group), changed=True)
		except CoreError as exc:
			return OpResult.failure(exc)
		obs_metrics.inc_group_event("admin_promoted")
		return OpResult.success(change)

	async def get_conversation(self, conversation_id: str, user_id: str) -> OpResult[ConversationSummary]:
		try:
			async with self._store.read() as state:
				container = policy.require_container(state, conversation_id)
				policy.require_participant(container, user_id)
				return OpResult.success(ConversationSummary.from_model(container))
		except CoreError as exc:
			return OpResult.failure(exc)

	async def get_group(self, group_id: str, user_id: str) -> OpResult[GroupSummary]:
		try:
			async with self._store.read() as state:
				group = policy.require_group(state, group_id)
				policy.require_participant(group, user_id)
				return OpResult.success(GroupSummary.from_model(group))
		except CoreError as exc:
			return OpResult.failure(exc)

	async def list_for_user(self, user_id: str) -> OpResult[List[ConversationSummary]]:
		try:
			async with self._store.read() as state:
				policy.require_user(state, user_id)
				containers = state.containers_for_user(user_id)
				containers.sort(key=lambda c: (c.last_activity, c.id), reverse=True)
				return OpResult.success([ConversationSummary.from_model(c) for c in containers])
		except CoreError as exc:
			return OpResult.failure(exc)
