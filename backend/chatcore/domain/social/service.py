"""Relationship graph: friend requests, friendships and blocking."""

from __future__ import annotations

import logging
from typing import Callable, List, Set

from chatcore.domain import events
from chatcore.domain.conversations import ensure_direct
from chatcore.domain.conversations.schemas import ConversationSummary
from chatcore.domain.errors import CoreError, NotFound
from chatcore.domain.identity.schemas import UserSummary
from chatcore.domain.models import User
from chatcore.domain.results import OpResult
from chatcore.domain.social import policy
from chatcore.domain.social.schemas import AcceptOutcome, FriendUpdatePayload
from chatcore.domain.store import ChatStore, Transaction
from chatcore.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_CLEARED_ACTIONS = {"reject": "request_rejected", "cancel": "request_cancelled"}


def _notify(tx: Transaction, action: str, recipient: User, subject: User, conversation_id: str | None = None) -> None:
	tx.emit(
		events.FRIEND_UPDATE,
		[recipient.id],
		FriendUpdatePayload(action=action, user_id=subject.id, conversation_id=conversation_id).model_dump(),
	)


def _friend_update(tx: Transaction, action: str, user: User, other: User, conversation_id: str | None = None) -> None:
	_notify(tx, action, user, other, conversation_id)
	_notify(tx, action, other, user, conversation_id)



def _block_seen_as(user: User, target: User) -> str | None:
	"""What ``target`` is told when ``user`` blocks them; never the block itself."""
	if target.id in user.friend_ids:
		return "unfriended"
	if target.id in user.incoming_requests:
		return _CLEARED_ACTIONS["reject"]
	if target.id in user.outgoing_requests:
		return _CLEARED_ACTIONS["cancel"]
	return None


class RelationshipService:
	def __init__(self, store: ChatStore) -> None:
		self._store = store

	async def send_request(self, from_id: str, to_id: str) -> OpResult[bool]:
		"""Create a pending request.

		Returns False without touching state when the pair is already friends
		or a request exists in either direction.
		"""
		try:
			policy.guard_not_self(from_id, to_id)
			async with self._store.transaction() as tx:
				sender, recipient = policy.load_pair(tx.state, from_id, to_id)
				policy.guard_not_blocked(sender, recipient)
				if recipient.id in sender.friend_ids or sender.has_pending_with(recipient.id):
					obs_metrics.inc_friend_request("send", "noop")
					return OpResult.success(False)
				tx.touch()
				sender.outgoing_requests.add(recipient.id)
				recipient.incoming_requests.add(sender.id)
				tx.emit(events.FRIEND_REQUEST, [recipient.id], {"from_user_id": sender.id})
				_friend_update(tx, "request_sent", sender, recipient)
		except CoreError as exc:
			obs_metrics.inc_friend_request("send", exc.reason)
			return OpResult.failure(exc)
		obs_metrics.inc_friend_request("send", "ok")
		logger.info("friend_request_sent", extra={"from_user_id": from_id, "to_user_id": to_id})
		return OpResult.success(True)

	async def accept_request(self, user_id: str, requester_id: str) -> OpResult[AcceptOutcome]:
		try:
			async with self._store.transaction() as tx:
				user, requester = policy.load_pair(tx.state, user_id, requester_id)
				policy.guard_pending_request(user, requester)
				tx.touch()
				policy.clear_pending(user, requester)
				user.friend_ids.add(requester.id)
				requester.friend_ids.add(user.id)
				conversation = ensure_direct(tx, user.id, requester.id)
				tx.emit(events.CHAT_SELECT, [user.id], {"conversation_id": conversation.id})
				_friend_update(tx, "accepted", user, requester, conversation.id)
				outcome = AcceptOutcome(
					friend=UserSummary.from_model(requester),
					conversation=ConversationSummary.from_model(conversation),
				)
		except CoreError as exc:
			obs_metrics.inc_friend_request("accept", exc.reason)
			return OpResult.failure(exc)
		obs_metrics.inc_friend_request("accept", "ok")
		logger.info("friend_request_accepted", extra={"user_id": user_id, "friend_id": requester_id})
		return OpResult.success(outcome)

	async def reject_request(self, user_id: str, requester_id: str) -> OpResult[bool]:
		"""Clear pending state between the pair; safe to repeat."""
		return await self._clear_request("reject", user_id, requester_id)

	async def cancel_request(self, user_id: str, target_id: str) -> OpResult[bool]:
		return await self._clear_request("cancel", user_id, target_id)

	async def _clear_request(self, action: str, user_id: str, other_id: str) -> OpResult[bool]:
		try:
			async with self._store.transaction() as tx:
				user, other = policy.load_pair(tx.state, user_id, other_id)
				if not (user.has_pending_with(other.id) or other.has_pending_with(user.id)):
					return OpResult.success(False)
				tx.touch()
				policy.clear_pending(user, other)
				_friend_update(tx, _CLEARED_ACTIONS[action], user, other)
		except CoreError as exc:
			obs_metrics.inc_friend_request(action, exc.reason)
			return OpResult.failure(exc)
		obs_metrics.inc_friend_request(action, "ok")
		return OpResult.success(True)

	async def block(self, user_id: str, target_id: str) -> OpResult[bool]:
		"""Block ``target_id``, dropping friendship and pending requests both ways."""
		try:
			policy.guard_not_self(user_id, target_id)
			async with self._store.transaction() as tx:
				user, target = policy.load_pair(tx.state, user_id, target_id)
				if target.id in user.blocked_ids:
					return OpResult.success(False)
				seen_by_target = _block_seen_as(user, target)
				tx.touch()
				user.blocked_ids.add(target.id)
				user.friend_ids.discard(target.id)
				target.friend_ids.discard(user.id)
				policy.clear_pending(user, target)
				_notify(tx, "blocked", user, target)
				if seen_by_target is not None:
					_notify(tx, seen_by_target, target, user)
		except CoreError as exc:
			return OpResult.failure(exc)
		logger.info("user_blocked", extra={"user_id": user_id, "target_id": target_id})
		return OpResult.success(True)

	async def unblock(self, user_id: str, target_id: str) -> OpResult[bool]:
		try:
			async with self._store.transaction() as tx:
				user, target = policy.load_pair(tx.state, user_id, target_id)
				if target.id not in user.blocked_ids:
					return OpResult.success(False)
				tx.touch()
				user.blocked_ids.discard(target.id)
				_notify(tx, "unblocked", user, target)
		except CoreError as exc:
			return OpResult.failure(exc)
		return OpResult.success(True)

	async def list_friends(self, user_id: str) -> OpResult[List[UserSummary]]:
		return await self._list(user_id, lambda user: user.friend_ids)

	async def list_incoming(self, user_id: str) -> OpResult[List[UserSummary]]:
		return await self._list(user_id, lambda user: user.incoming_requests)

	async def list_outgoing(self, user_id: str) -> OpResult[List[UserSummary]]:
		return await self._list(user_id, lambda user: user.outgoing_requests)

	async def list_blocked(self, user_id: str) -> OpResult[List[UserSummary]]:
		return await self._list(user_id, lambda user: user.blocked_ids)

	async def _list(self, user_id: str, select: Callable[[User], Set[str]]) -> OpResult[List[UserSummary]]:
		async with self._store.read() as state:
			user = state.users.get(user_id)
			if user is None:
				return OpResult.failure(NotFound("user_missing"))
			others = [state.users[oid] for oid in select(user) if oid in state.users]
			others.sort(key=lambda u: (u.display_name.lower(), u.id))
			return OpResult.success([UserSummary.from_model(u) for u in others])
