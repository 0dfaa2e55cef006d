"""Guard checks for friend requests and blocking."""

from __future__ import annotations

from typing import Tuple

from chatcore.domain.errors import Blocked, NoSuchRequest, NotFound, SelfRequest
from chatcore.domain.models import User
from chatcore.domain.store import StoreState


def guard_not_self(user_id: str, target_id: str) -> None:
	if str(user_id) == str(target_id):
		raise SelfRequest()


def load_pair(state: StoreState, user_id: str, other_id: str) -> Tuple[User, User]:
	user = state.users.get(user_id)
	other = state.users.get(other_id)
	if user is None or other is None:
		raise NotFound("user_missing")
	return user, other


def is_blocked_either_way(user: User, other: User) -> bool:
	return other.id in user.blocked_ids or user.id in other.blocked_ids


def guard_not_blocked(user: User, other: User) -> None:
	if is_blocked_either_way(user, other):
		raise Blocked()


def guard_pending_request(recipient: User, requester: User) -> None:
	if requester.id not in recipient.incoming_requests or recipient.id not in requester.outgoing_requests:
		raise NoSuchRequest()


def clear_pending(user: User, other: User) -> bool:
	"""Drop pending requests in both directions. Returns True if any existed."""
	had_pending = user.has_pending_with(other.id) or other.has_pending_with(user.id)
	user.incoming_requests.discard(other.id)
	user.outgoing_requests.discard(other.id)
	other.incoming_requests.discard(user.id)
	other.outgoing_requests.discard(user.id)
	return had_pending
