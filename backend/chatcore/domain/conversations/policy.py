"""Guard checks for direct conversations and group membership."""

from __future__ import annotations

from typing import Iterable, List

from chatcore.domain.errors import Blocked, InvalidInput, NotAdmin, NotFound, NotMember, NotParticipant, SelfRequest
from chatcore.domain.models import Container, Conversation, Group, User
from chatcore.domain.store import StoreState


def guard_not_self(user_id: str, other_id: str) -> None:
	if str(user_id) == str(other_id):
		raise SelfRequest()


def require_user(state: StoreState, user_id: str) -> User:
	user = state.users.get(user_id)
	if user is None:
		raise NotFound("user_missing")
	return user


def require_users(state: StoreState, user_ids: Iterable[str]) -> List[User]:
	return [require_user(state, user_id) for user_id in user_ids]


def guard_direct_not_blocked(state: StoreState, user_a: str, user_b: str) -> None:
	first = state.users.get(user_a)
	second = state.users.get(user_b)
	if first is None or second is None:
		return
	if second.id in first.blocked_ids or first.id in second.blocked_ids:
		raise Blocked()


def guard_can_post(state: StoreState, container: Container) -> None:
	"""Direct conversations stay readable after a block but take no new messages."""
	if isinstance(container, Conversation):
		guard_direct_not_blocked(state, *container.participants)


def require_container(state: StoreState, container_id: str) -> Container:
	container = state.container(container_id)
	if container is None:
		raise NotFound("container_missing")
	return container


def require_group(state: StoreState, group_id: str) -> Group:
	group = state.groups.get(group_id)
	if group is None:
		raise NotFound("group_missing")
	return group


def require_participant(container: Container, user_id: str) -> None:
	if not container.is_participant(user_id):
		raise NotParticipant()


def require_admin(group: Group, user_id: str) -> None:
	if not group.is_admin(user_id):
		raise NotAdmin()


def require_member(group: Group, user_id: str) -> None:
	if user_id not in group.members:
		raise NotMember()


def clean_group_name(name: str) -> str:
	cleaned = str(name or "").strip()
	if not cleaned:
		raise InvalidInput("group_name_required")
	return cleaned
