"""Reaction toggling on a single message."""

from __future__ import annotations

from chatcore.domain.models import Message


def toggle_reaction(message: Message, user_id: str, emoji: str) -> bool:
	"""Flip ``user_id``'s ``emoji`` on ``message``.

	Returns True when the reaction was added and False when it was removed.
	An emoji whose last user is removed disappears from the mapping.
	"""
	users = message.reactions.get(emoji)
	if users is not None and user_id in users:
		users.discard(user_id)
		if not users:
			del message.reactions[emoji]
		return False
	message.reactions.setdefault(emoji, set()).add(user_id)
	return True
