"""Domain-level errors for identity, relationships, conversations and messages.

Expected failures are returned inside an ``OpResult``; only ``StorageError``
is raised out of the core.
"""

from __future__ import annotations


class CoreError(Exception):
	"""Base class for expected chat core failures."""

	kind: str = "invalid_state"
	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NotFound(CoreError):
	kind = "not_found"
	reason = "not_found"


class Unauthorized(CoreError):
	kind = "unauthorized"
	reason = "unauthorized"


class Conflict(CoreError):
	kind = "conflict"
	reason = "conflict"


class InvalidState(CoreError):
	kind = "invalid_state"
	reason = "invalid_state"


class InvalidInput(CoreError):
	kind = "invalid_input"
	reason = "invalid_input"


class InvalidCredential(Unauthorized):
	reason = "invalid_credentials"


class NotAdmin(Unauthorized):
	reason = "not_admin"


class NotParticipant(Unauthorized):
	reason = "not_participant"


class Blocked(Unauthorized):
	reason = "blocked"


class DuplicateEmail(Conflict):
	reason = "duplicate_email"


class SelfRequest(Conflict):
	reason = "self_request"


class AlreadyFriends(Conflict):
	reason = "already_friends"


class AlreadyRequested(Conflict):
	reason = "already_requested"


class AlreadyMember(Conflict):
	reason = "already_member"


class NoSuchRequest(InvalidState):
	reason = "no_such_request"


class NotMember(InvalidState):
	reason = "not_member"


class StorageError(RuntimeError):
	"""Raised when a snapshot cannot be committed; the mutation is rolled back."""
