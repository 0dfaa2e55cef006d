"""Domain models for users, conversations, groups and messages.

Records use the camelCase, millisecond-timestamp layout of the browser store so existing snapshots load unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar, Dict, Iterable, List, Optional, Set, Tuple


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def to_millis(value: datetime) -> int:
	return int(value.timestamp() * 1000)


def from_millis(value: int | float | None) -> datetime:
	if value is None:
		return utcnow()
	return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)


def normalize_email(email: str) -> str:
	return str(email or "").strip().lower()


def _id_set(values: Iterable | None) -> Set[str]:
	return {str(v) for v in values or () if v}


@dataclass(slots=True)
class User:
	"""Canonical user record; never copied into session state."""

	id: str
	display_name: str
	email: str
	credential_hash: str
	image: Optional[str] = None
	friend_ids: Set[str] = field(default_factory=set)
	incoming_requests: Set[str] = field(default_factory=set)
	outgoing_requests: Set[str] = field(default_factory=set)
	blocked_ids: Set[str] = field(default_factory=set)
	group_ids: Set[str] = field(default_factory=set)
	created_at: datetime = field(default_factory=utcnow)

	def has_pending_with(self, other_id: str) -> bool:
		return other_id in self.incoming_requests or other_id in self.outgoing_requests

	def to_record(self) -> dict:
		return {
			"id": self.id,
			"name": self.display_name,
			"email": self.email,
			"credentialHash": self.credential_hash,
			"image": self.image,
			"friends": sorted(self.friend_ids),
			"pendingRequests": sorted(self.incoming_requests),
			"sentRequests": sorted(self.outgoing_requests),
			"blocked": sorted(self.blocked_ids),
			"groups": sorted(self.group_ids),
			"createdAt": to_millis(self.created_at),
		}

	@classmethod
	def from_record(cls, record: dict) -> "User":
		# Snapshots written by the browser store carry a plaintext ``password``.
		credential = record.get("credentialHash") or record.get("password") or ""
		return cls(
			id=str(record["id"]),
			display_name=str(record.get("name") or ""),
			email=str(record.get("email") or ""),
			credential_hash=str(credential),
			image=record.get("image") or None,
			friend_ids=_id_set(record.get("friends")),
			incoming_requests=_id_set(record.get("pendingRequests")),
			outgoing_requests=_id_set(record.get("sentRequests")),
			blocked_ids=_id_set(record.get("blocked")),
			group_ids=_id_set(record.get("groups")),
			created_at=from_millis(record.get("createdAt")),
		)


@dataclass(slots=True)
class Message:
	id: str
	container_id: str
	seq: int
	sender_id: str
	content: str
	timestamp: datetime
	read_by: Set[str] = field(default_factory=set)
	# emoji -> users, in first-reaction order
	reactions: Dict[str, Set[str]] = field(default_factory=dict)

	def reaction_counts(self) -> Dict[str, int]:
		return {emoji: len(users) for emoji, users in self.reactions.items()}

	def to_record(self) -> dict:
		return {
			"id": self.id,
			"seq": self.seq,
			"senderId": self.sender_id,
			"content": self.content,
			"timestamp": to_millis(self.timestamp),
			"readBy": sorted(self.read_by),
			"reactions": [
				{"emoji": emoji, "count": len(users), "users": sorted(users)}
				for emoji, users in self.reactions.items()
			],
		}

	@classmethod
	def from_record(cls, record: dict, *, container_id: str, position: int) -> "Message":
		reactions: Dict[str, Set[str]] = {}
		for entry in record.get("reactions") or []:
			if not isinstance(entry, dict):
				continue
			users = _id_set(entry.get("users"))
			# ``count`` is derived; stale counts in old snapshots are ignored.
			if users:
				reactions.setdefault(str(entry["emoji"]), set()).update(users)
		return cls(
			id=str(record["id"]),
			container_id=container_id,
			seq=int(record.get("seq") or position),
			sender_id=str(record["senderId"]),
			content=str(record.get("content") or ""),
			timestamp=from_millis(record.get("timestamp")),
			read_by=_id_set(record.get("readBy")),
			reactions=reactions,
		)


def _messages_from_records(records: Iterable[dict] | None, container_id: str) -> List[Message]:
	return [
		Message.from_record(item, container_id=container_id, position=idx)
		for idx, item in enumerate((r for r in records or [] if isinstance(r, dict)), start=1)
	]


@dataclass(slots=True)
class Conversation:
	"""Direct conversation between exactly two users."""

	kind: ClassVar[str] = "direct"

	id: str
	participants: Tuple[str, str]
	messages: List[Message] = field(default_factory=list)
	last_activity: datetime = field(default_factory=utcnow)

	@staticmethod
	def pair_key(user_one: str, user_two: str) -> frozenset:
		return frozenset((str(user_one), str(user_two)))

	@property
	def key(self) -> frozenset:
		return frozenset(self.participants)

	def participant_ids(self) -> Set[str]:
		return set(self.participants)

	def is_participant(self, user_id: str) -> bool:
		return user_id in self.participants

	def to_record(self) -> dict:
		return {
			"id": self.id,
			"participants": list(self.participants),
			"messages": [message.to_record() for message in self.messages],
			"lastActivity": to_millis(self.last_activity),
		}

	@classmethod
	def from_record(cls, record: dict) -> "Conversation":
		participants = [str(p) for p in record.get("participants") or []]
		if len(set(participants)) != 2:
			raise ValueError("direct conversation needs exactly two participants")
		ordered = tuple(sorted(participants))
		conversation_id = str(record["id"])
		return cls(
			id=conversation_id,
			participants=(ordered[0], ordered[1]),
			messages=_messages_from_records(record.get("messages"), conversation_id),
			last_activity=from_millis(record.get("lastActivity")),
		)


@dataclass(slots=True)
class Group:
	kind: ClassVar[str] = "group"

	id: str
	name: str
	creator_id: str
	admins: Set[str]
	members: Set[str]
	description: Optional[str] = None
	image: Optional[str] = None
	messages: List[Message] = field(default_factory=list)
	last_activity: datetime = field(default_factory=utcnow)

	def participant_ids(self) -> Set[str]:
		return set(self.members)

	def is_participant(self, user_id: str) -> bool:
		return user_id in self.members

	def is_admin(self, user_id: str) -> bool:
		return user_id in self.admins

	def to_record(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"description": self.description,
			"image": self.image,
			"creatorId": self.creator_id,
			"admins": sorted(self.admins),
			"members": sorted(self.members),
			"messages": [message.to_record() for message in self.messages],
			"lastActivity": to_millis(self.last_activity),
		}

	@classmethod
	def from_record(cls, record: dict) -> "Group":
		group_id = str(record["id"])
		creator_id = str(record["creatorId"])
		admins = _id_set(record.get("admins")) | {creator_id}
		members = _id_set(record.get("members")) | admins
		return cls(
			id=group_id,
			name=str(record.get("name") or ""),
			creator_id=creator_id,
			admins=admins,
			members=members,
			description=record.get("description") or None,
			image=record.get("image") or None,
			messages=_messages_from_records(record.get("messages"), group_id),
			last_activity=from_millis(record.get("lastActivity")),
		)


Container = Conversation | Group
