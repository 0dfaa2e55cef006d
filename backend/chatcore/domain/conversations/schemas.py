"""Pydantic views of direct conversations and groups."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from chatcore.domain.models import Container, Group


class DirectRequest(BaseModel):
	user_id: str = Field(..., min_length=1)


class GroupCreateRequest(BaseModel):
	name: str = Field(..., min_length=1, max_length=120)
	member_ids: List[str] = Field(default_factory=list)
	description: Optional[str] = Field(default=None, max_length=1000)
	image: Optional[str] = Field(default=None, max_length=2048)


class MemberRequest(BaseModel):
	user_id: str = Field(..., min_length=1)


class ConversationSummary(BaseModel):
	id: str
	kind: Literal["direct", "group"]
	participant_ids: List[str]
	last_activity: datetime
	message_count: int = 0
	name: Optional[str] = None

	@classmethod
	def from_model(cls, container: Container) -> "ConversationSummary":
		return cls(
			id=container.id,
			kind=container.kind,
			participant_ids=sorted(container.participant_ids()),
			last_activity=container.last_activity,
			message_count=len(container.messages),
			name=container.name if isinstance(container, Group) else None,
		)


class GroupSummary(BaseModel):
	id: str
	name: str
	description: Optional[str] = None
	image: Optional[str] = None
	creator_id: str
	admin_ids: List[str]
	member_ids: List[str]
	last_activity: datetime

	@classmethod
	def from_model(cls, group: Group) -> "GroupSummary":
		return cls(
			id=group.id,
			name=group.name,
			description=group.description,
			image=group.image,
			creator_id=group.creator_id,
			admin_ids=sorted(group.admins),
			member_ids=sorted(group.members),
			last_activity=group.last_activity,
		)


class MembershipChange(BaseModel):
	group: GroupSummary
	changed: bool


def summarize(container: Container) -> ConversationSummary:
	return ConversationSummary.from_model(container)
