"""Pydantic payloads for the message surface."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from chatcore.domain.models import Message


class SendMessageRequest(BaseModel):
	content: str = Field(..., min_length=1)


class ReactRequest(BaseModel):
	emoji: str = Field(..., min_length=1, max_length=32)


class ReactionSummary(BaseModel):
	emoji: str
	count: int
	user_ids: List[str]


class MessagePayload(BaseModel):
	id: str
	container_id: str
	seq: int
	sender_id: str
	content: str
	timestamp: datetime
	read_by: List[str]
	reactions: List[ReactionSummary] = Field(default_factory=list)

	@classmethod
	def from_model(cls, message: Message) -> "MessagePayload":
		return cls(
			id=message.id,
			container_id=message.container_id,
			seq=message.seq,
			sender_id=message.sender_id,
			content=message.content,
			timestamp=message.timestamp,
			read_by=sorted(message.read_by),
			reactions=[
				ReactionSummary(emoji=emoji, count=len(users), user_ids=sorted(users))
				for emoji, users in message.reactions.items()
			],
		)


class ReactionOutcome(BaseModel):
	message: MessagePayload
	added: bool


class MessagePage(BaseModel):
	items: List[MessagePayload]
	next_cursor: Optional[str] = None
