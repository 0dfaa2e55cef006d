"""Pydantic payloads for the friend surface."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from chatcore.domain.conversations.schemas import ConversationSummary
from chatcore.domain.identity.schemas import UserSummary


class FriendTarget(BaseModel):
	user_id: str = Field(..., min_length=1)


class RequestOutcome(BaseModel):
	changed: bool


class AcceptOutcome(BaseModel):
	friend: UserSummary
	conversation: ConversationSummary


class FriendUpdatePayload(BaseModel):
	action: str
	user_id: str
	conversation_id: Optional[str] = None
