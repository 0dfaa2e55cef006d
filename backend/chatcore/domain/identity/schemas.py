"""Pydantic schemas for registration, login and user views."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from chatcore.domain.models import User


class RegisterRequest(BaseModel):
	name: str = Field(..., min_length=1, max_length=80)
	email: str = Field(..., min_length=3, max_length=320)
	password: str = Field(..., min_length=1, max_length=256)
	image: Optional[str] = Field(default=None, max_length=2048)


class LoginRequest(BaseModel):
	email: str = Field(..., min_length=1)
	password: str = Field(..., min_length=1)


class UserSummary(BaseModel):
	id: str
	display_name: str
	image: Optional[str] = None

	@classmethod
	def from_model(cls, user: User) -> "UserSummary":
		return cls(id=user.id, display_name=user.display_name, image=user.image)


class UserProfile(UserSummary):
	email: str
	created_at: datetime
	friend_ids: list[str] = Field(default_factory=list)
	group_ids: list[str] = Field(default_factory=list)

	@classmethod
	def from_model(cls, user: User) -> "UserProfile":
		return cls(
			id=user.id,
			display_name=user.display_name,
			image=user.image,
			email=user.email,
			created_at=user.created_at,
			friend_ids=sorted(user.friend_ids),
			group_ids=sorted(user.group_ids),
		)


class SessionResponse(BaseModel):
	token: str
	token_type: str = "bearer"
	user: UserProfile
