"""User directory used by friend search."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from chatcore.api.deps import get_core
from chatcore.core import ChatCore
from chatcore.domain.identity.schemas import UserSummary
from chatcore.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserSummary])
async def list_users(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> List[UserSummary]:
	return await core.identity.list_users(exclude_id=auth_user.id)


@router.get("/lookup", response_model=UserSummary)
async def lookup_user(
	email: str = Query(..., min_length=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> UserSummary:
	profile = await core.identity.lookup_by_email(email)
	if profile is None:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="user_missing")
	return UserSummary(id=profile.id, display_name=profile.display_name, image=profile.image)
