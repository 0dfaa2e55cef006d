"""Message surface: append, list, react and read receipts."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from chatcore.api.deps import get_core, resolve
from chatcore.core import ChatCore
from chatcore.domain.messages.schemas import (
	MessagePage,
	MessagePayload,
	ReactionOutcome,
	ReactRequest,
	SendMessageRequest,
)
from chatcore.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["messages"])


@router.post(
	"/containers/{container_id}/messages",
	response_model=MessagePayload,
	status_code=status.HTTP_201_CREATED,
)
async def send_message(
	container_id: str,
	payload: SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> MessagePayload:
	return resolve(await core.messages.append(container_id, auth_user.id, payload.content))


@router.get("/containers/{container_id}/messages", response_model=MessagePage)
async def list_messages(
	container_id: str,
	cursor: Optional[str] = Query(default=None),
	limit: Optional[int] = Query(default=None, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> MessagePage:
	return resolve(await core.messages.list_since(container_id, auth_user.id, cursor=cursor, limit=limit))


@router.post("/messages/{message_id}/reactions", response_model=ReactionOutcome)
async def react(
	message_id: str,
	payload: ReactRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> ReactionOutcome:
	return resolve(await core.messages.react(message_id, auth_user.id, payload.emoji))


@router.post("/messages/{message_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
	message_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> None:
	resolve(await core.messages.mark_read(message_id, auth_user.id))
