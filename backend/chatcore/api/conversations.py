"""Conversation surface: direct conversations and groups."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from chatcore.api.deps import get_core, resolve
from chatcore.core import ChatCore
from chatcore.domain.conversations.schemas import (
	ConversationSummary,
	DirectRequest,
	GroupCreateRequest,
	GroupSummary,
	MemberRequest,
	MembershipChange,
)
from chatcore.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["conversations"])


@router.get("/conversations", response_model=List[ConversationSummary])
async def list_conversations(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> List[ConversationSummary]:
	return resolve(await core.conversations.list_for_user(auth_user.id))


@router.post("/conversations/direct", response_model=ConversationSummary)
async def open_direct(
	payload: DirectRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> ConversationSummary:
	return resolve(await core.conversations.get_or_create_direct(auth_user.id, payload.user_id))


@router.get("/conversations/{conversation_id}", response_model=ConversationSummary)
async def get_conversation(
	conversation_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> ConversationSummary:
	return resolve(await core.conversations.get_conversation(conversation_id, auth_user.id))


@router.post("/groups", response_model=GroupSummary, status_code=status.HTTP_201_CREATED)
async def create_group(
	payload: GroupCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> GroupSummary:
	return resolve(
		await core.conversations.create_group(
			payload.name,
			auth_user.id,
			payload.member_ids,
			description=payload.description,
			image=payload.image,
		)
	)


@router.get("/groups/{group_id}", response_model=GroupSummary)
async def get_group(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> GroupSummary:
	return resolve(await core.conversations.get_group(group_id, auth_user.id))


@router.post("/groups/{group_id}/members", response_model=MembershipChange)
async def add_member(
	group_id: str,
	payload: MemberRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> MembershipChange:
	return resolve(await core.conversations.add_member(group_id, auth_user.id, payload.user_id))


@router.post("/groups/{group_id}/admins", response_model=MembershipChange)
async def promote_admin(
	group_id: str,
	payload: MemberRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> MembershipChange:
	return resolve(await core.conversations.promote_admin(group_id, auth_user.id, payload.user_id))
