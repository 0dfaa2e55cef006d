"""Friend surface: requests, friendships and blocking."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from chatcore.api.deps import get_core, resolve
from chatcore.core import ChatCore
from chatcore.domain.identity.schemas import UserSummary
from chatcore.domain.social.schemas import AcceptOutcome, FriendTarget, RequestOutcome
from chatcore.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/friends", tags=["social"])


@router.get("", response_model=List[UserSummary])
async def list_friends(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> List[UserSummary]:
	return resolve(await core.relationships.list_friends(auth_user.id))


@router.get("/requests/incoming", response_model=List[UserSummary])
async def list_incoming(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> List[UserSummary]:
	return resolve(await core.relationships.list_incoming(auth_user.id))


@router.get("/requests/outgoing", response_model=List[UserSummary])
async def list_outgoing(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> List[UserSummary]:
	return resolve(await core.relationships.list_outgoing(auth_user.id))


@router.get("/blocked", response_model=List[UserSummary])
async def list_blocked(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> List[UserSummary]:
	return resolve(await core.relationships.list_blocked(auth_user.id))


@router.post("/requests", response_model=RequestOutcome)
async def send_request(
	payload: FriendTarget,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> RequestOutcome:
	return RequestOutcome(changed=resolve(await core.relationships.send_request(auth_user.id, payload.user_id)))


@router.post("/requests/{requester_id}/accept", response_model=AcceptOutcome)
async def accept_request(
	requester_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> AcceptOutcome:
	return resolve(await core.relationships.accept_request(auth_user.id, requester_id))


@router.post("/requests/{requester_id}/reject", response_model=RequestOutcome)
async def reject_request(
	requester_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> RequestOutcome:
	return RequestOutcome(changed=resolve(await core.relationships.reject_request(auth_user.id, requester_id)))


@router.post("/requests/{target_id}/cancel", response_model=RequestOutcome)
async def cancel_request(
	target_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> RequestOutcome:
	return RequestOutcome(changed=resolve(await core.relationships.cancel_request(auth_user.id, target_id)))


@router.post("/block", response_model=RequestOutcome)
async def block_user(
	payload: FriendTarget,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> RequestOutcome:
	return RequestOutcome(changed=resolve(await core.relationships.block(auth_user.id, payload.user_id)))


@router.post("/unblock", response_model=RequestOutcome)
async def unblock_user(
	payload: FriendTarget,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	core: ChatCore = Depends(get_core),
) -> RequestOutcome:
	return RequestOutcome(changed=resolve(await core.relationships.unblock(auth_user.id, payload.user_id)))
